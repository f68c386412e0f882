"""Tests for résumé endpoints: upload, admin-only download/delete, storage round-trip."""

import pytest
from httpx import AsyncClient

from helpers import USER_USERNAME, bearer, login

PDF_BYTES = b"%PDF-1.7\n%\xe2\xe3\xcf\xd3\n1 0 obj<<>>endobj\n%%EOF\n"


async def _upload(client: AsyncClient, data: bytes = PDF_BYTES, filename: str = "cv.pdf") -> int:
    resp = await client.post(
        "/api/v1/resumes",
        content=data,
        headers={"Content-Type": "application/pdf", "X-Filename": filename},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["resume_id"]


@pytest.mark.asyncio
async def test_upload_download_delete(client: AsyncClient, fake_s3):
    resume_id = await _upload(client)
    assert len(fake_s3.objects) == 1
    admin = bearer((await login(client))["access_token"])

    resp = await client.get(f"/api/v1/resumes/{resume_id}", headers=admin)
    assert resp.status_code == 200
    assert resp.content == PDF_BYTES
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.headers["content-disposition"] == 'inline; filename="cv.pdf"'

    resp = await client.delete(f"/api/v1/resumes/{resume_id}", headers=admin)
    assert resp.status_code == 204
    assert fake_s3.objects == {}

    resp = await client.get(f"/api/v1/resumes/{resume_id}", headers=admin)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_upload_rejects_non_pdf(client: AsyncClient, fake_s3):
    resp = await client.post("/api/v1/resumes", content=b"hello", headers={"Content-Type": "text/plain"})
    assert resp.status_code == 400
    assert fake_s3.calls["put_object"] == 0


@pytest.mark.asyncio
async def test_upload_rejects_empty_body(client: AsyncClient):
    resp = await client.post("/api/v1/resumes", content=b"", headers={"Content-Type": "application/pdf"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_download_requires_token(client: AsyncClient):
    resume_id = await _upload(client)
    resp = await client.get(f"/api/v1/resumes/{resume_id}")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_download_requires_admin(client: AsyncClient):
    resume_id = await _upload(client)
    user = bearer((await login(client, USER_USERNAME))["access_token"])
    resp = await client.get(f"/api/v1/resumes/{resume_id}", headers=user)
    assert resp.status_code == 403
    assert resp.json() == {"detail": "Forbidden: Admins only"}
    resp = await client.delete(f"/api/v1/resumes/{resume_id}", headers=user)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_missing_object_maps_to_404(client: AsyncClient, fake_s3):
    resume_id = await _upload(client)
    fake_s3.objects.clear()
    admin = bearer((await login(client))["access_token"])
    resp = await client.get(f"/api/v1/resumes/{resume_id}", headers=admin)
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Object not found"}


@pytest.mark.asyncio
async def test_storage_outage_is_retried_then_500(client: AsyncClient, fake_s3):
    fake_s3.fail("put_object", times=2)
    await _upload(client)
    assert fake_s3.calls["put_object"] == 3

    fake_s3.fail("put_object", times=3)
    resp = await client.post("/api/v1/resumes", content=PDF_BYTES, headers={"Content-Type": "application/pdf"})
    assert resp.status_code == 500
    assert resp.json() == {"detail": "Internal server error"}


@pytest.mark.asyncio
async def test_unknown_resume_is_404(client: AsyncClient, fake_s3):
    admin = bearer((await login(client))["access_token"])
    for method in (client.get, client.delete):
        resp = await method("/api/v1/resumes/9999", headers=admin)
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Resume not found"}
    assert fake_s3.calls["get_object"] == 0
    assert fake_s3.calls["delete_object"] == 0
