"""Résumés: upload a PDF, download it (admin), delete it (admin)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from ats.api.deps import get_services, require_admin
from ats.core.errors import InfrastructureError, NotFoundError
from ats.core.tokens import AccessClaims
from ats.services.container import Services
from ats.services.storage import PDF_CONTENT_TYPE

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/resumes", tags=["resumes"])

INSERT_RESUME = """
    INSERT INTO resumes (original_filename, object_key)
    VALUES (:original_filename, :object_key)
"""

SELECT_RESUME_ID = "SELECT id FROM resumes WHERE object_key = :object_key"

SELECT_RESUME = """
    SELECT original_filename, object_key
    FROM resumes
    WHERE id = :resume_id
"""

SELECT_RESUME_KEY = "SELECT object_key FROM resumes WHERE id = :resume_id"

DELETE_RESUME = "DELETE FROM resumes WHERE id = :resume_id"


class ResumeCreated(BaseModel):
    resume_id: int


@router.post(
    "",
    status_code=201,
    response_model=ResumeCreated,
    summary="Upload a résumé (raw application/pdf body)",
    responses={400: {"description": "Empty body or not a PDF"}},
)
async def upload_resume(
    request: Request,
    services: Annotated[Services, Depends(get_services)],
    x_filename: Annotated[str | None, Header()] = None,
) -> ResumeCreated:
    content_type = (request.headers.get("Content-Type") or "").split(";")[0].strip()
    if content_type != PDF_CONTENT_TYPE:
        raise HTTPException(status_code=400, detail="Received non-PDF file")
    data = await request.body()
    if not data:
        raise HTTPException(status_code=400, detail="Missing file")
    filename = (x_filename or "").strip() or "resume.pdf"

    object_key = await services.blobs.put(data)
    try:
        await services.db.query(INSERT_RESUME, {"original_filename": filename, "object_key": object_key})
        result = await services.db.query(SELECT_RESUME_ID, {"object_key": object_key})
    except InfrastructureError:
        # do not leave an orphaned object behind
        try:
            await services.blobs.delete(object_key)
        except InfrastructureError:
            logger.error("Orphaned résumé object %s after failed insert", object_key)
        raise
    return ResumeCreated(resume_id=result.rows[0]["id"])


@router.get(
    "/{resume_id}",
    summary="Download a résumé PDF",
    responses={
        401: {"description": "Not authenticated"},
        403: {"description": "Admins only"},
        404: {"description": "Resume not found"},
    },
)
async def download_resume(
    resume_id: int,
    services: Annotated[Services, Depends(get_services)],
    _: Annotated[AccessClaims, Depends(require_admin)],
) -> StreamingResponse:
    result = await services.db.query(SELECT_RESUME, {"resume_id": resume_id})
    row = result.first()
    if row is None:
        raise NotFoundError("Resume not found")
    blob = await services.blobs.get(row["object_key"])
    return StreamingResponse(
        blob.stream,
        media_type=blob.content_type,
        headers={"Content-Disposition": f'inline; filename="{row["original_filename"]}"'},
    )


@router.delete(
    "/{resume_id}",
    status_code=204,
    summary="Delete a résumé and its stored PDF",
    responses={
        401: {"description": "Not authenticated"},
        403: {"description": "Admins only"},
        404: {"description": "Resume not found"},
    },
)
async def delete_resume(
    resume_id: int,
    services: Annotated[Services, Depends(get_services)],
    _: Annotated[AccessClaims, Depends(require_admin)],
) -> Response:
    result = await services.db.query(SELECT_RESUME_KEY, {"resume_id": resume_id})
    row = result.first()
    if row is None:
        raise NotFoundError("Resume not found")
    await services.db.query(DELETE_RESUME, {"resume_id": resume_id})
    await services.blobs.delete(row["object_key"])
    return Response(status_code=204)
