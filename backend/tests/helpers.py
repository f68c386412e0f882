"""Test doubles and small helpers shared by the test modules."""

import io
from collections import Counter

from botocore.exceptions import ClientError
from httpx import AsyncClient

from ats.core.retry import RetryPolicy

TEST_SECRET = "test-secret-key"
TEST_BUCKET = "ats-test"
FAST_RETRY = RetryPolicy(max_attempts=3, delay=0.01)

ADMIN_USERNAME = "admin"
USER_USERNAME = "applicant"
PASSWORD = "password"


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} (injected)"}}, operation)


class FakeS3Client:
    """In-memory stand-in for a boto3 S3 client, with per-method failure injection."""

    def __init__(self):
        self.buckets: set[str] = set()
        self.objects: dict[tuple[str, str], dict] = {}
        self.calls: Counter = Counter()
        self.last_kwargs: dict[str, dict] = {}
        self._failures: Counter = Counter()
        self.closed = False

    def fail(self, method: str, times: int = 1) -> None:
        """Make the next ``times`` calls of ``method`` raise a transient ClientError."""
        self._failures[method] += times

    def _record(self, method: str, kwargs: dict) -> None:
        self.calls[method] += 1
        self.last_kwargs[method] = kwargs
        if self._failures[method] > 0:
            self._failures[method] -= 1
            raise client_error("InternalError", method)

    def head_bucket(self, **kwargs):
        self._record("head_bucket", kwargs)
        if kwargs["Bucket"] not in self.buckets:
            raise client_error("404", "HeadBucket")
        return {}

    def create_bucket(self, **kwargs):
        self._record("create_bucket", kwargs)
        self.buckets.add(kwargs["Bucket"])
        return {}

    def put_object(self, **kwargs):
        self._record("put_object", kwargs)
        self.objects[(kwargs["Bucket"], kwargs["Key"])] = {
            "data": bytes(kwargs["Body"]),
            "content_type": kwargs.get("ContentType"),
        }
        return {}

    def get_object(self, **kwargs):
        self._record("get_object", kwargs)
        stored = self.objects.get((kwargs["Bucket"], kwargs["Key"]))
        if stored is None:
            raise client_error("NoSuchKey", "GetObject")
        return {"Body": io.BytesIO(stored["data"]), "ContentType": stored["content_type"]}

    def delete_object(self, **kwargs):
        self._record("delete_object", kwargs)
        self.objects.pop((kwargs["Bucket"], kwargs["Key"]), None)
        return {}

    def list_objects_v2(self, **kwargs):
        self._record("list_objects_v2", kwargs)
        keys = [key for (bucket, key) in self.objects if bucket == kwargs["Bucket"]]
        if not keys:
            return {"KeyCount": 0}
        return {"KeyCount": len(keys), "Contents": [{"Key": key} for key in keys]}

    def delete_objects(self, **kwargs):
        self._record("delete_objects", kwargs)
        for obj in kwargs["Delete"]["Objects"]:
            self.objects.pop((kwargs["Bucket"], obj["Key"]), None)
        return {"Deleted": kwargs["Delete"]["Objects"]}

    def close(self):
        self.closed = True


async def login(client: AsyncClient, username: str = ADMIN_USERNAME, password: str = PASSWORD) -> dict:
    resp = await client.post("/api/v1/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
