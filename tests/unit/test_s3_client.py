"""Unit tests for the MinIO-backed artifact store."""

import pytest
from minio.error import S3Error

from printgen.clients.s3_client import S3ArtifactStore
from printgen.core.exceptions import ArtifactStoreError
from printgen.pipeline.models import PointerResult


def s3_error(code: str, key: str) -> S3Error:
    return S3Error(
        response=None,
        code=code,
        message=f"{code} for {key}",
        resource=f"/artifacts/{key}",
        request_id="req-1",
        host_id="host-1",
    )


class FakeResponse:
    def __init__(self, data: bytes):
        self.data = data
        self.closed = False
        self.released = False

    def read(self) -> bytes:
        return self.data

    def close(self) -> None:
        self.closed = True

    def release_conn(self) -> None:
        self.released = True


class FakeMinio:
    """Records calls made through the Minio client surface the store uses."""

    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.responses: list[FakeResponse] = []
        self.removed: list[tuple[str, str]] = []
        self.refuse_removal: set[str] = set()
        self.denied: set[str] = set()
        self.put_kwargs: dict = {}

    def put_object(self, bucket, key, stream, length, content_type):
        self.objects[(bucket, key)] = stream.read()
        self.put_kwargs = {"length": length, "content_type": content_type}

    def get_object(self, bucket, key):
        response = FakeResponse(self.objects[(bucket, key)])
        self.responses.append(response)
        return response

    def remove_object(self, bucket, key):
        if key in self.refuse_removal:
            raise RuntimeError("access denied")
        if key in self.denied:
            raise s3_error("AccessDenied", key)
        if (bucket, key) not in self.objects:
            raise s3_error("NoSuchKey", key)
        self.removed.append((bucket, key))
        del self.objects[(bucket, key)]


@pytest.fixture
def minio():
    return FakeMinio()


@pytest.fixture
def artifact_store(minio):
    return S3ArtifactStore(
        endpoint="s3.test:9000",
        access_key="key",
        secret_key="secret",
        bucket="artifacts",
        client=minio,
    )


class TestTransfers:
    @pytest.mark.asyncio
    async def test_put_then_get(self, artifact_store, minio):
        pointer = await artifact_store.put_bytes("jobs/a.pdf", b"%PDF-data")

        assert pointer == PointerResult(store="artifacts", key="jobs/a.pdf", size=9)
        assert minio.put_kwargs == {"length": 9, "content_type": "application/pdf"}
        assert await artifact_store.get_bytes(pointer) == b"%PDF-data"

    @pytest.mark.asyncio
    async def test_get_releases_connection(self, artifact_store, minio):
        minio.objects[("other-bucket", "x.pdf")] = b"abc"

        data = await artifact_store.get_bytes(PointerResult(store="other-bucket", key="x.pdf"))

        assert data == b"abc"
        [response] = minio.responses
        assert response.closed and response.released

    @pytest.mark.asyncio
    async def test_delete_accepts_keys_and_pointers(self, artifact_store, minio):
        minio.objects[("artifacts", "plain-key.pdf")] = b"a"
        minio.objects[("other-bucket", "p.pdf")] = b"b"

        await artifact_store.delete("plain-key.pdf")
        await artifact_store.delete(PointerResult(store="other-bucket", key="p.pdf"))

        assert minio.removed == [("artifacts", "plain-key.pdf"), ("other-bucket", "p.pdf")]
        assert minio.objects == {}


class TestDeleteIdempotence:
    @pytest.mark.asyncio
    async def test_missing_key_is_not_an_error(self, artifact_store, minio):
        await artifact_store.delete("never-existed.pdf")
        assert minio.removed == []

    @pytest.mark.asyncio
    async def test_deleting_twice(self, artifact_store, minio):
        pointer = await artifact_store.put_bytes("jobs/a.pdf", b"%PDF")

        await artifact_store.delete(pointer)
        await artifact_store.delete(pointer)

        assert minio.removed == [("artifacts", "jobs/a.pdf")]

    @pytest.mark.asyncio
    async def test_other_s3_errors_are_translated(self, artifact_store, minio):
        minio.objects[("artifacts", "locked.pdf")] = b"a"
        minio.denied = {"locked.pdf"}

        with pytest.raises(ArtifactStoreError) as exc_info:
            await artifact_store.delete("locked.pdf")

        assert exc_info.value.details["operation"] == "delete"
        assert exc_info.value.details["key"] == "locked.pdf"
        assert isinstance(exc_info.value.__cause__, S3Error)

    @pytest.mark.asyncio
    async def test_repeated_cleanup_reports_no_failures(self, artifact_store, minio):
        pointers = [await artifact_store.put_bytes(f"jobs/{i}.pdf", b"%PDF") for i in range(3)]

        assert await artifact_store.cleanup_keys_best_effort(pointers) == 0
        assert await artifact_store.cleanup_keys_best_effort(pointers) == 0
        assert minio.objects == {}
        assert len(minio.removed) == 3


class TestBestEffortCleanup:
    @pytest.mark.asyncio
    async def test_failures_are_counted_not_raised(self, artifact_store, minio):
        for key in ("a.pdf", "b.pdf", "c.pdf"):
            minio.objects[("artifacts", key)] = b"x"
        minio.refuse_removal = {"b.pdf"}

        failures = await artifact_store.cleanup_keys_best_effort(["a.pdf", "b.pdf", "c.pdf"])

        assert failures == 1
        assert minio.removed == [("artifacts", "a.pdf"), ("artifacts", "c.pdf")]

    @pytest.mark.asyncio
    async def test_s3_errors_are_counted_not_raised(self, artifact_store, minio):
        minio.objects[("artifacts", "locked.pdf")] = b"x"
        minio.denied = {"locked.pdf"}

        assert await artifact_store.cleanup_keys_best_effort(["locked.pdf", "gone.pdf"]) == 1

    @pytest.mark.asyncio
    async def test_duplicates_are_deleted_once(self, artifact_store, minio):
        minio.objects[("artifacts", "a.pdf")] = b"x"
        pointer = PointerResult(store="artifacts", key="a.pdf")

        failures = await artifact_store.cleanup_keys_best_effort([pointer, "a.pdf", pointer])

        assert failures == 0
        assert minio.removed == [("artifacts", "a.pdf")]

    @pytest.mark.asyncio
    async def test_empty_list(self, artifact_store, minio):
        assert await artifact_store.cleanup_keys_best_effort([]) == 0
        assert minio.removed == []
