"""End-to-end tests for the batch orchestrator."""
import asyncio

import httpx
import pytest

from presigned_uploader import UploadOrchestrator
from presigned_uploader.errors import (
    ContractError,
    MissingSecretError,
    PartUploadError,
    StorageProviderError,
)
from presigned_uploader.files import BytesFile
from presigned_uploader.models import UploadConfig, UploadResult

from conftest import API_KEY, API_URL, FakeUploadService


def _orchestrator(service, sleep, **config):
    client = httpx.AsyncClient(transport=service.transport())
    return UploadOrchestrator(
        api_key=API_KEY,
        api_url=API_URL,
        config=UploadConfig(**config),
        client=client,
        sleep=sleep,
    ), client


@pytest.mark.asyncio
async def test_mixed_batch_uploads_in_input_order(service, sleep):
    orchestrator, client = _orchestrator(service, sleep)
    files = [
        BytesFile(b"A" * 10, name="big.bin"),
        BytesFile(b"abc", name="a.png", type="image/png"),
        BytesFile(b"B" * 9, name="big2.bin"),
    ]
    service.poll_statuses["key-1-a.png"] = ["pending", "done"]

    async with client, orchestrator as uploader:
        results = await uploader.upload_files(files, metadata={"user": "u1"})

    assert [r.success for r in results] == [True, True, True]
    assert [r.name for r in results] == ["big.bin", "a.png", "big2.bin"]
    assert results[1].data == UploadResult(
        key="key-1-a.png", url="https://files.test/key-1-a.png", name="a.png", size=3
    )
    assert b"".join(service.parts["key-0-big.bin"][n] for n in (1, 2, 3)) == b"A" * 10
    assert {c["fileKey"] for c in service.completions} == {"key-0-big.bin", "key-2-big2.bin"}
    assert service.poll_counts["key-1-a.png"] == 2

    headers = service.requests[0].headers
    assert headers["x-uploader-api-key"] == API_KEY
    assert headers["x-uploader-version"]


@pytest.mark.asyncio
async def test_failures_are_isolated_per_file(service, sleep):
    orchestrator, client = _orchestrator(service, sleep, max_part_attempts=2)
    service.part_failures["https://storage.test/key-0-big.bin/part/2"] = 100
    files = [BytesFile(b"A" * 10, name="big.bin"), BytesFile(b"abc", name="a.png")]

    async with client, orchestrator as uploader:
        results = await uploader.upload_files(files)

    assert results[0].success is False
    assert isinstance(results[0].error, PartUploadError)
    assert results[0].error.code == "UPLOAD_FAILED"
    assert results[1].success is True
    assert service.poll_counts.get("key-0-big.bin", 0) == 0


@pytest.mark.asyncio
async def test_storage_post_error_is_reported_with_detail(service, sleep):
    orchestrator, client = _orchestrator(service, sleep)
    service.post_error = httpx.Response(403, text="<Error>AccessDenied</Error>")

    async with client, orchestrator as uploader:
        results = await uploader.upload_files([BytesFile(b"abc", name="a.png")])

    assert isinstance(results[0].error, StorageProviderError)
    assert results[0].error.detail == "<Error>AccessDenied</Error>"


@pytest.mark.asyncio
async def test_contract_error_aborts_before_any_upload(service, sleep):
    orchestrator, client = _orchestrator(service, sleep)
    service.descriptor_data = []

    async with client, orchestrator as uploader:
        with pytest.raises(ContractError):
            await uploader.upload_files([BytesFile(b"abc", name="a.png")])

    assert [r.url.path for r in service.requests] == ["/api/uploadFiles"]


@pytest.mark.asyncio
async def test_concurrency_ceiling_is_respected(sleep):
    service = FakeUploadService(chunk_size=4, multipart_threshold=8, latency=0.003)
    orchestrator, client = _orchestrator(service, sleep, max_concurrency=3)
    files = [BytesFile(bytes([i]) * (4 + 4 * (i % 3)), name=f"f{i}.bin") for i in range(12)]

    async with client, orchestrator as uploader:
        results = await uploader.upload_files(files)

    assert all(r.success for r in results)
    assert service.peak_in_flight <= 3
    assert service.peak_in_flight >= 2


@pytest.mark.asyncio
async def test_empty_batch_makes_no_requests(service, sleep):
    orchestrator, client = _orchestrator(service, sleep)

    async with client, orchestrator as uploader:
        assert await uploader.upload_files([]) == []

    assert service.requests == []


@pytest.mark.asyncio
async def test_missing_secret_fails_before_network(monkeypatch, service):
    monkeypatch.delenv("UPLOADER_SECRET", raising=False)
    orchestrator = UploadOrchestrator(api_url=API_URL)

    with pytest.raises(MissingSecretError):
        async with orchestrator:
            pass

    assert service.requests == []


@pytest.mark.asyncio
async def test_secret_from_env(monkeypatch, service, sleep):
    monkeypatch.setenv("UPLOADER_SECRET", "sk_env")
    client = httpx.AsyncClient(transport=service.transport())
    orchestrator = UploadOrchestrator(api_url=API_URL, client=client, sleep=sleep)

    async with client, orchestrator as uploader:
        await uploader.upload_files([BytesFile(b"abc", name="a.png")])

    assert service.requests[0].headers["x-uploader-api-key"] == "sk_env"


@pytest.mark.asyncio
async def test_requires_context_manager():
    orchestrator = UploadOrchestrator(api_key=API_KEY)
    with pytest.raises(RuntimeError, match="async with"):
        await orchestrator.upload_files([BytesFile(b"a")])


@pytest.mark.asyncio
async def test_upload_files_from_url_keeps_positions(service, sleep):
    service.download_bodies["https://cdn.test/a.png"] = httpx.Response(
        200, content=b"abc", headers={"Content-Type": "image/png"}
    )
    service.download_bodies["https://cdn.test/big.bin"] = httpx.Response(200, content=b"Z" * 12)
    orchestrator, client = _orchestrator(service, sleep)

    async with client, orchestrator as uploader:
        results = await uploader.upload_files_from_url(
            ["https://cdn.test/a.png", "https://cdn.test/missing.jpg", "https://cdn.test/big.bin"]
        )

    assert [r.success for r in results] == [True, False, True]
    assert results[0].data.name == "a.png"
    assert results[1].name == "missing.jpg"
    assert results[1].error.code == "DOWNLOAD_FAILED"
    assert results[2].data.size == 12
    assert [f["name"] for f in service.upload_files_bodies[0]["files"]] == ["a.png", "big.bin"]


@pytest.mark.asyncio
async def test_cancelled_batch_leaves_no_work_behind(sleep):
    service = FakeUploadService(chunk_size=4, multipart_threshold=8, latency=0.05)
    orchestrator, client = _orchestrator(service, sleep)
    files = [BytesFile(b"A" * 12, name="one.bin"), BytesFile(b"B" * 12, name="two.bin")]

    async with client, orchestrator as uploader:
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(uploader.upload_files(files), timeout=0.08)

        sent = len(service.requests)
        await asyncio.sleep(0.2)

        assert [t for t in asyncio.all_tasks() if t is not asyncio.current_task()] == []
        assert len(service.requests) == sent
        assert service.in_flight == 0

    assert any(r.method == "PUT" for r in service.requests)
    assert service.completions == []
    assert not any(r.url.path.startswith("/api/pollUpload/") for r in service.requests)
