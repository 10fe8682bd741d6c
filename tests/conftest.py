"""Shared fixtures: an in-memory control plane and storage behind httpx.MockTransport."""
import asyncio
import json
from collections import defaultdict
from typing import Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from presigned_uploader.context import TransportContext

API_URL = "https://api.test"
STORAGE_URL = "https://storage.test"
API_KEY = "sk_test_123"


class FakeUploadService:
    """
    Control plane + storage provider.

    Files at or above ``multipart_threshold`` bytes get a multipart
    descriptor, smaller ones a presigned POST.
    """

    def __init__(self, chunk_size: int = 4, multipart_threshold: int = 8, latency: float = 0.0):
        self.chunk_size = chunk_size
        self.multipart_threshold = multipart_threshold
        self.latency = latency

        self.requests: List[httpx.Request] = []
        self.upload_files_bodies: List[dict] = []
        self.completions: List[dict] = []
        self.parts: Dict[str, Dict[int, bytes]] = defaultdict(dict)
        self.posts: Dict[str, bytes] = {}
        self.poll_statuses: Dict[str, List[str]] = {}
        self.poll_counts: Dict[str, int] = defaultdict(int)
        self.part_failures: Dict[str, int] = {}  # url -> remaining failures
        self.post_error: Optional[httpx.Response] = None
        self.descriptor_data: Optional[list] = None
        self.download_bodies: Dict[str, httpx.Response] = {}

        self.in_flight = 0
        self.peak_in_flight = 0

    # Descriptor generation
    def _descriptor(self, index: int, file: dict, disposition: str) -> dict:
        key = f"key-{index}-{file['name']}"
        size = file["size"]
        if size >= self.multipart_threshold:
            count = max(1, -(-size // self.chunk_size))
            return {
                "urls": [f"{STORAGE_URL}/{key}/part/{n}" for n in range(1, count + 1)],
                "key": key,
                "fileUrl": f"https://files.test/{key}",
                "fileType": file["type"],
                "uploadId": f"upload-{index}",
                "chunkSize": self.chunk_size,
                "chunkCount": count,
                "contentDisposition": disposition,
            }
        return {
            "url": f"{STORAGE_URL}/post/{key}",
            "fields": {"key": key, "policy": "xyz"},
            "key": key,
            "fileUrl": f"https://files.test/{key}",
            "contentDisposition": disposition,
        }

    # Transport
    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.latency)
            return self._route(request)
        finally:
            self.in_flight -= 1

    def _route(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        path = request.url.path

        if url.startswith(API_URL):
            if path == "/api/uploadFiles":
                body = json.loads(request.content)
                self.upload_files_bodies.append(body)
                data = self.descriptor_data
                if data is None:
                    data = [
                        self._descriptor(i, f, body["contentDisposition"])
                        for i, f in enumerate(body["files"])
                    ]
                return httpx.Response(200, json={"data": data})
            if path == "/api/completeMultipart":
                self.completions.append(json.loads(request.content))
                return httpx.Response(200, json={"success": True})
            if path.startswith("/api/pollUpload/"):
                key = path[len("/api/pollUpload/"):]
                self.poll_counts[key] += 1
                statuses = self.poll_statuses.get(key)
                status = statuses.pop(0) if statuses else "done"
                return httpx.Response(200, json={"status": status})
            return httpx.Response(404, json={"error": "not found"})

        if url.startswith(STORAGE_URL):
            if request.method == "PUT":
                remaining = self.part_failures.get(url, 0)
                if remaining:
                    self.part_failures[url] = remaining - 1
                    return httpx.Response(503, text="SlowDown")
                key, _, number = path.strip("/").split("/")
                self.parts[key][int(number)] = request.content
                return httpx.Response(200, headers={"ETag": f'"etag-{key}-{number}"'})
            if request.method == "POST":
                if self.post_error is not None:
                    return self.post_error
                self.posts[path] = request.content
                return httpx.Response(204)

        if url in self.download_bodies:
            return self.download_bodies[url]
        return httpx.Response(404, text="missing")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def service():
    return FakeUploadService()


@pytest_asyncio.fixture
async def client(service):
    async with httpx.AsyncClient(transport=service.transport()) as http:
        yield http


@pytest.fixture
def context(client):
    return TransportContext(client=client, headers={"x-uploader-api-key": API_KEY}, api_url=API_URL)


class RecordingSleep:
    """Async sleep stand-in that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleep():
    return RecordingSleep()
