"""
Shared test configuration and fixtures for the assembly service tests.
"""

import asyncio
import base64
from typing import Callable, Dict, List, Tuple, Union

import httpx
import pymupdf
import pytest
from fastapi.testclient import TestClient

from app import app
from assemble.pipeline_queue import PipelineQueue, RawFile
from assemble.utils.credentials import CredentialStore


CONVERTAPI_TEST_URL = "https://convertapi.test"
TEST_API_KEY = "test-secret"


# ===== DOCUMENT FACTORIES =====

def build_pdf(pages: int = 1, label: str = "Page") -> bytes:
    """Create a PDF with one line of text per page."""
    document = pymupdf.open()
    for number in range(1, pages + 1):
        page = document.new_page()
        page.insert_text((72, 72), f"{label} {number}")
    data = document.tobytes()
    document.close()
    return data


def build_image(width: int = 40, height: int = 20, output: str = "png") -> bytes:
    """Create a flat RGB image in the requested format."""
    pixmap = pymupdf.Pixmap(pymupdf.csRGB, pymupdf.IRect(0, 0, width, height), False)
    pixmap.clear_with(200)
    return pixmap.tobytes(output)


# ===== FAKE REMOTE SERVICE =====

class FakeConvertApi:
    """
    In-memory stand-in for the ConvertAPI REST endpoints.

    Answers conversions and compressions with a stored file URL by default,
    or with inline base64 data when ``inline`` is set. Individual paths can be
    overridden with a status code and body, or made to raise a transport error.
    """

    def __init__(self, converted_pdf: bytes, compressed_pdf: bytes):
        self.converted_pdf = converted_pdf
        self.compressed_pdf = compressed_pdf
        self.inline = False
        self.requests: List[httpx.Request] = []
        self.overrides: Dict[str, Tuple[int, Union[dict, bytes]]] = {}
        self.failures: Dict[str, Exception] = {}
        self.download_status = 200
        self._stored: Dict[str, bytes] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path in self.failures:
            raise self.failures[path]

        if request.method == "GET" and path.startswith("/files/"):
            if self.download_status != 200:
                return httpx.Response(self.download_status)
            return httpx.Response(200, content=self._stored[path], headers={"Content-Type": "application/pdf"})

        if path in self.overrides:
            status, body = self.overrides[path]
            if isinstance(body, dict):
                return httpx.Response(status, json=body)
            return httpx.Response(status, content=body)

        if path == "/convert/pdf/to/compress":
            return self._file_response("compressed.pdf", self.compressed_pdf)
        if path.startswith("/convert/") and path.endswith("/to/pdf"):
            return self._file_response("converted.pdf", self.converted_pdf)

        return httpx.Response(404, json={"Message": "Not found"})

    def _file_response(self, name: str, content: bytes) -> httpx.Response:
        if self.inline:
            return httpx.Response(200, json={
                "Files": [{"FileName": name, "FileData": base64.b64encode(content).decode("ascii")}]
            })
        path = f"/files/{len(self._stored)}/{name}"
        self._stored[path] = content
        return httpx.Response(200, json={"Files": [{"FileName": name, "Url": CONVERTAPI_TEST_URL + path}]})

    def requests_to(self, path_prefix: str) -> List[httpx.Request]:
        return [request for request in self.requests if request.url.path.startswith(path_prefix)]


# ===== STANDARD FIXTURES =====

@pytest.fixture
def make_pdf() -> Callable[..., bytes]:
    """Factory fixture for generated PDFs."""
    return build_pdf


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    """Factory fixture for generated PNG/JPEG images."""
    return build_image


@pytest.fixture
def pdf_bytes() -> bytes:
    """Two-page PDF."""
    return build_pdf(pages=2)


@pytest.fixture
def png_bytes() -> bytes:
    return build_image(output="png")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return build_image(output="jpg")


@pytest.fixture
def convertapi() -> FakeConvertApi:
    """Fake ConvertAPI returning a three-page conversion and a one-page compression."""
    return FakeConvertApi(
        converted_pdf=build_pdf(pages=3, label="Converted"),
        compressed_pdf=build_pdf(pages=1, label="Compressed")
    )


@pytest.fixture
def http_client(convertapi: FakeConvertApi):
    """httpx AsyncClient routed to the fake ConvertAPI."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(convertapi.handler), follow_redirects=True)
    yield client
    asyncio.run(client.aclose())


@pytest.fixture
def empty_credentials(tmp_path, monkeypatch) -> CredentialStore:
    """Credential store with no stored key and no environment fallback."""
    monkeypatch.delenv("CONVERT_API_KEY", raising=False)
    return CredentialStore(path=tmp_path / "settings.json")


@pytest.fixture
def credentials(empty_credentials: CredentialStore) -> CredentialStore:
    """Credential store holding a ConvertAPI key."""
    empty_credentials.set("convertapi", TEST_API_KEY)
    return empty_credentials


@pytest.fixture
def queue() -> PipelineQueue:
    return PipelineQueue()


@pytest.fixture
def make_items(queue: PipelineQueue):
    """Enqueue ``(name, content)`` pairs and return the created items."""
    def enqueue(*files: Tuple[str, bytes]):
        return queue.enqueue(RawFile(name=name, content=content) for name, content in files)
    return enqueue


@pytest.fixture
def client(http_client, credentials):
    """FastAPI test client wired to the fake ConvertAPI and a temp credential store."""
    with TestClient(app) as test_client:
        app.state.http_client = http_client
        app.state.credentials = credentials
        app.state.queue = PipelineQueue()
        yield test_client


@pytest.fixture
def client_without_key(http_client, empty_credentials):
    """FastAPI test client with no ConvertAPI key configured."""
    with TestClient(app) as test_client:
        app.state.http_client = http_client
        app.state.credentials = empty_credentials
        app.state.queue = PipelineQueue()
        yield test_client

