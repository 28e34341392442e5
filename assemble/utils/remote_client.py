"""
ConvertAPI client for remote document conversion and PDF compression.

Office and text documents are uploaded as a base64 JSON payload and come back
as PDF, either as a storage URL to download or as inline base64 data. The
finished merged document can be sent back for a whole-document compression
pass, which answers with the same response shape.
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, Optional, Tuple, Union

import httpx

from ..config import (
    COMPRESS_PDF_PATH,
    COMPRESSED_UPLOAD_NAME,
    CONVERT_API_BASE_URL,
    CONVERT_TO_PDF_PATH,
    OUTPUT_MEDIA_TYPE,
    UPLOAD_CHUNK_SIZE,
)
from .error_handling import DecodeError, RemoteServiceError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_CONVERSION_ERROR = "Failed to convert file via ConvertAPI."
DEFAULT_COMPRESSION_ERROR = "Failed to compress final output."

UploadProgressCallback = Callable[[int], None]


@dataclass(frozen=True)
class RemoteUrl:
    """Converted file stored server-side, fetched with a GET."""
    url: str


@dataclass(frozen=True)
class InlineFile:
    """Converted file returned in the response body."""
    data: bytes


RemoteFile = Union[RemoteUrl, InlineFile]


def _describe_request_error(error: httpx.RequestError) -> str:
    return str(error) or type(error).__name__


class ConvertApiClient:
    """
    Thin async wrapper over the ConvertAPI REST endpoints.

    The client never retries; every failure is raised to the caller.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        base_url: str = CONVERT_API_BASE_URL,
        chunk_size: int = UPLOAD_CHUNK_SIZE
    ):
        self.client = client
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.chunk_size = max(1, chunk_size)

    @property
    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    @staticmethod
    def build_conversion_payload(content: bytes, filename: str) -> Dict[str, Any]:
        """Build the JSON body naming the file and asking the service to store the result."""
        return {
            "Parameters": [
                {
                    "Name": "File",
                    "FileValue": {
                        "Name": filename,
                        "Data": base64.b64encode(content).decode("ascii"),
                    },
                },
                {
                    "Name": "StoreFile",
                    "Value": True,
                },
            ]
        }

    async def _stream_body(
        self,
        body: bytes,
        on_upload_progress: Optional[UploadProgressCallback]
    ) -> AsyncIterator[bytes]:
        """Yield the body in chunks, reporting the sent percentage when it changes."""
        total = len(body)
        last_percent = None
        for offset in range(0, total, self.chunk_size):
            chunk = body[offset:offset + self.chunk_size]
            yield chunk
            if on_upload_progress is not None:
                percent = round((offset + len(chunk)) * 100 / total)
                if percent != last_percent:
                    last_percent = percent
                    on_upload_progress(percent)

    async def convert_to_pdf(
        self,
        content: bytes,
        filename: str,
        input_format: str,
        on_upload_progress: Optional[UploadProgressCallback] = None
    ) -> bytes:
        """
        Convert a document to PDF.

        Args:
            content: Raw bytes of the source document
            filename: Original filename sent to the service
            input_format: Source extension used in the endpoint path
            on_upload_progress: Called with the integer percentage of bytes sent

        Returns:
            PDF bytes

        Raises:
            TransportError: On network failure
            RemoteServiceError: On a non-success or malformed response
        """
        url = self.base_url + CONVERT_TO_PDF_PATH.format(input_format=input_format)
        body = json.dumps(self.build_conversion_payload(content, filename)).encode("utf-8")
        headers = {
            **self.auth_headers,
            "Content-Type": "application/json",
            "Content-Length": str(len(body)),
        }

        logger.info(f"Uploading {filename} ({len(content)} bytes) to {url}")
        try:
            response = await self.client.post(
                url,
                content=self._stream_body(body, on_upload_progress),
                headers=headers
            )
        except httpx.RequestError as e:
            logger.error(f"Request error while uploading {filename}: {e}")
            raise TransportError(f"Network error occurred during upload: {_describe_request_error(e)}") from e

        if not response.is_success:
            message, invalid_parameters = self.extract_error_message(response, DEFAULT_CONVERSION_ERROR)
            logger.error(f"ConvertAPI returned {response.status_code} for {filename}: {message}")
            raise RemoteServiceError(
                message,
                response_status=response.status_code,
                invalid_parameters=invalid_parameters
            )

        remote_file = self.parse_remote_file(response)
        return await self.fetch_remote_file(remote_file)

    async def compress_pdf(self, content: bytes) -> bytes:
        """
        Compress a finished PDF.

        Args:
            content: Serialized merged document

        Returns:
            Compressed PDF bytes

        Raises:
            TransportError: On network failure
            RemoteServiceError: On a non-success or malformed response
        """
        url = self.base_url + COMPRESS_PDF_PATH
        files = {"File": (COMPRESSED_UPLOAD_NAME, content, OUTPUT_MEDIA_TYPE)}
        data = {"StoreFile": "true"}

        logger.info(f"Compressing merged document ({len(content)} bytes)")
        try:
            response = await self.client.post(url, files=files, data=data, headers=self.auth_headers)
        except httpx.RequestError as e:
            logger.error(f"Request error during compression: {e}")
            raise TransportError(f"Network error occurred during compression: {_describe_request_error(e)}") from e

        if not response.is_success:
            message, invalid_parameters = self.extract_error_message(response, DEFAULT_COMPRESSION_ERROR)
            logger.error(f"ConvertAPI compression returned {response.status_code}: {message}")
            raise RemoteServiceError(
                message,
                response_status=response.status_code,
                invalid_parameters=invalid_parameters
            )

        remote_file = self.parse_remote_file(response)
        return await self.fetch_remote_file(remote_file)

    @staticmethod
    def parse_remote_file(response: httpx.Response) -> RemoteFile:
        """
        Read the first returned file from a success response.

        The service answers with either a URL or inline base64 data, never
        both; the URL wins if a response carries both.
        """
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteServiceError(
                "ConvertAPI returned an invalid response.",
                response_status=response.status_code
            ) from e

        files = data.get("Files") if isinstance(data, dict) else None
        if not files:
            raise RemoteServiceError("ConvertAPI returned no files.", response_status=response.status_code)

        first = files[0] if isinstance(files[0], dict) else {}
        if first.get("Url"):
            return RemoteUrl(url=first["Url"])
        if first.get("FileData"):
            try:
                return InlineFile(data=base64.b64decode(first["FileData"], validate=True))
            except (binascii.Error, ValueError) as e:
                raise DecodeError("ConvertAPI returned file data that is not valid base64.") from e

        raise RemoteServiceError(
            "No file data or URL returned from ConvertAPI.",
            response_status=response.status_code
        )

    async def fetch_remote_file(self, remote_file: RemoteFile) -> bytes:
        """Resolve either response variant to bytes."""
        if isinstance(remote_file, InlineFile):
            return remote_file.data

        try:
            response = await self.client.get(remote_file.url)
        except httpx.RequestError as e:
            logger.error(f"Request error while downloading {remote_file.url}: {e}")
            raise TransportError(f"Network error occurred during download: {_describe_request_error(e)}") from e

        if not response.is_success:
            logger.error(f"Download of {remote_file.url} returned {response.status_code}")
            raise RemoteServiceError("Failed to download converted file.", response_status=response.status_code)

        return response.content

    @staticmethod
    def extract_error_message(response: httpx.Response, default: str) -> Tuple[str, Dict[str, Any]]:
        """
        Build a human-readable message from an error response.

        Returns:
            ``(message, invalid_parameters)``. Per-parameter validation errors
            are appended to the message as ``(key: value, key: value)``.
        """
        try:
            data = response.json()
        except ValueError:
            return f"ConvertAPI error: {response.status_code} {response.reason_phrase}".rstrip(), {}

        if not isinstance(data, dict):
            return f"ConvertAPI error: {response.status_code} {response.reason_phrase}".rstrip(), {}

        message = data.get("Message") or default
        invalid_parameters = data.get("InvalidParameters") or {}
        if isinstance(invalid_parameters, dict) and invalid_parameters:
            rendered = ", ".join(f"{key}: {value}" for key, value in invalid_parameters.items())
            message = f"{message} ({rendered})"
        else:
            invalid_parameters = {}

        return message, invalid_parameters
