"""
Core execution logic for the assembly pipeline.

The executor walks a run snapshot strictly in order, turns every item into
PDF pages (locally or through ConvertAPI), appends them to one accumulating
document and optionally compresses the result. The first failure stops the
run; nothing is retried.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

import httpx
import pymupdf

from .._local_ import LocalConversionFactory
from ..config import CONVERT_API_BASE_URL, CONVERT_API_SERVICE, ConversionStrategy, UPLOAD_CHUNK_SIZE
from ..pipeline_queue import ItemStatus, QueueItem, TERMINAL_STATUSES
from .conversion_lookup import ResolvedFormat, needs_remote_service, resolve_format
from .credentials import CredentialStore
from .error_handling import (
    CompressionError,
    ErrorCode,
    PipelineError,
    UnsupportedFormatError,
)
from .http_client import create_convertapi_client
from .logging_config import log_timing
from .remote_client import ConvertApiClient

logger = logging.getLogger(__name__)

# on_progress(item_id, status, error, upload_progress)
ProgressObserver = Callable[[str, ItemStatus, Optional[str], Optional[int]], None]


@dataclass
class PipelineRun:
    """State of one execution; discarded when the run ends."""

    items: Tuple[QueueItem, ...]
    compress_output: bool
    accumulator: Optional[pymupdf.Document] = None
    page_count: int = 0
    output: Optional[bytes] = None


class PipelineExecutor:
    """Sequential, fail-fast driver for a pipeline run."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        credentials: CredentialStore,
        local_factory: Optional[LocalConversionFactory] = None,
        base_url: str = CONVERT_API_BASE_URL,
        chunk_size: int = UPLOAD_CHUNK_SIZE
    ):
        self.client = client
        self.credentials = credentials
        self.local_factory = local_factory or LocalConversionFactory()
        self.base_url = base_url
        self.chunk_size = chunk_size

    async def execute(
        self,
        items: Sequence[QueueItem],
        compress_output: bool = False,
        on_progress: Optional[ProgressObserver] = None
    ) -> bytes:
        """
        Merge ``items`` into a single PDF.

        Args:
            items: Run snapshot in queue order
            compress_output: Send the merged document through remote compression
            on_progress: Observer invoked synchronously after every item transition

        Returns:
            Final PDF bytes

        Raises:
            PipelineError: The first failure of the run; ``item_id`` names the
                offending item, or is None for run-level failures
        """
        run = await self.run(items, compress_output, on_progress)
        return run.output

    async def run(
        self,
        items: Sequence[QueueItem],
        compress_output: bool = False,
        on_progress: Optional[ProgressObserver] = None
    ) -> PipelineRun:
        """Same as :meth:`execute` but returns the finished run record."""
        run = PipelineRun(items=tuple(items), compress_output=compress_output)
        if not run.items:
            raise PipelineError("No files queued", code=ErrorCode.INVALID_REQUEST)

        for item in run.items:
            item.reset()

        remote = None
        if needs_remote_service(run.items, compress_output):
            api_key = self.credentials.require(CONVERT_API_SERVICE)
            remote = ConvertApiClient(self.client, api_key, base_url=self.base_url, chunk_size=self.chunk_size)

        with log_timing(logger, f"pipeline run of {len(run.items)} item(s)"):
            run.accumulator = self.local_factory.create_accumulator()
            try:
                for item in run.items:
                    await self._process_item(run, item, remote, on_progress)

                run.output = self.local_factory.serialize(run.accumulator)
            finally:
                run.accumulator.close()

            if compress_output:
                run.output = await self._compress(remote, run.output)

        logger.info(f"Pipeline produced {run.page_count} page(s), {len(run.output)} bytes")
        return run

    def _transition(
        self,
        item: QueueItem,
        status: ItemStatus,
        on_progress: Optional[ProgressObserver],
        error: Optional[str] = None,
        upload_progress: Optional[int] = None
    ) -> None:
        item.transition(status, error=error, upload_progress=upload_progress)
        if on_progress is not None:
            on_progress(item.id, item.status, item.error_message, item.upload_progress)

    async def _process_item(
        self,
        run: PipelineRun,
        item: QueueItem,
        remote: Optional[ConvertApiClient],
        on_progress: Optional[ProgressObserver]
    ) -> None:
        resolved = resolve_format(item.payload)
        try:
            run.page_count += await self._convert_item(run, item, resolved, remote, on_progress)
        except PipelineError as e:
            if e.item_id is None:
                e.item_id = item.id
            self._fail_item(item, e.message, on_progress)
            raise
        except Exception as e:
            logger.exception(f"Unexpected error processing {item.name}")
            message = str(e) or "Failed to process file."
            self._fail_item(item, message, on_progress)
            raise PipelineError(message, item_id=item.id, code=ErrorCode.INTERNAL_ERROR) from e

    def _fail_item(self, item: QueueItem, message: str, on_progress: Optional[ProgressObserver]) -> None:
        logger.error(f"Error processing file {item.name}: {message}")
        if item.status not in TERMINAL_STATUSES:
            self._transition(item, ItemStatus.ERROR, on_progress, error=message)

    async def _convert_item(
        self,
        run: PipelineRun,
        item: QueueItem,
        resolved: ResolvedFormat,
        remote: Optional[ConvertApiClient],
        on_progress: Optional[ProgressObserver]
    ) -> int:
        payload = item.payload
        logger.debug(f"Processing {payload.name} via {resolved.strategy.value}: {resolved.description}")

        if resolved.strategy == ConversionStrategy.UNSUPPORTED:
            raise UnsupportedFormatError(resolved.unsupported_message, details={"extension": resolved.extension})

        if resolved.strategy == ConversionStrategy.REMOTE_DOCUMENT:
            self._transition(item, ItemStatus.UPLOADING, on_progress, upload_progress=0)
            pdf_bytes = await remote.convert_to_pdf(
                payload.content,
                payload.name,
                resolved.extension,
                on_upload_progress=lambda percent: self._transition(
                    item, ItemStatus.UPLOADING, on_progress, upload_progress=percent
                )
            )
            self._transition(item, ItemStatus.CONVERTING, on_progress)
            self._transition(item, ItemStatus.MERGING, on_progress)
            pages = self.local_factory.append_pdf_bytes(run.accumulator, pdf_bytes, payload.name)
        elif self.local_factory.supports(resolved.strategy):
            self._transition(item, ItemStatus.MERGING, on_progress)
            pages = self.local_factory.append(
                run.accumulator,
                payload.content,
                payload.name,
                resolved.extension,
                resolved.strategy
            )
        else:
            raise PipelineError(
                f"No local handler for strategy {resolved.strategy.value}",
                code=ErrorCode.INTERNAL_ERROR,
                details={"strategy": resolved.strategy.value, "description": resolved.description}
            )

        self._transition(item, ItemStatus.DONE, on_progress)
        return pages

    async def _compress(self, remote: ConvertApiClient, content: bytes) -> bytes:
        try:
            return await remote.compress_pdf(content)
        except PipelineError as e:
            raise CompressionError(e.message, details=e.details) from e
        except Exception as e:
            logger.exception("Unexpected error during compression")
            raise CompressionError(str(e) or "Failed to compress final output.") from e


async def process_pipeline(
    items: Sequence[QueueItem],
    compress_output: bool = False,
    on_progress: Optional[ProgressObserver] = None,
    client: Optional[httpx.AsyncClient] = None,
    credentials: Optional[CredentialStore] = None
) -> bytes:
    """
    Run the pipeline once without managing an executor.

    A ConvertAPI client is created and closed here when none is supplied.
    """
    owns_client = client is None
    if owns_client:
        client = create_convertapi_client()

    try:
        executor = PipelineExecutor(client, credentials or CredentialStore())
        return await executor.execute(items, compress_output, on_progress)
    finally:
        if owns_client:
            await client.aclose()
