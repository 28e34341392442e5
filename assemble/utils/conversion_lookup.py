"""
Conversion lookup utilities for the /pipeline endpoints.

This module classifies queue items into a handling strategy and answers the
per-run question of whether the remote conversion service is needed.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List

from ..config import FORMAT_STRATEGIES, ConversionStrategy
from ..pipeline_queue import QueueItem, RawFile


@dataclass(frozen=True)
class ResolvedFormat:
    """Strategy chosen for one file, computed once before dispatch."""

    strategy: ConversionStrategy
    extension: str
    description: str

    @property
    def is_remote(self) -> bool:
        return self.strategy == ConversionStrategy.REMOTE_DOCUMENT

    @property
    def unsupported_message(self) -> str:
        if not self.extension:
            return "Unsupported file type: file has no extension"
        return f"Unsupported file type: .{self.extension}"


def resolve_format(raw: RawFile) -> ResolvedFormat:
    """
    Classify a file by its extension.

    Args:
        raw: The file to classify

    Returns:
        ResolvedFormat; unknown or missing extensions resolve to UNSUPPORTED
    """
    extension = raw.extension
    strategy, description = FORMAT_STRATEGIES.get(
        extension,
        (ConversionStrategy.UNSUPPORTED, "Unsupported format")
    )
    return ResolvedFormat(strategy=strategy, extension=extension, description=description)


def needs_remote_service(items: Iterable[QueueItem], compress_output: bool) -> bool:
    """True if any item must be converted remotely or compression is requested."""
    if compress_output:
        return True
    return any(resolve_format(item.payload).is_remote for item in items)


def get_supported_formats() -> Dict[str, List[str]]:
    """
    Get supported extensions grouped by strategy.

    Returns:
        Dictionary mapping strategy names to sorted lists of extensions
    """
    supported: Dict[str, List[str]] = {}
    for extension, (strategy, _) in FORMAT_STRATEGIES.items():
        supported.setdefault(strategy.value, []).append(extension)
    return {strategy: sorted(extensions) for strategy, extensions in supported.items()}
