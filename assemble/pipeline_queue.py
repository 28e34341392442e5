"""
Queue model for the assembly pipeline.

Holds the ordered list of files waiting to be merged, each with its own
processing status. The executor is the only writer of item status while a
run is in flight; the queue refuses reorders and removals during that time.
"""

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .utils.error_handling import (
    InvalidTransitionError,
    ItemNotFoundError,
    QueueBusyError,
)

logger = logging.getLogger(__name__)


class ItemStatus(str, Enum):
    """Processing status of a single queue item."""
    PENDING = "pending"
    UPLOADING = "uploading"
    CONVERTING = "converting"
    MERGING = "merging"
    DONE = "done"
    ERROR = "error"


TERMINAL_STATUSES = {ItemStatus.DONE, ItemStatus.ERROR}

# Forward progression; ERROR is reachable from every non-terminal state
ALLOWED_TRANSITIONS: Dict[ItemStatus, set] = {
    ItemStatus.PENDING: {ItemStatus.UPLOADING, ItemStatus.MERGING},
    ItemStatus.UPLOADING: {ItemStatus.UPLOADING, ItemStatus.CONVERTING},
    ItemStatus.CONVERTING: {ItemStatus.MERGING},
    ItemStatus.MERGING: {ItemStatus.DONE},
    ItemStatus.DONE: set(),
    ItemStatus.ERROR: set(),
}


@dataclass
class RawFile:
    """A user-supplied file: original name plus raw bytes."""

    name: str
    content: bytes

    @property
    def extension(self) -> str:
        """Lower-cased extension without the dot, empty when there is none."""
        if "." not in self.name:
            return ""
        return self.name.rsplit(".", 1)[-1].lower()

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class QueueItem:
    """One file awaiting inclusion in the merged output."""

    payload: RawFile
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: ItemStatus = ItemStatus.PENDING
    upload_progress: Optional[int] = None
    error_message: Optional[str] = None

    @property
    def name(self) -> str:
        return self.payload.name

    def transition(
        self,
        status: ItemStatus,
        error: Optional[str] = None,
        upload_progress: Optional[int] = None
    ) -> None:
        """
        Move the item to ``status``, enforcing the per-item state machine.

        Args:
            status: Target status
            error: Error message, only used when moving to ``error``
            upload_progress: Percentage of bytes sent, only kept while uploading

        Raises:
            InvalidTransitionError: If the move is not allowed from the current status
        """
        allowed = ALLOWED_TRANSITIONS[self.status]
        if status == ItemStatus.ERROR:
            if self.status in TERMINAL_STATUSES:
                raise InvalidTransitionError(
                    f"Cannot fail item in terminal status '{self.status.value}'",
                    item_id=self.id
                )
        elif status not in allowed:
            raise InvalidTransitionError(
                f"Invalid transition {self.status.value} -> {status.value}",
                item_id=self.id
            )

        self.status = status
        self.upload_progress = upload_progress if status == ItemStatus.UPLOADING else None
        self.error_message = (error or "Failed to process file.") if status == ItemStatus.ERROR else None

    def reset(self) -> None:
        self.status = ItemStatus.PENDING
        self.upload_progress = None
        self.error_message = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.payload.name,
            "extension": self.payload.extension,
            "size": self.payload.size,
            "status": self.status.value,
            "upload_progress": self.upload_progress,
            "error_message": self.error_message,
        }


class PipelineQueue:
    """Ordered, mutable collection of queue items."""

    def __init__(self):
        self._items: List[QueueItem] = []
        self._running = False

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> Tuple[QueueItem, ...]:
        """Current items in queue order."""
        return tuple(self._items)

    @property
    def running(self) -> bool:
        return self._running

    def get(self, item_id: str) -> Optional[QueueItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def _index_of(self, item_id: str) -> int:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return index
        return -1

    def _ensure_idle(self, operation: str) -> None:
        if self._running:
            raise QueueBusyError(f"Cannot {operation} while a pipeline run is in progress")

    def enqueue(self, files: Iterable[RawFile]) -> List[QueueItem]:
        """Append new items with status ``pending``; content is not inspected."""
        added = [QueueItem(payload=raw) for raw in files]
        self._items.extend(added)
        logger.debug(f"Enqueued {len(added)} item(s), queue size {len(self._items)}")
        return added

    def reorder(self, item_id: str, new_index: int) -> None:
        """
        Move one item to ``new_index`` (remove then insert).

        The index is clamped into the valid range, so every other item keeps
        its relative order.

        Raises:
            ItemNotFoundError: If no item has ``item_id``
            QueueBusyError: If a run is in flight
        """
        self._ensure_idle("reorder items")
        current = self._index_of(item_id)
        if current < 0:
            raise ItemNotFoundError(f"Queue item not found: {item_id}", item_id=item_id)

        item = self._items.pop(current)
        target = max(0, min(new_index, len(self._items)))
        self._items.insert(target, item)

    def remove(self, item_id: str) -> bool:
        """Delete an item; unknown ids are ignored. Returns whether one was removed."""
        self._ensure_idle("remove items")
        index = self._index_of(item_id)
        if index < 0:
            return False
        del self._items[index]
        return True

    def reset_for_run(self) -> None:
        """Put every item back to ``pending`` so reruns start clean."""
        for item in self._items:
            item.reset()

    def begin_run(self) -> Tuple[QueueItem, ...]:
        """
        Mark the queue as running and return the ordered snapshot for the run.

        Raises:
            QueueBusyError: If another run is already in flight
        """
        self._ensure_idle("start a run")
        self._running = True
        self.reset_for_run()
        return self.items

    def end_run(self) -> None:
        self._running = False
