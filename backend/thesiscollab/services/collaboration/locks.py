from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock, RLock
from typing import Dict, Iterator, Optional
from uuid import UUID

logger = logging.getLogger(__name__)


class DocumentLockTimeout(RuntimeError):
    """Raised when a document stays locked longer than the configured timeout."""

    def __init__(self, document_id: UUID, timeout: float):
        super().__init__(f"Document {document_id} is busy (waited {timeout:.1f}s)")
        self.document_id = document_id
        self.timeout = timeout


@dataclass
class _Entry:
    lock: RLock = field(default_factory=RLock)
    holders: int = 0


@dataclass
class DocumentLockRegistry:
    """Thread-safe, in-process mutual exclusion keyed by document id.

    Entries are reference counted and dropped once nobody holds or waits on
    them. Single-node only; across processes the row lock taken by the
    persistence layer does the serializing.
    """

    timeout: Optional[float] = None
    _guard: Lock = field(default_factory=Lock, init=False, repr=False)
    _entries: Dict[UUID, _Entry] = field(default_factory=dict, init=False, repr=False)

    def _resolve_timeout(self, timeout: Optional[float]) -> float:
        if timeout is not None:
            return timeout
        if self.timeout is not None:
            return self.timeout
        from thesiscollab.core.config import get_settings

        return get_settings().LOCK_TIMEOUT_SECONDS

    @contextmanager
    def hold(self, document_id: UUID, timeout: Optional[float] = None) -> Iterator[None]:
        wait = self._resolve_timeout(timeout)
        with self._guard:
            entry = self._entries.setdefault(document_id, _Entry())
            entry.holders += 1

        acquired = entry.lock.acquire(timeout=wait)
        try:
            if not acquired:
                logger.warning("Timed out after %.1fs waiting for document %s", wait, document_id)
                raise DocumentLockTimeout(document_id, wait)
            yield
        finally:
            if acquired:
                entry.lock.release()
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    self._entries.pop(document_id, None)

    def is_tracked(self, document_id: UUID) -> bool:
        with self._guard:
            return document_id in self._entries


document_locks = DocumentLockRegistry()
