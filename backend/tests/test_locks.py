"""Tests for per-document serialization.

Run:
    python -m pytest tests/test_locks.py -v
"""

import threading
import time
import uuid

import pytest

from thesiscollab.services.collaboration.locks import DocumentLockRegistry, DocumentLockTimeout


@pytest.fixture
def registry():
    return DocumentLockRegistry(timeout=2)


class TestDocumentLockRegistry:
    def test_same_document_is_serialized(self, registry):
        document_id = uuid.uuid4()
        active = []
        overlaps = []

        def worker():
            with registry.hold(document_id):
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
                time.sleep(0.01)
                active.pop()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert overlaps == []
        assert not registry.is_tracked(document_id)

    def test_different_documents_do_not_block(self, registry):
        first, second = uuid.uuid4(), uuid.uuid4()
        entered = threading.Event()

        def other():
            with registry.hold(second, timeout=1):
                entered.set()

        with registry.hold(first):
            thread = threading.Thread(target=other)
            thread.start()
            assert entered.wait(1)
            thread.join()

    def test_timeout(self, registry):
        document_id = uuid.uuid4()
        errors = []

        def contender():
            try:
                with registry.hold(document_id, timeout=0.05):
                    pass
            except DocumentLockTimeout as exc:
                errors.append(exc)

        with registry.hold(document_id):
            thread = threading.Thread(target=contender)
            thread.start()
            thread.join()

        assert len(errors) == 1
        assert errors[0].document_id == document_id
        assert not registry.is_tracked(document_id)

    def test_reentrant_for_the_holding_thread(self, registry):
        document_id = uuid.uuid4()
        with registry.hold(document_id):
            with registry.hold(document_id):
                assert registry.is_tracked(document_id)
        assert not registry.is_tracked(document_id)

    def test_released_after_exception(self, registry):
        document_id = uuid.uuid4()
        with pytest.raises(RuntimeError):
            with registry.hold(document_id):
                raise RuntimeError("boom")
        assert not registry.is_tracked(document_id)
