"""
In-memory receipt store keyed by receipt id.
"""

import logging
import threading
from typing import Dict, List, Optional

from receipt_app.models.receipt import ReceiptResult

logger = logging.getLogger(__name__)


class ReceiptStore:
    """Process-local map of receipt id to processed result."""

    def __init__(self):
        self._receipts: Dict[str, ReceiptResult] = {}
        self._lock = threading.Lock()

    def save(self, result: ReceiptResult) -> ReceiptResult:
        with self._lock:
            self._receipts[result.id] = result
        logger.debug("Receipt stored", extra={"receipt_id": result.id})
        return result

    def get(self, receipt_id: str) -> Optional[ReceiptResult]:
        with self._lock:
            return self._receipts.get(receipt_id)

    def list(self) -> List[ReceiptResult]:
        """All stored results in insertion order."""
        with self._lock:
            return list(self._receipts.values())

    def clear(self) -> None:
        with self._lock:
            self._receipts.clear()


_store = ReceiptStore()


def get_receipt_store() -> ReceiptStore:
    """FastAPI dependency returning the process-wide store."""
    return _store
