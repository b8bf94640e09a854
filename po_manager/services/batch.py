"""
batch.py — Aggregate result for bulk PO operations.

Bulk approve, bulk delete, bulk export and bulk notify all iterate their ids
sequentially and record each outcome here. A failing item is rolled back on
its own and never aborts its siblings.

Called by: services/po_lifecycle.py, services/po_export.py, services/po_notify.py
Depends on: exceptions
"""

import logging
from dataclasses import dataclass, field

from ..exceptions import POManagerError

INTERNAL_ERROR = "internal_error"


@dataclass
class BatchResult:
    succeeded: list = field(default_factory=list)
    failed: list[tuple] = field(default_factory=list)  # (id, error kind)

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def failed_ids(self) -> list:
        return [item_id for item_id, _ in self.failed]

    def add_success(self, item_id) -> None:
        self.succeeded.append(item_id)

    def add_failure(self, item_id, kind: str) -> None:
        self.failed.append((item_id, kind))

    def summary(self, verb: str) -> str:
        """Human-readable toast text, e.g. '2 POs approved. 1 failed.'"""
        noun = "PO" if self.succeeded_count == 1 else "POs"
        text = f"{self.succeeded_count} {noun} {verb}."
        if self.failed_count:
            text += f" {self.failed_count} failed."
        return text

    def to_dict(self) -> dict:
        return {
            "succeeded": list(self.succeeded),
            "failed": [{"id": item_id, "error": kind} for item_id, kind in self.failed],
            "succeeded_count": self.succeeded_count,
            "failed_count": self.failed_count,
        }


def run_batch(db, item_ids, action, log: logging.Logger, label: str) -> BatchResult:
    """Apply `action(item_id)` to each id, committing or rolling back per item."""
    result = BatchResult()
    for item_id in item_ids:
        try:
            action(item_id)
            db.commit()
        except POManagerError as e:
            db.rollback()
            result.add_failure(item_id, e.kind)
            log.warning(f"{label} failed for {item_id}: {e}")
        except Exception:
            db.rollback()
            result.add_failure(item_id, INTERNAL_ERROR)
            log.exception(f"{label} crashed for {item_id}")
        else:
            result.add_success(item_id)
    return result
