"""
In-Process Reference Store

Implements the store contract the engine relies on:
- assignments carry a version token; writes must present the current one
- the settlement ledger is append-only and written one whole batch at a time
- all access goes through a lock acquired with a bounded timeout

A relational store would provide the same guarantees with a version column
and a transaction around the ledger insert.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace

from .errors import AssignmentNotFound, StaleVersionConflict, StoreTimeout, ValidationError
from .models import Assignment, EntryType, SettlementRecord

logger = logging.getLogger(__name__)


class InMemoryRepository:
    """Assignments and the settlement ledger."""

    def __init__(self, lock_timeout: float = 5.0):
        self.lock_timeout = lock_timeout
        self._lock = threading.RLock()
        self._assignments: dict[str, Assignment] = {}
        self._ledger: list[SettlementRecord] = []
        self._record_ids: set[str] = set()

    @contextmanager
    def transaction(self):
        """Hold the store exclusively. Nested use from the same thread is allowed."""
        if not self._lock.acquire(timeout=self.lock_timeout):
            raise StoreTimeout(f"Store lock not acquired within {self.lock_timeout}s")
        try:
            yield self
        finally:
            self._lock.release()

    # -------------------------------------------------------------------------
    # Assignments
    # -------------------------------------------------------------------------

    def add_assignment(self, assignment: Assignment) -> Assignment:
        with self.transaction():
            if assignment.assignment_id in self._assignments:
                raise ValidationError(f"Assignment {assignment.assignment_id} already exists")
            stored = replace(assignment, version=1)
            self._assignments[stored.assignment_id] = stored
            return stored

    def get_assignment(self, assignment_id: str) -> Assignment:
        with self.transaction():
            try:
                return self._assignments[assignment_id]
            except KeyError:
                raise AssignmentNotFound(f"Assignment not found: {assignment_id}") from None

    def check_version(self, assignment_id: str, expected_version: int) -> Assignment:
        current = self.get_assignment(assignment_id)
        if current.version != expected_version:
            logger.warning(
                f"Version conflict on assignment {assignment_id}: "
                f"expected {expected_version}, stored {current.version}"
            )
            raise StaleVersionConflict(assignment_id, expected_version, current.version)
        return current

    def save_assignment(self, updated: Assignment, expected_version: int) -> Assignment:
        """Store a new version of an assignment if nobody else wrote first."""
        with self.transaction():
            current = self.check_version(updated.assignment_id, expected_version)
            stored = replace(updated, version=current.version + 1)
            self._assignments[stored.assignment_id] = stored
            return stored

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    def append_batch(self, records: list[SettlementRecord]) -> None:
        """Append all records of one batch, or none of them."""
        if not records:
            return
        batch_ids = {r.batch_id for r in records}
        assignment_ids = {r.assignment_id for r in records}
        if len(batch_ids) != 1 or len(assignment_ids) != 1:
            raise ValidationError("A ledger batch must cover exactly one batch id and one assignment")

        with self.transaction():
            duplicates = [r.record_id for r in records if r.record_id in self._record_ids]
            if duplicates:
                raise ValidationError(f"Ledger records already written: {duplicates}")
            self._ledger.extend(records)
            self._record_ids.update(r.record_id for r in records)

        logger.info(f"Ledger batch {batch_ids.pop()} written: {len(records)} records")

    def ledger(self) -> list[SettlementRecord]:
        with self.transaction():
            return list(self._ledger)

    def records_for(self, assignment_id: str) -> list[SettlementRecord]:
        with self.transaction():
            return [r for r in self._ledger if r.assignment_id == assignment_id]

    def active_settlement(self, assignment_id: str) -> list[SettlementRecord]:
        """Settlement records for the assignment that have not been reversed."""
        records = self.records_for(assignment_id)
        reversed_ids = {r.reverses_record_id for r in records if r.entry_type is EntryType.COMPENSATION}
        return [
            r for r in records
            if r.entry_type is EntryType.SETTLEMENT and r.record_id not in reversed_ids
        ]
