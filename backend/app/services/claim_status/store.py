"""
SQLAlchemy-backed Claim Store.

Every public method either returns or raises a claim status error; raw
SQLAlchemy errors are rolled back and surfaced as ``StorageError``.
"""
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional, Sequence, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.db.models import Claim, ClaimStatusEntry
from app.services.claim_status.exceptions import ClaimNotFoundError, StorageError

logger = get_logger(__name__)

ClaimId = Union[str, uuid.UUID]


def as_claim_uuid(claim_id: ClaimId) -> Optional[uuid.UUID]:
    """Parse a claim id; None when it cannot be a valid id."""
    if isinstance(claim_id, uuid.UUID):
        return claim_id
    try:
        return uuid.UUID(str(claim_id))
    except (TypeError, ValueError, AttributeError):
        return None


class ClaimStore:
    """Persisted claims and their append-only status history."""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Claim store {operation} failed: {e}")
            raise StorageError(f"Claim store {operation} failed", original_error=e) from e

    def find_by_id(self, claim_id: ClaimId) -> Optional[Claim]:
        cid = as_claim_uuid(claim_id)
        if cid is None:
            return None
        with self._guard("find_by_id"):
            return self.db.query(Claim).filter(Claim.claim_id == cid).first()

    def find_by_claim_number(self, claim_number: str) -> Optional[Claim]:
        """Resolve an external claim reference (claim number or clearinghouse id)."""
        with self._guard("find_by_claim_number"):
            claim = self.db.query(Claim).filter(Claim.claim_number == claim_number).first()
            if claim is None:
                claim = (
                    self.db.query(Claim)
                    .filter(Claim.clearinghouse_claim_id == claim_number)
                    .first()
                )
            return claim

    def update(self, claim_id: ClaimId, patch: dict[str, Any]) -> Claim:
        with self._guard("update"):
            claim = self.find_by_id(claim_id)
            if claim is None:
                raise ClaimNotFoundError(str(claim_id))
            for field, value in patch.items():
                setattr(claim, field, value)
            self.db.commit()
            self.db.refresh(claim)
            return claim

    def query(
        self,
        *criteria: Any,
        order_by: Sequence[Any] = (),
        limit: Optional[int] = None,
    ) -> list[Claim]:
        """Filtered claim query; ``criteria`` are SQLAlchemy filter expressions."""
        with self._guard("query"):
            q = self.db.query(Claim)
            if criteria:
                q = q.filter(*criteria)
            if order_by:
                q = q.order_by(*order_by)
            if limit is not None:
                q = q.limit(limit)
            return q.all()

    def history(self, claim_id: ClaimId) -> list[ClaimStatusEntry]:
        cid = as_claim_uuid(claim_id)
        if cid is None:
            return []
        with self._guard("history"):
            return (
                self.db.query(ClaimStatusEntry)
                .filter(ClaimStatusEntry.claim_id == cid)
                .order_by(ClaimStatusEntry.entry_id)
                .all()
            )

    def entries_between(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[ClaimStatusEntry]:
        """History entries with ``start <= timestamp <= end`` (open bounds when None)."""
        with self._guard("entries_between"):
            q = self.db.query(ClaimStatusEntry)
            if start is not None:
                q = q.filter(ClaimStatusEntry.timestamp >= start)
            if end is not None:
                q = q.filter(ClaimStatusEntry.timestamp <= end)
            return q.order_by(ClaimStatusEntry.entry_id).all()

    def append_status(
        self,
        claim_id: ClaimId,
        entry_fields: dict[str, Any],
        claim_patch: dict[str, Any],
    ) -> Tuple[Claim, ClaimStatusEntry]:
        """
        Append a history entry and apply ``claim_patch`` in one transaction.

        The claim row is locked for the duration so concurrent updates to the
        same claim serialise and no entry is lost. ``last_status_update``
        never moves backwards.
        """
        cid = as_claim_uuid(claim_id)
        if cid is None:
            raise ClaimNotFoundError(str(claim_id))

        with self._guard("append_status"):
            claim = (
                self.db.query(Claim)
                .filter(Claim.claim_id == cid)
                .with_for_update()
                .first()
            )
            if claim is None:
                raise ClaimNotFoundError(str(claim_id))

            entry = ClaimStatusEntry(
                claim_id=claim.claim_id,
                previous_status=claim.status,
                **entry_fields,
            )
            self.db.add(entry)

            patch = dict(claim_patch)
            new_ts = patch.get("last_status_update")
            if new_ts is not None and claim.last_status_update is not None:
                patch["last_status_update"] = max(new_ts, claim.last_status_update)
            for field, value in patch.items():
                setattr(claim, field, value)

            self.db.commit()
            self.db.refresh(claim)
            self.db.refresh(entry)
            return claim, entry
