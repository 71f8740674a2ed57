"""
Claim status history model (append-only)
"""
from sqlalchemy import Column, String, DateTime, Enum, ForeignKey, Integer, Text
from sqlalchemy.dialects.postgresql import UUID, JSON
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.db.models.claim import ClaimStatus, StatusSource


class ClaimStatusEntry(Base):
    """One status transition of a claim. Rows are never updated or deleted."""

    __tablename__ = "claim_status_history"

    # Autoincrement key doubles as the insertion order
    entry_id = Column(Integer, primary_key=True, autoincrement=True)
    claim_id = Column(UUID(as_uuid=True), ForeignKey("claims.claim_id"), nullable=False, index=True)

    status = Column(Enum(ClaimStatus), nullable=False)
    previous_status = Column(Enum(ClaimStatus), nullable=True)
    timestamp = Column(DateTime, nullable=False, index=True)

    reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    source = Column(Enum(StatusSource), default=StatusSource.MANUAL, nullable=False)
    actor_id = Column(String(100), nullable=True)  # None for system updates

    # External tracking
    reference_number = Column(String(100), nullable=True)
    status_code = Column(String(20), nullable=True)
    status_code_description = Column(String(200), nullable=True)

    # Payment / denial / pend fields for the target status
    details = Column(JSON, default=dict)

    claim = relationship("Claim", back_populates="status_history")

    def __repr__(self) -> str:
        return f"<ClaimStatusEntry {self.entry_id} {self.status.value}>"

    def to_dict(self) -> dict:
        return {
            "entry_id": self.entry_id,
            "status": self.status.value,
            "previous_status": self.previous_status.value if self.previous_status else None,
            "timestamp": self.timestamp.isoformat(),
            "reason": self.reason,
            "notes": self.notes,
            "source": self.source.value,
            "actor_id": self.actor_id,
            "reference_number": self.reference_number,
            "status_code": self.status_code,
            "status_code_description": self.status_code_description,
            **(self.details or {}),
        }
