"""
Claim database model
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Column, String, Date, DateTime, Enum, Integer, Numeric
from sqlalchemy.dialects.postgresql import UUID, JSON
from sqlalchemy.orm import relationship

from app.db.base import Base


class ClaimStatus(str, PyEnum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    ACKNOWLEDGED = "acknowledged"
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    PENDED = "pended"  # Payer waiting on information from the provider
    APPROVED_FOR_PAYMENT = "approved_for_payment"
    PAID = "paid"
    PARTIALLY_PAID = "partially_paid"
    DENIED = "denied"
    REJECTED = "rejected"  # Front-end rejection, never adjudicated
    APPEALED = "appealed"
    RESUBMITTED = "resubmitted"
    CANCELLED = "cancelled"
    CLOSED = "closed"


class StatusSource(str, PyEnum):
    MANUAL = "manual"
    EDI_277 = "edi_277"
    PORTAL = "portal"
    API = "api"


class Claim(Base):
    """Billing claim submitted to an insurance payer."""

    __tablename__ = "claims"

    claim_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    claim_number = Column(String(50), unique=True, nullable=False, index=True)
    status = Column(Enum(ClaimStatus), default=ClaimStatus.DRAFT, nullable=False, index=True)

    # Payer / provider / patient
    payer_id = Column(String(50), nullable=True, index=True)
    payer_name = Column(String(200), nullable=True)
    provider_id = Column(String(50), nullable=True, index=True)
    provider_npi = Column(String(10), nullable=True)
    provider_name = Column(String(200), nullable=True)
    patient_name = Column(String(200), nullable=True)
    member_id = Column(String(50), nullable=True)

    service_date = Column(Date, nullable=True)
    total_amount = Column(Numeric(12, 2), default=0)

    clearinghouse_claim_id = Column(String(100), nullable=True, index=True)
    timely_filing_limit_days = Column(Integer, nullable=True)

    # Tracking
    submitted_at = Column(DateTime, nullable=True)
    acknowledged_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    last_status_update = Column(DateTime, nullable=True, index=True)

    # Status-specific payloads:
    # payment_info: {amount, date, check_number, era_number}
    # denial_info: {reason, code, is_appealable}
    # pend_info: {reason, information_requested, response_deadline}
    payment_info = Column(JSON, nullable=True)
    denial_info = Column(JSON, nullable=True)
    pend_info = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    status_history = relationship(
        "ClaimStatusEntry",
        back_populates="claim",
        order_by="ClaimStatusEntry.entry_id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Claim {self.claim_number} ({self.status.value})>"

    @property
    def last_activity(self) -> datetime:
        """Most recent known activity, used for aging and staleness."""
        return self.last_status_update or self.submitted_at or self.created_at

    def to_dict(self) -> dict:
        return {
            "claim_id": str(self.claim_id),
            "claim_number": self.claim_number,
            "status": self.status.value,
            "payer_id": self.payer_id,
            "payer_name": self.payer_name,
            "provider_id": self.provider_id,
            "provider_npi": self.provider_npi,
            "provider_name": self.provider_name,
            "service_date": self.service_date.isoformat() if self.service_date else None,
            "total_amount": float(self.total_amount or 0),
            "clearinghouse_claim_id": self.clearinghouse_claim_id,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "acknowledged_at": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "last_status_update": (
                self.last_status_update.isoformat() if self.last_status_update else None
            ),
            "payment_info": self.payment_info,
            "denial_info": self.denial_info,
            "pend_info": self.pend_info,
        }
