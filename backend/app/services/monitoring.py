"""
Claim status monitoring.

Follow-up checks run on top of the claim status engine: stale claims,
automatic 276 inquiries for claims waiting on the payer, and timely filing
deadlines. Scheduling is left to the deployment (cron, worker beat...);
these methods are safe to call at any time and never change claim state.
"""
import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from app.core.logging import get_logger
from app.core.time_utils import Clock, utc_now
from app.db.models import Claim, ClaimStatus
from app.services.claim_status import ClaimStatusEngine, ClaimStatusError
from app.services.claim_status.reporting import UNKNOWN_PAYER
from app.services.claim_status.states import INQUIRY_STATUSES, TERMINAL_STATUSES

logger = get_logger(__name__)


@dataclass
class MonitoringConfig:
    stale_claim_days: int = 30
    timely_filing_default_days: int = 90
    timely_filing_warning_days: int = 14
    inquiry_min_age_days: int = 14
    inquiry_max_age_days: int = 90
    attention_limit: int = 50

    @classmethod
    def from_settings(cls, settings) -> "MonitoringConfig":
        return cls(
            stale_claim_days=settings.STALE_CLAIM_DAYS,
            timely_filing_default_days=settings.TIMELY_FILING_DEFAULT_DAYS,
            timely_filing_warning_days=settings.TIMELY_FILING_WARNING_DAYS,
            inquiry_min_age_days=settings.INQUIRY_MIN_AGE_DAYS,
            inquiry_max_age_days=settings.INQUIRY_MAX_AGE_DAYS,
        )


def _group_by_payer(claims: list[Claim]) -> dict[str, list[Claim]]:
    grouped: dict[str, list[Claim]] = defaultdict(list)
    for claim in claims:
        grouped[claim.payer_id or UNKNOWN_PAYER].append(claim)
    return grouped


class ClaimStatusMonitor:
    """Periodic claim follow-up checks."""

    def __init__(
        self,
        engine: ClaimStatusEngine,
        config: Optional[MonitoringConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.engine = engine
        self.store = engine.store
        self.config = config or MonitoringConfig()
        self.clock = clock or engine.clock or utc_now

    def check_stale_claim_status(self) -> dict:
        stale = self.engine.check_stale_claims(self.config.stale_claim_days)

        by_payer = {}
        for payer_id, claims in _group_by_payer(stale).items():
            numbers = [c.claim_number for c in claims]
            by_payer[payer_id] = {
                "payer_name": claims[0].payer_name,
                "count": len(claims),
                "claim_numbers": numbers,
            }
            logger.warning(
                f"Stale claims found: payer={payer_id} count={len(claims)} "
                f"claims={numbers[:5]}"
            )

        logger.info(f"Stale claim check complete: count={len(stale)}")
        return {
            "threshold_days": self.config.stale_claim_days,
            "count": len(stale),
            "by_payer": by_payer,
        }

    def auto_generate_status_inquiries(self) -> dict:
        """One 276 inquiry per payer for claims that have waited long enough."""
        now = self.clock()
        pending = self.store.query(
            Claim.status.in_(list(INQUIRY_STATUSES)),
            Claim.submitted_at >= now - timedelta(days=self.config.inquiry_max_age_days),
            Claim.submitted_at <= now - timedelta(days=self.config.inquiry_min_age_days),
            order_by=(Claim.submitted_at.asc(),),
        )
        if not pending:
            logger.info("No claims require status inquiry")
            return {"count": 0, "total_claims": 0, "inquiries": [], "failures": []}

        batch_size = self.engine.config.max_inquiry_batch
        inquiries = []
        failures = []
        for payer_id, claims in _group_by_payer(pending).items():
            ids = [c.claim_id for c in claims]
            for offset in range(0, len(ids), batch_size):
                chunk = ids[offset:offset + batch_size]
                try:
                    inquiry = self.engine.generate_276_inquiry(chunk)
                except ClaimStatusError as e:
                    logger.error(f"Failed to generate 276 inquiry for payer {payer_id}: {e.message}")
                    failures.append({"payer_id": payer_id, "error": e.message})
                    continue
                inquiries.append({
                    "payer_id": payer_id,
                    "claim_count": len(chunk),
                    "inquiry": inquiry,
                })

        logger.info(
            f"Status inquiry generation complete: payers={len(_group_by_payer(pending))} "
            f"claims={len(pending)} inquiries={len(inquiries)}"
        )
        return {
            "count": len(inquiries),
            "total_claims": len(pending),
            "inquiries": inquiries,
            "failures": failures,
        }

    def check_timely_filing_deadlines(self) -> dict:
        """Claims past (critical) or near (warning) their payer filing deadline."""
        now = self.clock()
        claims = self.store.query(
            Claim.status.notin_(list(TERMINAL_STATUSES)),
            Claim.submitted_at.isnot(None),
        )

        warnings = []
        critical = []
        for claim in claims:
            limit_days = claim.timely_filing_limit_days or self.config.timely_filing_default_days
            deadline = claim.submitted_at + timedelta(days=limit_days)
            days_remaining = math.ceil((deadline - now).total_seconds() / 86400)
            alert = {
                "claim_id": str(claim.claim_id),
                "claim_number": claim.claim_number,
                "payer_id": claim.payer_id,
                "deadline": deadline.isoformat(),
            }
            if days_remaining <= 0:
                critical.append({**alert, "days_overdue": abs(days_remaining)})
            elif days_remaining <= self.config.timely_filing_warning_days:
                warnings.append({**alert, "days_remaining": days_remaining})

        if critical:
            logger.error(
                f"Claims past timely filing deadline: count={len(critical)} "
                f"claims={[a['claim_number'] for a in critical[:10]]}"
            )
        if warnings:
            logger.warning(
                f"Claims approaching timely filing deadline: count={len(warnings)} "
                f"claims={[a['claim_number'] for a in warnings[:10]]}"
            )

        return {
            "total_checked": len(claims),
            "warnings": warnings,
            "critical": critical,
        }

    def get_claims_requiring_attention(self) -> dict:
        limit = self.config.attention_limit
        stale = self.engine.check_stale_claims(self.config.stale_claim_days)
        pended = self.store.query(
            Claim.status == ClaimStatus.PENDED,
            order_by=(Claim.last_status_update.asc(),),
            limit=limit,
        )
        denied = self.store.query(
            Claim.status == ClaimStatus.DENIED,
            order_by=(Claim.last_status_update.desc(),),
            limit=limit,
        )
        filing = self.check_timely_filing_deadlines()

        return {
            "stale_claims": {
                "count": len(stale),
                "claims": [c.to_dict() for c in stale[:20]],
            },
            "pended_claims": {
                "count": len(pended),
                "claims": [c.to_dict() for c in pended],
            },
            "denied_claims": {
                "count": len(denied),
                "claims": [c.to_dict() for c in denied],
            },
            "timely_filing_alerts": {
                "warnings": len(filing["warnings"]),
                "critical": len(filing["critical"]),
                "alerts": [
                    *({**a, "severity": "critical"} for a in filing["critical"]),
                    *({**a, "severity": "warning"} for a in filing["warnings"]),
                ],
            },
        }

    def run_all_checks(self) -> dict:
        stale = self.check_stale_claim_status()
        inquiries = self.auto_generate_status_inquiries()
        filing = self.check_timely_filing_deadlines()

        results = {
            "timestamp": self.clock().isoformat(),
            "stale_claims": {"count": stale["count"]},
            "status_inquiries": {"count": inquiries["count"]},
            "timely_filing": {
                "warnings": len(filing["warnings"]),
                "critical": len(filing["critical"]),
            },
        }
        logger.info(f"All claim status checks complete: {results}")
        return results
