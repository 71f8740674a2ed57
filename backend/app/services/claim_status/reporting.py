"""
Aging and status statistics.

Pure aggregation over claims and history entries; nothing here touches the
database.
"""
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from app.core.time_utils import days_between
from app.db.models import Claim, ClaimStatus, ClaimStatusEntry
from app.services.claim_status.states import PAYMENT_STATUSES, TERMINAL_STATUSES


@dataclass(frozen=True)
class AgingBucket:
    """Inclusive range of whole days since the last status update."""
    name: str
    min_days: int
    max_days: Optional[int] = None  # None = open-ended

    def contains(self, days: int) -> bool:
        if days < self.min_days:
            return False
        return self.max_days is None or days <= self.max_days


DEFAULT_AGING_BUCKETS = (
    AgingBucket("0-30 days", 0, 30),
    AgingBucket("31-60 days", 31, 60),
    AgingBucket("61-90 days", 61, 90),
    AgingBucket("91-120 days", 91, 120),
    AgingBucket("120+ days", 121, None),
)

UNKNOWN_PAYER = "unknown"


def round_amount(amount: Decimal) -> float:
    return float(Decimal(amount).quantize(Decimal("0.01")))


def age_in_days(claim: Claim, now: datetime) -> int:
    """Whole days since the claim's last status activity."""
    last = claim.last_activity
    if last is None:
        return 0
    return max(int(days_between(last, now)), 0)


def is_outstanding(claim: Claim) -> bool:
    """Non-terminal, or denied but still appealable."""
    if claim.status == ClaimStatus.DENIED:
        return (claim.denial_info or {}).get("is_appealable", True) is not False
    return claim.status not in TERMINAL_STATUSES


def bucket_for(days: int, buckets: Iterable[AgingBucket]) -> Optional[AgingBucket]:
    for bucket in buckets:
        if bucket.contains(days):
            return bucket
    return None


def _empty_cell() -> dict:
    return {"count": 0, "total_amount": Decimal("0")}


def _finish(cell: dict) -> dict:
    return {**cell, "total_amount": round_amount(cell["total_amount"])}


def build_aging_report(
    claims: Iterable[Claim],
    now: datetime,
    buckets: tuple[AgingBucket, ...] = DEFAULT_AGING_BUCKETS,
) -> dict:
    """
    Bucket outstanding claims by days since their last status update.

    Returns overall bucket totals plus the same buckets broken down per payer
    and per status. Claims outside every bucket are ignored.
    """
    overall = {b.name: {**_empty_cell(), "claims": []} for b in buckets}
    by_payer: dict[str, dict[str, dict]] = defaultdict(
        lambda: {b.name: _empty_cell() for b in buckets}
    )
    by_status: dict[str, dict[str, dict]] = defaultdict(
        lambda: {b.name: _empty_cell() for b in buckets}
    )
    total_count = 0
    total_amount = Decimal("0")

    for claim in claims:
        if not is_outstanding(claim):
            continue
        bucket = bucket_for(age_in_days(claim, now), buckets)
        if bucket is None:
            continue

        amount = Decimal(claim.total_amount or 0)
        payer = claim.payer_id or UNKNOWN_PAYER
        for cell in (
            overall[bucket.name],
            by_payer[payer][bucket.name],
            by_status[claim.status.value][bucket.name],
        ):
            cell["count"] += 1
            cell["total_amount"] += amount
        overall[bucket.name]["claims"].append(claim.claim_number)
        total_count += 1
        total_amount += amount

    return {
        "generated_at": now.isoformat(),
        "total_count": total_count,
        "total_amount": round_amount(total_amount),
        "buckets": [
            {
                "name": b.name,
                "min_days": b.min_days,
                "max_days": b.max_days,
                **_finish(overall[b.name]),
            }
            for b in buckets
        ],
        "by_payer": {
            payer: {name: _finish(cell) for name, cell in cells.items()}
            for payer, cells in by_payer.items()
        },
        "by_status": {
            status: {name: _finish(cell) for name, cell in cells.items()}
            for status, cells in by_status.items()
        },
    }


def _submission_before(
    history: list[ClaimStatusEntry],
    claim: Optional[Claim],
    moment: datetime,
) -> Optional[datetime]:
    submitted = [
        e.timestamp for e in history
        if e.status == ClaimStatus.SUBMITTED and e.timestamp <= moment
    ]
    if submitted:
        return submitted[-1]
    if claim is not None and claim.submitted_at is not None and claim.submitted_at <= moment:
        return claim.submitted_at
    return None


def compute_status_statistics(
    entries: Iterable[ClaimStatusEntry],
    claims: dict,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> dict:
    """
    Aggregate status activity inside ``[start, end]``.

    ``entries`` is the full history up to ``end`` in insertion order (earlier
    entries are needed to find submission times); ``claims`` maps claim id to
    Claim for amounts.

    - by_status: distinct claims that entered each status in the period
    - average_time_to_payment_days: submission -> first payment entry in the
      period, averaged over paid claims
    - denial_rate: percentage of claims reaching a terminal status in the
      period that were denied
    """
    histories: dict = defaultdict(list)
    for entry in entries:
        histories[entry.claim_id].append(entry)

    def in_period(entry: ClaimStatusEntry) -> bool:
        return (start is None or entry.timestamp >= start) and (
            end is None or entry.timestamp <= end
        )

    status_claims: dict[str, set] = defaultdict(set)
    terminal_claims: set = set()
    denied_claims: set = set()
    payment_days: list[float] = []
    active_claims: set = set()
    transitions = 0

    for claim_id, history in histories.items():
        first_payment = None
        for entry in history:
            if not in_period(entry):
                continue
            transitions += 1
            active_claims.add(claim_id)
            status_claims[entry.status.value].add(claim_id)
            if entry.status in TERMINAL_STATUSES:
                terminal_claims.add(claim_id)
            if entry.status == ClaimStatus.DENIED:
                denied_claims.add(claim_id)
            if entry.status in PAYMENT_STATUSES and first_payment is None:
                first_payment = entry

        if first_payment is not None:
            submitted_at = _submission_before(history, claims.get(claim_id), first_payment.timestamp)
            if submitted_at is not None:
                payment_days.append(days_between(submitted_at, first_payment.timestamp))

    def amount_of(ids: set) -> float:
        total = sum(
            (Decimal(claims[c].total_amount or 0) for c in ids if c in claims),
            Decimal("0"),
        )
        return round_amount(total)

    denial_rate = (
        round(len(denied_claims) / len(terminal_claims) * 100, 2) if terminal_claims else 0.0
    )

    return {
        "period": {
            "start_date": start.isoformat() if start else None,
            "end_date": end.isoformat() if end else None,
        },
        "total_claims": len(active_claims),
        "total_transitions": transitions,
        "by_status": {
            status: {"count": len(ids), "total_amount": amount_of(ids)}
            for status, ids in sorted(status_claims.items())
        },
        "paid_claims": len(payment_days),
        "average_time_to_payment_days": (
            round(sum(payment_days) / len(payment_days), 2) if payment_days else 0.0
        ),
        "terminal_claims": len(terminal_claims),
        "denied_claims": len(denied_claims),
        "denial_rate": denial_rate,
    }
