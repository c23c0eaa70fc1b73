"""Gap analyzer: price and classify the uncovered days of a rental.

A gap is a ``NONE`` timeline segment clipped to the financial window
``[rental start, min(rental end or today, today)]``. Days after today are
not financial exposure yet; only alerts look forward.

Each gap is priced as ``(monthly cost / 30) * days`` with the monthly cost
of the rented products supplied by the caller's pricing function, and
classified:

- ``CNAM_PENDING``: before the first qualifying bond while a bond request
  covering the window awaits approval, or after a bond whose pending
  renewal covers the gap,
- ``CNAM_EXPIRED``: after a completed bond that ended before the rental did
  and has no pending renewal covering the gap,
- an operator reason (pause, maintenance, other) when the operator billed
  the gap with an annotated gap period,
- ``UNCOVERED`` otherwise.

Gaps longer than two weeks, and gaps awaiting a bond approval, are HIGH
severity whatever reason the operator recorded.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .bonds import (
    CoverageBond,
    effective_status,
    qualifying_bonds,
    resolve_statuses,
    successors_of,
)
from .config import GapConfig
from .decimal_utils import ZERO, prorate, sum_decimals, to_decimal
from .intervals import TimeInterval, clamp_to_today, duration_days, intersect, overlaps
from .models import (
    OPERATOR_GAP_REASONS,
    BondStatus,
    CoverageSource,
    GapReason,
    RentalPeriod,
    Severity,
)
from .payments import PaymentPeriod
from .timeline import Timeline

logger = logging.getLogger(__name__)

# (product ids, day) -> monthly rental cost of those products on that day
PricingFunction = Callable[[Sequence[str], date], Decimal]


@dataclass(frozen=True)
class Gap:
    """A priced run of uncovered rental days.

    Attributes:
        interval: Uncovered days.
        duration_days: Number of days in ``interval``.
        amount: Amount to bill the patient for the gap.
        severity: Financial risk of the gap.
        reason: Why the days are uncovered.
        related_bond_id: Bond the reason refers to (pending or expired bond).
        payment_period_id: Gap payment period already billing these days.
    """

    interval: TimeInterval
    duration_days: int
    amount: Decimal
    severity: Severity
    reason: GapReason
    related_bond_id: Optional[str] = None
    payment_period_id: Optional[str] = None

    @property
    def is_filled(self) -> bool:
        return self.payment_period_id is not None


@dataclass(frozen=True)
class GapAnalysis:
    """Gaps of one reconciliation pass and their total amount."""

    gaps: Tuple[Gap, ...] = field(default_factory=tuple)
    total_amount: Decimal = ZERO

    @property
    def unfilled(self) -> List[Gap]:
        return [g for g in self.gaps if not g.is_filled]


def financial_window(rental: RentalPeriod, today: date) -> Optional[TimeInterval]:
    """Days of the rental that count as financial exposure on ``today``."""
    return clamp_to_today(rental.interval, today)


def monthly_cost(pricing: PricingFunction, product_ids: Sequence[str], day: date) -> Decimal:
    cost = to_decimal(pricing(product_ids, day))
    if cost < ZERO:
        raise ValueError(f"Pricing returned a negative monthly cost ({cost}) for {day}")
    return cost


def pending_bond_for_gap(
    interval: TimeInterval, bonds: Sequence[CoverageBond]
) -> Optional[CoverageBond]:
    """Return the bond request whose approval would fund ``interval``, if any.

    That is a pending request covering a gap before the first qualifying
    bond, or a pending renewal of a bond that ended before the gap.
    """
    funding = qualifying_bonds(bonds)
    earliest = funding[0] if funding else None
    precedes_coverage = earliest is None or interval.end < earliest.coverage_start  # type: ignore[operator]
    if precedes_coverage:
        for bond in bonds:
            if bond.status != BondStatus.PENDING_APPROVAL:
                continue
            window = bond.coverage_interval
            if window is None or overlaps(window, interval):
                return bond

    ended_before = [b for b in funding if b.coverage_end < interval.start]  # type: ignore[operator]
    if ended_before:
        previous = max(ended_before, key=lambda b: (b.coverage_end, b.id))
        for successor in successors_of(previous.id, bonds):
            if successor.status != BondStatus.PENDING_APPROVAL:
                continue
            window = successor.coverage_interval
            if window is None or overlaps(window, interval):
                return successor
    return None


def classify_gap_reason(
    interval: TimeInterval,
    rental: RentalPeriod,
    bonds: Sequence[CoverageBond],
    today: date,
    filling_period: Optional[PaymentPeriod] = None,
) -> Tuple[GapReason, Optional[str]]:
    """Explain why ``interval`` is uncovered.

    Returns:
        The reason and the id of the bond it refers to, if any.
    """
    if filling_period is not None and filling_period.gap_reason in OPERATOR_GAP_REASONS:
        return filling_period.gap_reason, None  # type: ignore[return-value]

    pending = pending_bond_for_gap(interval, bonds)
    if pending is not None:
        return GapReason.CNAM_PENDING, pending.id

    funding = qualifying_bonds(bonds)
    ended_before = [b for b in funding if b.coverage_end < interval.start]  # type: ignore[operator]
    if ended_before:
        previous = max(ended_before, key=lambda b: (b.coverage_end, b.id))
        ended_early = rental.end_date is None or previous.coverage_end < rental.end_date  # type: ignore[operator]
        if effective_status(previous, today) == BondStatus.COMPLETED and ended_early:
            return GapReason.CNAM_EXPIRED, previous.id

    if filling_period is not None and filling_period.gap_reason is not None:
        return filling_period.gap_reason, None
    return GapReason.UNCOVERED, None


def gap_severity(duration: int, awaiting_approval: bool, config: GapConfig) -> Severity:
    """HIGH for long gaps and gaps awaiting insurer approval, MEDIUM otherwise."""
    if duration > config.long_gap_days or awaiting_approval:
        return Severity.HIGH
    return Severity.MEDIUM


def price_gap(
    interval: TimeInterval,
    rental: RentalPeriod,
    pricing: PricingFunction,
    config: GapConfig,
) -> Decimal:
    """Amount billed for ``interval`` at the rental's monthly cost."""
    cost = monthly_cost(pricing, rental.product_ids, interval.start)
    return prorate(cost, duration_days(interval), config.days_per_month)


def analyze_gaps(
    timeline: Timeline,
    rental: RentalPeriod,
    bonds: Sequence[CoverageBond],
    pricing: PricingFunction,
    today: date,
    periods: Sequence[PaymentPeriod] = (),
    config: Optional[GapConfig] = None,
) -> GapAnalysis:
    """Find, classify and price the gaps of a timeline.

    Args:
        timeline: Timeline built from the same inputs.
        rental: The rental being reconciled.
        bonds: All bonds of the rental.
        pricing: Monthly cost of a product set on a given day.
        today: Reference date bounding financial exposure.
        periods: Payment periods, used to read operator gap reasons.
        config: Gap thresholds; defaults to :class:`GapConfig`.

    Returns:
        Gaps in chronological order and their total amount.
    """
    config = config or GapConfig()
    window = financial_window(rental, today)
    if window is None:
        return GapAnalysis()

    resolved = resolve_statuses(bonds, today)
    periods_by_id: Dict[str, PaymentPeriod] = {p.id: p for p in periods}

    gaps: List[Gap] = []
    for segment in timeline.by_source(CoverageSource.NONE):
        part = intersect(segment.interval, window)
        if part is None:
            continue
        filling = periods_by_id.get(segment.payment_period_id) if segment.payment_period_id else None
        reason, bond_id = classify_gap_reason(part, rental, resolved, today, filling)
        awaiting = pending_bond_for_gap(part, resolved) is not None
        days = duration_days(part)
        gaps.append(
            Gap(
                interval=part,
                duration_days=days,
                amount=price_gap(part, rental, pricing, config),
                severity=gap_severity(days, awaiting, config),
                reason=reason,
                related_bond_id=bond_id,
                payment_period_id=segment.payment_period_id,
            )
        )

    total = sum_decimals(g.amount for g in gaps)
    logger.debug(f"Rental {rental.rental_id}: {len(gaps)} gaps totalling {total}")
    return GapAnalysis(gaps=tuple(gaps), total_amount=total)
