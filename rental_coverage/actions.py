"""Gap-filling and renewal actions.

Actions are the only operations that change the caller's collections. Each
returns an :class:`~rental_coverage.errors.Outcome`; on failure the
collections are left exactly as they were, and the caller is expected to
rebuild the timeline and try again after fixing the input.

Synthesized payment periods are flagged ``needs_review``: they record the
intent to bill the patient, not a payment received.
"""

from datetime import date
from decimal import Decimal
import logging
from typing import List, MutableSequence, Optional, Sequence
import uuid

from .bonds import (
    CoverageBond,
    effective_status,
    find_bond,
    successors_of,
    transition,
)
from .config import DraftConfig, GapConfig
from .decimal_utils import prorate, to_decimal
from .errors import InvalidBondTransition, Outcome, ReconciliationError, StaleTimeline
from .gap_analyzer import Gap, PricingFunction, classify_gap_reason, price_gap
from .intervals import (
    TimeInterval,
    add_days,
    add_months,
    day_after,
    day_before,
    duration_days,
    overlaps,
)
from .models import (
    QUALIFYING_STATUSES,
    BondStatus,
    CoverageSource,
    GapReason,
    PaymentMethod,
    RentalPeriod,
)
from .payments import PaymentPeriod
from .timeline import build_timeline

logger = logging.getLogger(__name__)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _bills_days(period: PaymentPeriod) -> bool:
    # Periods that already account for a day: direct payments and gap bills.
    return period.provides_direct_coverage or period.is_gap_period


def create_payment_period_for_gap(
    gap: Gap,
    periods: MutableSequence[PaymentPeriod],
    product_ids: Sequence[str] = (),
    config: Optional[GapConfig] = None,
    period_id: Optional[str] = None,
) -> Outcome[PaymentPeriod]:
    """Bill a gap to the patient with a new gap payment period.

    The gap must not overlap a period that already bills its days: a direct
    payment or another gap period. Non-gap periods with the CNAM method are
    ignored here, since the insurer funds them and the wizard drafts one over
    the whole rental for CNAM clients.

    Args:
        gap: Gap from the latest analysis.
        periods: The rental's payment periods; appended to on success.
        product_ids: Products billed by the new period.
        config: Gap rules (payment method of the new period).
        period_id: Id of the new period; generated when omitted.

    Returns:
        The new period, or ``StaleTimeline`` if the gap is already billed
        or paid, which means the gap comes from an outdated analysis.
    """
    config = config or GapConfig()
    if gap.is_filled:
        return Outcome.failure(
            StaleTimeline(
                f"Gap {gap.interval} is already billed by period {gap.payment_period_id}",
                related_id=gap.payment_period_id,
            )
        )
    for existing in periods:
        if _bills_days(existing) and overlaps(existing.interval, gap.interval):
            logger.warning(f"Gap {gap.interval} overlaps period {existing.id}; timeline is stale")
            return Outcome.failure(
                StaleTimeline(
                    f"Gap {gap.interval} overlaps payment period {existing.id}; "
                    "rebuild the timeline before filling gaps",
                    related_id=existing.id,
                )
            )

    period = PaymentPeriod(
        id=period_id or _new_id("gap"),
        interval=gap.interval,
        amount=gap.amount,
        method=config.gap_payment_method,
        is_gap_period=True,
        gap_reason=gap.reason,
        product_ids=tuple(product_ids),
        notes=f"Gap billed for {gap.duration_days} days ({gap.reason.value})",
        needs_review=True,
    )
    periods.append(period)
    logger.info(f"Created gap period {period.id} for {gap.interval}: {period.amount}")
    return Outcome.success(period)


def initiate_cnam_renewal(
    bond_id: str,
    bonds: MutableSequence[CoverageBond],
    today: Optional[date] = None,
    new_bond_id: Optional[str] = None,
) -> Outcome[CoverageBond]:
    """Draft a renewal request for a bond that was once valid.

    The draft is PENDING_APPROVAL, starts the day after the predecessor's
    coverage ends and copies its type, months and amount for the operator
    to edit. The predecessor is not modified.

    Returns:
        The draft bond, or ``InvalidBondTransition`` if the bond is unknown,
        was never approved, or already has a live renewal.
    """
    bond = find_bond(bonds, bond_id)
    if bond is None:
        return Outcome.failure(
            InvalidBondTransition(f"Unknown bond {bond_id}", related_id=bond_id)
        )

    status = effective_status(bond, today) if today is not None else bond.status
    if status not in QUALIFYING_STATUSES:
        logger.warning(f"Renewal refused for bond {bond_id} in status {status.value}")
        return Outcome.failure(
            InvalidBondTransition(
                f"Bond {bond_id} is {status.value}; only a bond that was approved can be renewed",
                related_id=bond_id,
            )
        )

    existing = successors_of(bond_id, bonds)
    if existing:
        return Outcome.failure(
            InvalidBondTransition(
                f"Bond {bond_id} is already renewed by {existing[0].id}", related_id=bond_id
            )
        )

    start = day_after(bond.coverage_end)  # type: ignore[arg-type]
    end = day_before(add_months(start, bond.covered_months)) if bond.covered_months > 0 else None
    renewal = CoverageBond(
        id=new_bond_id or _new_id("bond"),
        bond_type=bond.bond_type,
        status=BondStatus.PENDING_APPROVAL,
        coverage_start=start,
        coverage_end=end,
        covered_months=bond.covered_months,
        total_amount=bond.total_amount,
        predecessor_bond_id=bond.id,
    )
    bonds.append(renewal)
    logger.info(f"Drafted renewal {renewal.id} of bond {bond_id} from {start}")
    return Outcome.success(renewal)


def apply_transition(
    bond_id: str,
    bonds: MutableSequence[CoverageBond],
    new_status: BondStatus,
    **terms,
) -> Outcome[CoverageBond]:
    """Record an insurer decision on a bond of the collection.

    Args:
        bond_id: Bond to update.
        bonds: The rental's bonds; the bond is replaced in place on success.
        new_status: Status decided by the insurer.
        **terms: Coverage terms sent with the decision (see :func:`transition`).
    """
    for index, bond in enumerate(bonds):
        if bond.id == bond_id:
            try:
                updated = transition(bond, new_status, **terms)
            except InvalidBondTransition as exc:
                logger.warning(str(exc))
                return Outcome.failure(exc)
            bonds[index] = updated
            return Outcome.success(updated)
    return Outcome.failure(InvalidBondTransition(f"Unknown bond {bond_id}", related_id=bond_id))


def auto_generate_payment_periods(
    bonds: Sequence[CoverageBond],
    rental: RentalPeriod,
    pricing: PricingFunction,
    periods: MutableSequence[PaymentPeriod],
    today: date,
    config: Optional[GapConfig] = None,
) -> Outcome[List[PaymentPeriod]]:
    """Bill every unfunded run of the rental in one pass.

    Runs come from the timeline's ``NONE`` segments not yet billed by a gap
    period, so each contiguous uncovered run yields exactly one period.
    Committed rentals are planned over their whole duration; open-ended
    rentals up to ``today``.

    Returns:
        The new periods (possibly none), or ``OverlappingPaymentPeriod`` if
        the existing explicit periods overlap.
    """
    config = config or GapConfig()
    try:
        timeline = build_timeline(rental, bonds, periods, today)
    except ReconciliationError as exc:
        logger.warning(f"Auto-generation refused: {exc}")
        return Outcome.failure(exc)

    created: List[PaymentPeriod] = []
    for segment in timeline.by_source(CoverageSource.NONE):
        if segment.payment_period_id is not None:
            continue
        reason, _ = classify_gap_reason(segment.interval, rental, bonds, today)
        created.append(
            PaymentPeriod(
                id=_new_id("gap"),
                interval=segment.interval,
                amount=price_gap(segment.interval, rental, pricing, config),
                method=config.gap_payment_method,
                is_gap_period=True,
                gap_reason=reason,
                product_ids=rental.product_ids,
                notes=f"Generated for uncovered days ({reason.value})",
                needs_review=True,
            )
        )

    periods.extend(created)
    logger.info(f"Rental {rental.rental_id}: generated {len(created)} gap periods")
    return Outcome.success(created)


def draft_payment_periods(
    rental: RentalPeriod,
    monthly_cost: Decimal,
    cnam_eligible: bool,
    draft_config: Optional[DraftConfig] = None,
    gap_config: Optional[GapConfig] = None,
) -> List[PaymentPeriod]:
    """Starting payment periods of the rental wizard's payment step.

    One period spans the committed rental (or its first month when
    open-ended), settled through CNAM for eligible patients and in cash
    otherwise. An urgent rental for a CNAM patient also gets a gap period
    for the days before the insurer can approve, billed pro rata.
    """
    draft_config = draft_config or DraftConfig()
    gap_config = gap_config or GapConfig()
    cost = to_decimal(monthly_cost)

    end = rental.end_date or day_before(
        add_months(rental.start_date, draft_config.default_period_months)
    )
    drafts = [
        PaymentPeriod(
            id=_new_id("period"),
            interval=TimeInterval(rental.start_date, end),
            amount=cost,
            method=PaymentMethod.CNAM if cnam_eligible else PaymentMethod.CASH,
            product_ids=rental.product_ids,
        )
    ]

    if cnam_eligible and rental.is_urgent:
        days = draft_config.urgent_approval_estimate_days
        gap = TimeInterval(rental.start_date, min(end, add_days(rental.start_date, days - 1)))
        drafts.insert(
            0,
            PaymentPeriod(
                id=_new_id("gap-pre"),
                interval=gap,
                amount=prorate(cost, duration_days(gap), gap_config.days_per_month),
                method=gap_config.gap_payment_method,
                is_gap_period=True,
                gap_reason=GapReason.CNAM_PENDING,
                product_ids=rental.product_ids,
                notes="Period before CNAM approval",
            ),
        )
    return drafts
