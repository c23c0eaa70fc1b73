"""Payment periods: explicit billable intervals of a rental.

A payment period records that the patient (or the insurer, for the CNAM
method) is billed ``amount`` for the days of ``interval``. Gap periods are
the special case created to bill days no bond covers; they carry the
reason of the gap and are never settled through CNAM.

Explicit (non-gap) periods must not overlap for a shared product. Overlaps
are reported as :class:`~rental_coverage.errors.OverlappingPaymentPeriod`
and never merged or truncated, since only the operator knows which of the
two periods is wrong.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from datetime import date
from typing import List, Optional, Sequence, Tuple

from .decimal_utils import ZERO, quantize_currency, to_decimal
from .errors import MalformedInterval, OverlappingPaymentPeriod
from .intervals import TimeInterval, clamp_to_today, intersect, merge_intervals, subtract
from .models import GapReason, PaymentMethod, RentalPeriod


@dataclass(frozen=True)
class PaymentPeriod:
    """One billable interval.

    Attributes:
        id: Period identifier.
        interval: Billed days; must be bounded.
        amount: Amount billed for the interval.
        method: How the period is settled.
        is_gap_period: Whether the period bills an uncovered gap.
        gap_reason: Reason of the gap; required for gap periods.
        product_ids: Products billed; empty means the whole rental.
        notes: Free text for the operator.
        needs_review: Synthesized by the engine and awaiting operator review.
    """

    id: str
    interval: TimeInterval
    amount: Decimal = ZERO
    method: PaymentMethod = PaymentMethod.CASH
    is_gap_period: bool = False
    gap_reason: Optional[GapReason] = None
    product_ids: Tuple[str, ...] = field(default_factory=tuple)
    notes: str = ""
    needs_review: bool = False

    def __post_init__(self):
        object.__setattr__(self, "amount", quantize_currency(to_decimal(self.amount)))
        object.__setattr__(self, "product_ids", tuple(self.product_ids))
        if self.interval.end is None:
            raise MalformedInterval(
                f"Payment period {self.id} must have an end date", related_id=self.id
            )
        if self.amount < ZERO:
            raise ValueError(f"Payment period {self.id}: amount must be non-negative")
        if self.is_gap_period:
            if self.gap_reason is None:
                raise ValueError(f"Gap period {self.id} requires a gap_reason")
            if self.method == PaymentMethod.CNAM:
                raise ValueError(f"Gap period {self.id} cannot be settled through CNAM")

    @property
    def start(self) -> date:
        return self.interval.start

    @property
    def end(self) -> date:
        return self.interval.end  # type: ignore[return-value]

    @property
    def provides_direct_coverage(self) -> bool:
        """True for periods the patient pays directly outside of any gap.

        CNAM-method periods are the insurer's schedule; their funding is
        accounted for through the bonds themselves.
        """
        return not self.is_gap_period and self.method != PaymentMethod.CNAM


def share_products(a: PaymentPeriod, b: PaymentPeriod) -> bool:
    """True if two periods bill at least one common product.

    An empty product list stands for the whole rental and shares with anything.
    """
    if not a.product_ids or not b.product_ids:
        return True
    return bool(set(a.product_ids) & set(b.product_ids))


def find_overlaps(periods: Sequence[PaymentPeriod]) -> List[OverlappingPaymentPeriod]:
    """Return one error per pair of overlapping explicit periods."""
    explicit = sorted((p for p in periods if not p.is_gap_period), key=lambda p: (p.start, p.id))
    errors: List[OverlappingPaymentPeriod] = []
    for i, first in enumerate(explicit):
        for second in explicit[i + 1 :]:
            if second.start > first.end:
                break
            if share_products(first, second):
                overlap = intersect(first.interval, second.interval)
                errors.append(
                    OverlappingPaymentPeriod(
                        f"Payment periods {first.id} and {second.id} overlap on {overlap}",
                        first_id=first.id,
                        second_id=second.id,
                    )
                )
    return errors


def ensure_no_overlaps(periods: Sequence[PaymentPeriod]) -> None:
    """Raise the first overlap found among explicit periods.

    Raises:
        OverlappingPaymentPeriod: If two explicit periods overlap.
    """
    errors = find_overlaps(periods)
    if errors:
        raise errors[0]


def find_schedule_holes(
    periods: Sequence[PaymentPeriod], rental: RentalPeriod, today: date
) -> List[TimeInterval]:
    """Days of the rental that no payment period bills at all.

    Open-ended rentals are examined up to ``today``; a committed rental is
    examined over its whole duration, since the schedule is planned ahead.
    """
    window: Optional[TimeInterval] = rental.interval
    if rental.is_open_ended:
        window = clamp_to_today(rental.interval, today)
    if window is None:
        return []

    holes = [window]
    for billed in merge_intervals(p.interval for p in periods):
        holes = [piece for hole in holes for piece in subtract(hole, billed)]
    return holes
