"""Financial totals of a reconciled rental.

The summary keeps four buckets apart because different parties pay them
and they are reconciled independently:

- ``cnam_total``: amounts of funding bonds, paid by the insurer,
- ``direct_total``: explicit periods paid directly by the patient,
- ``gap_total``: gap periods still to be billed to the patient,
- ``deposit_total``: the rental deposit.

``grand_total`` is their exact sum. A double-funded day is counted once in
``cnam_total`` (through its bond) and once in ``direct_total`` (through its
period); the summary flags it instead of netting the two.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from .bonds import CoverageBond
from .decimal_utils import ZERO, quantize_currency, sum_decimals, to_decimal
from .payments import PaymentPeriod
from .timeline import Timeline


@dataclass(frozen=True)
class FinancialSummary:
    """Totals handed back to the rental wizard."""

    cnam_total: Decimal = ZERO
    direct_total: Decimal = ZERO
    gap_total: Decimal = ZERO
    deposit_total: Decimal = ZERO
    grand_total: Decimal = ZERO
    double_funded_days: int = 0
    double_funded_period_ids: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_double_funding(self) -> bool:
        return self.double_funded_days > 0

    @property
    def patient_total(self) -> Decimal:
        """What the patient owes: direct payments, gap bills and deposit."""
        return sum_decimals((self.direct_total, self.gap_total, self.deposit_total))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cnamTotal": self.cnam_total,
            "directTotal": self.direct_total,
            "gapTotal": self.gap_total,
            "depositTotal": self.deposit_total,
            "grandTotal": self.grand_total,
            "doubleFundedDays": self.double_funded_days,
            "doubleFundedPeriodIds": list(self.double_funded_period_ids),
        }


def calculate_total_payment_amount(
    periods: Iterable[PaymentPeriod], deposit_amount: Decimal = ZERO
) -> Decimal:
    """Sum of every payment period, gap or not, plus the deposit."""
    return sum_decimals([p.amount for p in periods] + [to_decimal(deposit_amount)])


def total_cnam_amount(bonds: Iterable[CoverageBond]) -> Decimal:
    """Sum of the amounts of bonds that fund rental days."""
    return sum_decimals(b.total_amount for b in bonds if b.provides_coverage)


def total_direct_amount(periods: Iterable[PaymentPeriod]) -> Decimal:
    return sum_decimals(p.amount for p in periods if p.provides_direct_coverage)


def total_gap_amount(periods: Iterable[PaymentPeriod]) -> Decimal:
    return sum_decimals(p.amount for p in periods if p.is_gap_period)


def summarize(
    bonds: Sequence[CoverageBond],
    periods: Sequence[PaymentPeriod],
    deposit_amount: Decimal = ZERO,
    timeline: Optional[Timeline] = None,
) -> FinancialSummary:
    """Build the financial summary of a rental.

    Args:
        bonds: All bonds of the rental.
        periods: All payment periods of the rental.
        deposit_amount: Deposit collected at delivery.
        timeline: Timeline of the same inputs, used to report double funding.

    Raises:
        ValueError: If the deposit is negative.
    """
    deposit = quantize_currency(to_decimal(deposit_amount))
    if deposit < ZERO:
        raise ValueError(f"Deposit must be non-negative, got {deposit}")

    cnam = total_cnam_amount(bonds)
    direct = total_direct_amount(periods)
    gaps = total_gap_amount(periods)

    double_days = 0
    double_ids: Dict[str, None] = {}
    if timeline is not None:
        for segment in timeline.double_funded_segments:
            double_days += segment.duration_days
            double_ids.update(dict.fromkeys(segment.funding_period_ids))

    return FinancialSummary(
        cnam_total=cnam,
        direct_total=direct,
        gap_total=gaps,
        deposit_total=deposit,
        grand_total=cnam + direct + gaps + deposit,
        double_funded_days=double_days,
        double_funded_period_ids=tuple(double_ids),
    )
