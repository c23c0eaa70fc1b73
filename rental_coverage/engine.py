"""Reconciliation facade used by the rental wizard.

:class:`CoverageReconciler` runs the whole pipeline on a snapshot of a
rental's bonds and payment periods::

    reconciler = CoverageReconciler(pricing=catalog.monthly_cost)
    report = reconciler.reconcile(rental, bonds, periods, deposit_amount=200)
    for gap in report.gaps:
        reconciler.fill_gap(gap, periods)

Nothing is cached between calls: every ``reconcile`` rebuilds the timeline,
gaps, alerts and totals from its arguments. Input problems are returned in
``report.errors`` rather than raised, and every action returns an
:class:`~rental_coverage.errors.Outcome`.
"""

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
import logging
from typing import Any, Dict, List, MutableSequence, Optional, Sequence, Tuple
import warnings

from . import actions
from ._warnings import DoubleFundingWarning
from .aggregator import FinancialSummary, calculate_total_payment_amount, summarize
from .alerts import Alert, upcoming_alerts
from .bonds import CoverageBond, validate_bonds
from .config import Config
from .decimal_utils import ZERO, to_decimal
from .errors import Outcome, ReconciliationError
from .gap_analyzer import Gap, GapAnalysis, PricingFunction, analyze_gaps
from .intervals import TimeInterval
from .models import BondStatus, PatientStatus, PaymentMethod, RentalPeriod
from .payments import PaymentPeriod, find_overlaps, find_schedule_holes
from .timeline import Timeline, build_timeline

logger = logging.getLogger(__name__)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _jsonable(value: Any) -> Any:
    """Convert domain objects to JSON-ready values with camelCase keys."""
    if isinstance(value, TimeInterval):
        end = value.end.isoformat() if value.end is not None else None
        return {"start": value.start.isoformat(), "end": end}
    if is_dataclass(value) and not isinstance(value, type):
        return {_camel(f.name): _jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass(frozen=True)
class PaymentData:
    """Payment step result handed back to the rental wizard.

    Attributes:
        payment_periods: All payment periods, explicit and gap.
        cnam_bonds: All bonds of the rental.
        deposit_amount: Deposit collected at delivery.
        deposit_method: How the deposit was paid.
        total_amount: Sum of every payment period and the deposit.
        notes: Operator notes.
        gaps: Gaps found by the last reconciliation.
        upcoming_alerts: Alerts of the last reconciliation.
        patient_status: Patient situation used for alerts.
        cnam_eligible: Whether the patient is covered by CNAM.
        auto_calculated_gaps: True when gap periods were generated automatically.
        is_rental: Always True for rentals; sales reuse the same object.
    """

    payment_periods: Tuple[PaymentPeriod, ...]
    cnam_bonds: Tuple[CoverageBond, ...]
    deposit_amount: Decimal
    deposit_method: PaymentMethod
    total_amount: Decimal
    notes: str = ""
    gaps: Tuple[Gap, ...] = field(default_factory=tuple)
    upcoming_alerts: Tuple[Alert, ...] = field(default_factory=tuple)
    patient_status: PatientStatus = PatientStatus.ACTIVE
    cnam_eligible: bool = False
    auto_calculated_gaps: bool = False
    is_rental: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(self)


@dataclass(frozen=True)
class ReconciliationReport:
    """Everything derived from one snapshot of a rental.

    ``timeline`` and ``gap_analysis`` are None when the payment periods
    overlap, since no single funding source can be assigned to the
    overlapping days; ``errors`` then holds the overlaps.
    """

    rental: RentalPeriod
    today: date
    bonds: Tuple[CoverageBond, ...]
    periods: Tuple[PaymentPeriod, ...]
    timeline: Optional[Timeline]
    gap_analysis: Optional[GapAnalysis]
    alerts: Tuple[Alert, ...]
    summary: FinancialSummary
    schedule_holes: Tuple[TimeInterval, ...] = field(default_factory=tuple)
    errors: Tuple[ReconciliationError, ...] = field(default_factory=tuple)
    deposit_method: PaymentMethod = PaymentMethod.CASH
    patient_status: PatientStatus = PatientStatus.ACTIVE

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def gaps(self) -> Tuple[Gap, ...]:
        return self.gap_analysis.gaps if self.gap_analysis is not None else ()

    @property
    def gap_total(self) -> Decimal:
        return self.gap_analysis.total_amount if self.gap_analysis is not None else ZERO

    def to_payment_data(
        self,
        cnam_eligible: bool = False,
        notes: str = "",
        auto_calculated_gaps: bool = False,
        is_rental: bool = True,
    ) -> PaymentData:
        """Package the report for the wizard's payment step."""
        return PaymentData(
            payment_periods=self.periods,
            cnam_bonds=self.bonds,
            deposit_amount=self.summary.deposit_total,
            deposit_method=self.deposit_method,
            total_amount=calculate_total_payment_amount(
                self.periods, self.summary.deposit_total
            ),
            notes=notes,
            gaps=self.gaps,
            upcoming_alerts=self.alerts,
            patient_status=self.patient_status,
            cnam_eligible=cnam_eligible,
            auto_calculated_gaps=auto_calculated_gaps,
            is_rental=is_rental,
        )

    def to_dataframes(self) -> Dict[str, Any]:
        """Tables of the report, keyed by ``timeline``, ``gaps``, ``alerts``, ``summary``."""
        from .reporting import report_to_dataframes

        return report_to_dataframes(self)


class CoverageReconciler:
    """Runs reconciliation passes with one configuration.

    Args:
        config: Engine configuration; defaults to :class:`Config`.
        pricing: Default monthly cost of a product set on a given day.
        today: Fixed reference date; the current date when omitted.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        pricing: Optional[PricingFunction] = None,
        today: Optional[date] = None,
    ):
        self.config = config or Config()
        self.pricing = pricing
        self.today = today

    def _today(self, today: Optional[date]) -> date:
        return today or self.today or date.today()

    def _pricing(self, pricing: Optional[PricingFunction]) -> PricingFunction:
        chosen = pricing or self.pricing
        if chosen is None:
            raise ValueError("A pricing function is required to price gaps")
        return chosen

    def reconcile(
        self,
        rental: RentalPeriod,
        bonds: Sequence[CoverageBond],
        periods: Sequence[PaymentPeriod],
        deposit_amount: Decimal = ZERO,
        deposit_method: PaymentMethod = PaymentMethod.CASH,
        patient_status: PatientStatus = PatientStatus.ACTIVE,
        pricing: Optional[PricingFunction] = None,
        today: Optional[date] = None,
    ) -> ReconciliationReport:
        """Rebuild every derived view of a rental.

        Args:
            rental: The rental being reconciled.
            bonds: All bonds of the rental.
            periods: All payment periods of the rental.
            deposit_amount: Deposit collected at delivery.
            deposit_method: How the deposit was paid.
            patient_status: Patient situation recorded by the wizard.
            pricing: Overrides the reconciler's pricing function.
            today: Overrides the reconciler's reference date.

        Returns:
            The report. Invalid bonds and overlapping periods are listed in
            ``errors``; overlapping periods also leave ``timeline`` empty.
        """
        today = self._today(today)
        pricing = self._pricing(pricing)
        deposit = to_decimal(deposit_amount)

        errors: List[ReconciliationError] = list(validate_bonds(bonds))
        overlaps = find_overlaps(periods)
        errors.extend(overlaps)
        for error in errors:
            logger.warning(f"Rental {rental.rental_id}: {error}")

        timeline: Optional[Timeline] = None
        gap_analysis: Optional[GapAnalysis] = None
        if not overlaps:
            timeline = build_timeline(rental, bonds, periods, today)
            gap_analysis = analyze_gaps(
                timeline, rental, bonds, pricing, today, periods, self.config.gaps
            )
            if timeline.double_funded_segments:
                message = (
                    f"Rental {rental.rental_id}: "
                    f"{len(timeline.double_funded_segments)} segments funded by both "
                    "CNAM and a direct payment"
                )
                logger.warning(message)
                warnings.warn(message, DoubleFundingWarning, stacklevel=2)

        alerts = upcoming_alerts(rental, bonds, today, self.config.alerts, patient_status)
        summary = summarize(bonds, periods, deposit, timeline)
        holes = find_schedule_holes(periods, rental, today)

        logger.info(
            f"Reconciled rental {rental.rental_id} on {today}: "
            f"{len(gap_analysis.gaps) if gap_analysis else 0} gaps, {len(alerts)} alerts, "
            f"total {summary.grand_total}"
        )
        return ReconciliationReport(
            rental=rental,
            today=today,
            bonds=tuple(bonds),
            periods=tuple(periods),
            timeline=timeline,
            gap_analysis=gap_analysis,
            alerts=tuple(alerts),
            summary=summary,
            schedule_holes=tuple(holes),
            errors=tuple(errors),
            deposit_method=deposit_method,
            patient_status=patient_status,
        )

    # ------------------------------------------------------------------ #
    #  Actions
    # ------------------------------------------------------------------ #

    def fill_gap(
        self,
        gap: Gap,
        periods: MutableSequence[PaymentPeriod],
        product_ids: Sequence[str] = (),
        period_id: Optional[str] = None,
    ) -> Outcome[PaymentPeriod]:
        return actions.create_payment_period_for_gap(
            gap, periods, product_ids, self.config.gaps, period_id
        )

    def renew_bond(
        self,
        bond_id: str,
        bonds: MutableSequence[CoverageBond],
        today: Optional[date] = None,
        new_bond_id: Optional[str] = None,
    ) -> Outcome[CoverageBond]:
        return actions.initiate_cnam_renewal(bond_id, bonds, self._today(today), new_bond_id)

    def record_decision(
        self,
        bond_id: str,
        bonds: MutableSequence[CoverageBond],
        new_status: BondStatus,
        **terms,
    ) -> Outcome[CoverageBond]:
        return actions.apply_transition(bond_id, bonds, new_status, **terms)

    def auto_generate(
        self,
        rental: RentalPeriod,
        bonds: Sequence[CoverageBond],
        periods: MutableSequence[PaymentPeriod],
        pricing: Optional[PricingFunction] = None,
        today: Optional[date] = None,
    ) -> Outcome[List[PaymentPeriod]]:
        return actions.auto_generate_payment_periods(
            bonds, rental, self._pricing(pricing), periods, self._today(today), self.config.gaps
        )

    def draft_periods(
        self, rental: RentalPeriod, monthly_cost: Decimal, cnam_eligible: bool
    ) -> List[PaymentPeriod]:
        return actions.draft_payment_periods(
            rental, monthly_cost, cnam_eligible, self.config.drafts, self.config.gaps
        )
