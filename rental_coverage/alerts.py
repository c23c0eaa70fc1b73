"""Alert scheduler: upcoming deadlines of a rental's funding.

Alerts are recomputed on every call from the bonds and the rental; they
are never stored. Acknowledging an alert is the caller's business.

Three kinds are produced:

- ``CNAM_EXPIRING``: a funding bond ends within the lookahead window and no
  other bond (approved or already requested) covers the following day.
- ``CNAM_PENDING``: an insurer request has waited longer than the stale
  threshold since submission.
- ``RENTAL_ENDING``: a committed rental ends within its window.

The patient's situation adjusts the result: nothing is renewed or returned
for a deceased patient, and expiries for a hospitalized or paused patient
are low priority.
"""

from dataclasses import dataclass
from datetime import date
import logging
from typing import List, Optional, Sequence

from .bonds import CoverageBond, qualifying_bonds, resolve_statuses
from .config import AlertConfig
from .intervals import add_days, contains, day_after, days_between
from .models import AlertPriority, AlertType, BondStatus, PatientStatus, RentalPeriod

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Alert:
    """A time-bounded warning for the operator.

    Attributes:
        type: What the alert is about.
        due_date: Day the condition takes effect (expiry, staleness, rental end).
        days_until: Days from today to ``due_date``; negative when overdue.
        related_id: Bond id, or the rental id for ``RENTAL_ENDING``.
        priority: Urgency of the alert.
        message: Human-readable summary.
    """

    type: AlertType
    due_date: date
    days_until: int
    related_id: str
    priority: AlertPriority
    message: str = ""


def _has_successor_coverage(
    bond: CoverageBond, bonds: Sequence[CoverageBond], day: date
) -> bool:
    for other in bonds:
        if other.id == bond.id or other.status == BondStatus.REJECTED:
            continue
        window = other.coverage_interval
        if window is not None and contains(window, day):
            return True
    return False


def _expiry_priority(
    days_until: int, patient_status: PatientStatus, config: AlertConfig
) -> AlertPriority:
    if patient_status in (PatientStatus.HOSPITALIZED, PatientStatus.PAUSED):
        return AlertPriority.LOW
    if patient_status == PatientStatus.ACTIVE:
        if days_until <= config.expiry_high_priority_days:
            return AlertPriority.HIGH
        return AlertPriority.MEDIUM
    raise ValueError(f"No expiry priority for patient status {patient_status!r}")


def expiring_bond_alerts(
    bonds: Sequence[CoverageBond],
    today: date,
    config: AlertConfig,
    patient_status: PatientStatus = PatientStatus.ACTIVE,
) -> List[Alert]:
    """Alerts for funding bonds ending soon without a successor."""
    if patient_status == PatientStatus.DECEASED:
        return []

    alerts = []
    for bond in qualifying_bonds(bonds):
        days_until = days_between(today, bond.coverage_end)  # type: ignore[arg-type]
        if not 0 <= days_until <= config.expiry_lookahead_days:
            continue
        if _has_successor_coverage(bond, bonds, day_after(bond.coverage_end)):  # type: ignore[arg-type]
            continue
        alerts.append(
            Alert(
                type=AlertType.CNAM_EXPIRING,
                due_date=bond.coverage_end,  # type: ignore[arg-type]
                days_until=days_until,
                related_id=bond.id,
                priority=_expiry_priority(days_until, patient_status, config),
                message=f"CNAM bond {bond.bond_number or bond.id} ends in {days_until} days",
            )
        )
    return alerts


def stale_approval_alerts(
    bonds: Sequence[CoverageBond], today: date, config: AlertConfig
) -> List[Alert]:
    """Alerts for insurer requests unanswered for too long."""
    alerts = []
    for bond in bonds:
        if bond.status != BondStatus.PENDING_APPROVAL or bond.submission_date is None:
            continue
        waited = days_between(bond.submission_date, today)
        if waited <= config.stale_approval_days:
            continue
        due_date = add_days(bond.submission_date, config.stale_approval_days)
        priority = (
            AlertPriority.HIGH
            if waited > 2 * config.stale_approval_days
            else AlertPriority.MEDIUM
        )
        alerts.append(
            Alert(
                type=AlertType.CNAM_PENDING,
                due_date=due_date,
                days_until=days_between(today, due_date),
                related_id=bond.id,
                priority=priority,
                message=f"CNAM request {bond.id} awaiting approval for {waited} days",
            )
        )
    return alerts


def rental_ending_alert(
    rental: RentalPeriod,
    today: date,
    config: AlertConfig,
    patient_status: PatientStatus = PatientStatus.ACTIVE,
) -> Optional[Alert]:
    """Alert for a committed rental ending soon, if any."""
    if rental.is_open_ended or patient_status == PatientStatus.DECEASED:
        return None
    days_until = days_between(today, rental.end_date)  # type: ignore[arg-type]
    if not 0 <= days_until <= config.rental_ending_days:
        return None
    priority = (
        AlertPriority.HIGH
        if days_until <= config.rental_ending_high_priority_days
        else AlertPriority.MEDIUM
    )
    return Alert(
        type=AlertType.RENTAL_ENDING,
        due_date=rental.end_date,  # type: ignore[arg-type]
        days_until=days_until,
        related_id=rental.rental_id,
        priority=priority,
        message=f"Rental {rental.rental_id} ends in {days_until} days",
    )


def upcoming_alerts(
    rental: RentalPeriod,
    bonds: Sequence[CoverageBond],
    today: date,
    config: Optional[AlertConfig] = None,
    patient_status: PatientStatus = PatientStatus.ACTIVE,
) -> List[Alert]:
    """All alerts for a rental on ``today``, ordered by due date.

    Args:
        rental: The rental being reconciled.
        bonds: All bonds of the rental.
        today: Reference date.
        config: Alert windows; defaults to :class:`AlertConfig`.
        patient_status: Patient situation recorded by the wizard.
    """
    config = config or AlertConfig()
    resolved = resolve_statuses(bonds, today)

    alerts = expiring_bond_alerts(resolved, today, config, patient_status)
    alerts += stale_approval_alerts(resolved, today, config)
    ending = rental_ending_alert(rental, today, config, patient_status)
    if ending is not None:
        alerts.append(ending)

    alerts.sort(key=lambda a: (a.due_date, a.type.value, a.related_id))
    logger.debug(f"Rental {rental.rental_id}: {len(alerts)} alerts on {today}")
    return alerts
