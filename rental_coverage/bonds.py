"""CNAM coverage bonds: model, status state machine and renewal chains.

A bond is the insurer's authorization to fund equipment rental for a fixed
window. Bonds are immutable values: a status change produces a new bond,
and a renewal produces a new bond linked to its predecessor through
``predecessor_bond_id``. Bonds are never deleted, only superseded.

Only APPROVED, IN_PROGRESS and COMPLETED bonds fund rental days. The
APPROVED -> IN_PROGRESS and IN_PROGRESS -> COMPLETED moves are inferred
from the calendar by :func:`effective_status`; every other move is an
explicit insurer decision applied with :func:`transition`.

Examples:
    Approve a pending bond and read its status a month later::

        approved = transition(
            bond,
            BondStatus.APPROVED,
            coverage_start=date(2025, 1, 1),
            coverage_end=date(2025, 2, 28),
        )
        effective_status(approved, today=date(2025, 2, 1))  # IN_PROGRESS
"""

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

from .decimal_utils import ZERO, quantize_currency, to_decimal
from .errors import InvalidBondTransition, MalformedInterval, ReconciliationError
from .intervals import TimeInterval, day_after
from .models import QUALIFYING_STATUSES, BondCategory, BondStatus

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[BondStatus, FrozenSet[BondStatus]] = {
    BondStatus.PENDING_APPROVAL: frozenset({BondStatus.APPROVED, BondStatus.REJECTED}),
    BondStatus.APPROVED: frozenset({BondStatus.IN_PROGRESS}),
    BondStatus.IN_PROGRESS: frozenset({BondStatus.COMPLETED}),
    BondStatus.COMPLETED: frozenset(),
    BondStatus.REJECTED: frozenset(),
}


@dataclass(frozen=True)
class CoverageBond:
    """One insurer authorization.

    Attributes:
        id: Bond identifier.
        bond_type: Nomenclature type (e.g. ``CONCENTRATEUR_OXYGENE``).
        status: Current status as last recorded.
        coverage_start: First covered day; required once approved.
        coverage_end: Last covered day; required once approved.
        covered_months: Number of months the bond covers.
        total_amount: Amount the insurer pays for the whole bond.
        bond_number: Insurer reference, known once issued.
        submission_date: Day the request was sent to the insurer.
        predecessor_bond_id: Bond this one renews, if any.
    """

    id: str
    bond_type: str
    status: BondStatus = BondStatus.PENDING_APPROVAL
    coverage_start: Optional[date] = None
    coverage_end: Optional[date] = None
    covered_months: int = 1
    total_amount: Decimal = ZERO
    bond_number: Optional[str] = None
    submission_date: Optional[date] = None
    predecessor_bond_id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "total_amount", quantize_currency(to_decimal(self.total_amount)))
        if self.total_amount < ZERO:
            raise ValueError(f"Bond {self.id}: total_amount must be non-negative")
        if self.covered_months < 0:
            raise ValueError(f"Bond {self.id}: covered_months must be non-negative")
        if self.coverage_end is not None and self.coverage_start is None:
            raise MalformedInterval(
                f"Bond {self.id} has a coverage end without a coverage start", related_id=self.id
            )
        if self.status in QUALIFYING_STATUSES and (
            self.coverage_start is None or self.coverage_end is None
        ):
            raise MalformedInterval(
                f"Bond {self.id} is {self.status.value} but has no complete coverage window",
                related_id=self.id,
            )
        if self.coverage_start is not None:
            try:
                TimeInterval(self.coverage_start, self.coverage_end)
            except MalformedInterval as exc:
                raise MalformedInterval(f"Bond {self.id}: {exc}", related_id=self.id) from exc

    @property
    def coverage_interval(self) -> Optional[TimeInterval]:
        """Coverage window, open-ended for a draft that only has a start."""
        if self.coverage_start is None:
            return None
        return TimeInterval(self.coverage_start, self.coverage_end)

    @property
    def provides_coverage(self) -> bool:
        return self.status.provides_coverage


def transition(
    bond: CoverageBond,
    new_status: BondStatus,
    *,
    coverage_start: Optional[date] = None,
    coverage_end: Optional[date] = None,
    bond_number: Optional[str] = None,
    total_amount: Optional[Decimal] = None,
) -> CoverageBond:
    """Apply an explicit status change and return the updated bond.

    Coverage terms may be supplied with the change, typically with the
    insurer's approval.

    Raises:
        InvalidBondTransition: If the move is not allowed from the current
            status, or an approval lacks a coverage window.
    """
    allowed = ALLOWED_TRANSITIONS[bond.status]
    if new_status not in allowed:
        raise InvalidBondTransition(
            f"Bond {bond.id} cannot move from {bond.status.value} to {new_status.value}",
            related_id=bond.id,
        )

    changes = {"status": new_status}
    if coverage_start is not None:
        changes["coverage_start"] = coverage_start
    if coverage_end is not None:
        changes["coverage_end"] = coverage_end
    if bond_number is not None:
        changes["bond_number"] = bond_number
    if total_amount is not None:
        changes["total_amount"] = total_amount

    try:
        updated = replace(bond, **changes)
    except MalformedInterval as exc:
        raise InvalidBondTransition(
            f"Bond {bond.id} cannot become {new_status.value}: {exc}", related_id=bond.id
        ) from exc

    logger.debug(f"Bond {bond.id}: {bond.status.value} -> {new_status.value}")
    return updated


def effective_status(bond: CoverageBond, today: date) -> BondStatus:
    """Status of a bond on ``today``, inferring the calendar-driven moves."""
    status = bond.status
    if status == BondStatus.APPROVED and bond.coverage_start is not None:
        if bond.coverage_start <= today:
            status = BondStatus.IN_PROGRESS
    if status == BondStatus.IN_PROGRESS and bond.coverage_end is not None:
        if today > bond.coverage_end:
            status = BondStatus.COMPLETED
    return status


def resolve_statuses(bonds: Iterable[CoverageBond], today: date) -> List[CoverageBond]:
    """Return the bonds with their inferred status on ``today``.

    The input bonds are not modified; unchanged bonds are returned as-is.
    """
    resolved = []
    for bond in bonds:
        status = effective_status(bond, today)
        resolved.append(bond if status == bond.status else replace(bond, status=status))
    return resolved


def qualifying_bonds(bonds: Iterable[CoverageBond]) -> List[CoverageBond]:
    """Bonds that fund rental days, ordered by coverage start then id."""
    return sorted(
        (b for b in bonds if b.provides_coverage),
        key=lambda b: (b.coverage_start, b.id),
    )


def find_bond(bonds: Iterable[CoverageBond], bond_id: str) -> Optional[CoverageBond]:
    for bond in bonds:
        if bond.id == bond_id:
            return bond
    return None


def successors_of(bond_id: str, bonds: Iterable[CoverageBond]) -> List[CoverageBond]:
    """Bonds that renew ``bond_id``, excluding rejected requests."""
    return [
        b
        for b in bonds
        if b.predecessor_bond_id == bond_id and b.status != BondStatus.REJECTED
    ]


def renewal_chain(bond_id: str, bonds: Sequence[CoverageBond]) -> List[CoverageBond]:
    """Return the renewal chain ending at ``bond_id``, oldest bond first.

    Raises:
        InvalidBondTransition: If a link is dangling or the chain cycles.
    """
    by_id = {b.id: b for b in bonds}
    chain: List[CoverageBond] = []
    seen = set()
    current_id: Optional[str] = bond_id
    while current_id is not None:
        if current_id in seen:
            raise InvalidBondTransition(
                f"Renewal chain of bond {bond_id} cycles through {current_id}", related_id=bond_id
            )
        seen.add(current_id)
        bond = by_id.get(current_id)
        if bond is None:
            raise InvalidBondTransition(
                f"Bond {bond_id} references unknown predecessor {current_id}", related_id=bond_id
            )
        chain.append(bond)
        current_id = bond.predecessor_bond_id
    chain.reverse()
    return chain


def validate_bonds(bonds: Sequence[CoverageBond]) -> List[ReconciliationError]:
    """Check a bond collection for structural problems.

    Returns one error per problem found: duplicate ids, dangling or cyclic
    predecessor links, and renewals whose coverage starts on or before the
    day their predecessor's coverage ends.
    """
    errors: List[ReconciliationError] = []
    seen_ids = set()
    for bond in bonds:
        if bond.id in seen_ids:
            errors.append(
                InvalidBondTransition(f"Duplicate bond id {bond.id}", related_id=bond.id)
            )
        seen_ids.add(bond.id)

    by_id = {b.id: b for b in bonds}
    for bond in bonds:
        if bond.predecessor_bond_id is None:
            continue
        try:
            renewal_chain(bond.id, bonds)
        except InvalidBondTransition as exc:
            errors.append(exc)
            continue

        predecessor = by_id[bond.predecessor_bond_id]
        if (
            bond.status != BondStatus.REJECTED
            and bond.coverage_start is not None
            and predecessor.coverage_end is not None
            and bond.coverage_start < day_after(predecessor.coverage_end)
        ):
            errors.append(
                InvalidBondTransition(
                    f"Renewal {bond.id} starts {bond.coverage_start} but predecessor "
                    f"{predecessor.id} covers until {predecessor.coverage_end}",
                    related_id=bond.id,
                )
            )
    return errors


@dataclass(frozen=True)
class NomenclatureEntry:
    """Official CNAM rate for one bond type."""

    bond_type: str
    category: BondCategory
    amount: Decimal
    monthly_rate: Decimal
    description: str = ""


CNAM_NOMENCLATURE: Dict[str, NomenclatureEntry] = {
    entry.bond_type: entry
    for entry in (
        NomenclatureEntry(
            "CONCENTRATEUR_OXYGENE",
            BondCategory.LOCATION,
            Decimal("190.00"),
            Decimal("190.00"),
            "Oxygen concentrator, monthly rental bond",
        ),
        NomenclatureEntry(
            "VNI",
            BondCategory.LOCATION,
            Decimal("570.00"),
            Decimal("570.00"),
            "Non-invasive ventilation, monthly rental bond",
        ),
        NomenclatureEntry(
            "CPAP", BondCategory.ACHAT, Decimal("1475.00"), ZERO, "CPAP, one-time purchase bond"
        ),
        NomenclatureEntry(
            "MASQUE", BondCategory.ACHAT, Decimal("200.00"), ZERO, "Mask, one-time purchase bond"
        ),
        # Variable rate, agreed case by case.
        NomenclatureEntry("AUTRE", BondCategory.LOCATION, ZERO, ZERO, "Other equipment"),
    )
}


def bond_total_for(bond_type: str, covered_months: int) -> Decimal:
    """Amount CNAM pays for a bond of ``bond_type`` covering ``covered_months``.

    Raises:
        KeyError: If the bond type is not in the nomenclature.
    """
    entry = CNAM_NOMENCLATURE[bond_type]
    if entry.category == BondCategory.LOCATION:
        return quantize_currency(entry.monthly_rate * covered_months)
    if entry.category == BondCategory.ACHAT:
        return entry.amount
    raise ValueError(f"Unhandled bond category: {entry.category!r}")
