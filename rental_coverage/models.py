"""Closed enumerations and the rental period model.

The enumerations mirror the values stored by the back office, so they can be
passed through to persistence and display unchanged. Consumers branch on
them exhaustively and raise on a member they do not know, so adding a
member forces every consumer to be revisited.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Optional, Tuple

from .errors import MalformedInterval
from .intervals import TimeInterval


class PaymentMethod(Enum):
    """Ways a payment period can be settled."""

    CNAM = "CNAM"
    CHEQUE = "CHEQUE"
    CASH = "CASH"
    TRAITE = "TRAITE"
    MANDAT = "MANDAT"
    VIREMENT = "VIREMENT"
    BANK_TRANSFER = "BANK_TRANSFER"


class BondStatus(Enum):
    """Lifecycle of a CNAM coverage bond.

    PENDING_APPROVAL -> APPROVED -> IN_PROGRESS -> COMPLETED, with
    PENDING_APPROVAL -> REJECTED as the failure branch. REJECTED and
    COMPLETED are terminal.
    """

    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"

    @property
    def provides_coverage(self) -> bool:
        """True for the statuses whose coverage window funds rental days."""
        return self in QUALIFYING_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in (BondStatus.COMPLETED, BondStatus.REJECTED)


QUALIFYING_STATUSES = frozenset(
    {BondStatus.APPROVED, BondStatus.IN_PROGRESS, BondStatus.COMPLETED}
)


class GapReason(Enum):
    """Why part of a rental is not financially covered.

    CNAM_PENDING and CNAM_EXPIRED are inferred by the gap analyzer.
    PATIENT_PAUSE, MAINTENANCE and OTHER are only ever set by the operator
    on a manual gap payment period. UNCOVERED is the analyzer's verdict for
    a gap that no bond explains and no operator has annotated.
    """

    CNAM_PENDING = "CNAM_PENDING"
    CNAM_EXPIRED = "CNAM_EXPIRED"
    PATIENT_PAUSE = "PATIENT_PAUSE"
    MAINTENANCE = "MAINTENANCE"
    OTHER = "OTHER"
    UNCOVERED = "UNCOVERED"


OPERATOR_GAP_REASONS = frozenset({GapReason.PATIENT_PAUSE, GapReason.MAINTENANCE, GapReason.OTHER})


class CoverageSource(Enum):
    """Who funds a timeline segment."""

    CNAM = "CNAM"
    DIRECT = "DIRECT"
    NONE = "NONE"


class Severity(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class AlertType(Enum):
    CNAM_EXPIRING = "CNAM_EXPIRING"
    CNAM_PENDING = "CNAM_PENDING"
    RENTAL_ENDING = "RENTAL_ENDING"


class AlertPriority(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class PatientStatus(Enum):
    """Patient situation as recorded in the rental wizard."""

    ACTIVE = "ACTIVE"
    HOSPITALIZED = "HOSPITALIZED"
    DECEASED = "DECEASED"
    PAUSED = "PAUSED"


class BondCategory(Enum):
    """CNAM bond category: monthly rental (LOCATION) or one-time purchase (ACHAT)."""

    LOCATION = "LOCATION"
    ACHAT = "ACHAT"


@dataclass(frozen=True)
class RentalPeriod:
    """The parent interval of one rental engagement.

    Created once when the rental configuration is confirmed. The only
    allowed change afterwards is an extension, which yields a new instance.

    Attributes:
        start_date: First rental day.
        end_date: Last committed rental day, or None for an open-ended rental.
        is_open_ended: Whether the rental has no committed end. Derived from
            ``end_date`` when omitted.
        is_urgent: Equipment delivered before the insurer could approve.
        rental_id: Identifier used on alerts about the rental itself.
        product_ids: Products rented, passed to the pricing callback.
    """

    start_date: date
    end_date: Optional[date] = None
    is_open_ended: Optional[bool] = None
    is_urgent: bool = False
    rental_id: str = "rental"
    product_ids: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.is_open_ended is None:
            object.__setattr__(self, "is_open_ended", self.end_date is None)
        if self.is_open_ended != (self.end_date is None):
            raise MalformedInterval(
                "An open-ended rental has no end date and a committed rental must have one",
                related_id=self.rental_id,
            )
        object.__setattr__(self, "product_ids", tuple(self.product_ids))
        # Validates start <= end.
        TimeInterval(self.start_date, self.end_date)

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.start_date, self.end_date)

    def extend(self, new_end_date: Optional[date]) -> "RentalPeriod":
        """Return the rental with a new end date (None makes it open-ended).

        Raises:
            MalformedInterval: If the new end precedes the start date.
        """
        if new_end_date is not None and new_end_date < self.start_date:
            raise MalformedInterval(
                f"Rental cannot end ({new_end_date}) before it starts ({self.start_date})",
                related_id=self.rental_id,
            )
        return replace(self, end_date=new_end_date, is_open_ended=new_end_date is None)
