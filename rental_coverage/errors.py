"""Error kinds and the typed result returned by reconciliation operations.

Primitives and model constructors raise these errors at construction time.
The public operations (actions and the :class:`~rental_coverage.engine.CoverageReconciler`
facade) catch them and hand them back inside an :class:`Outcome` so the
wizard can show them to the operator. Nothing is ever corrected silently:
a failed operation leaves the caller's collections exactly as they were.

Examples:
    Inspecting an action outcome::

        outcome = initiate_cnam_renewal("bond-1", bonds, today=today)
        if not outcome.ok:
            print(f"{outcome.error.kind}: {outcome.error}")
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ReconciliationError(Exception):
    """Base class for all reconciliation errors.

    Attributes:
        kind: Stable machine-readable name of the error kind.
        related_id: Id of the bond or payment period the error is about.
    """

    kind = "ReconciliationError"

    def __init__(self, message: str, related_id: Optional[str] = None) -> None:
        self.related_id = related_id
        super().__init__(message)


class MalformedInterval(ReconciliationError, ValueError):
    """An interval starts after it ends, or a required date is missing."""

    kind = "MalformedInterval"


class OverlappingPaymentPeriod(ReconciliationError):
    """Two explicit (non-gap) payment periods overlap for a shared product."""

    kind = "OverlappingPaymentPeriod"

    def __init__(self, message: str, first_id: str, second_id: str) -> None:
        self.first_id = first_id
        self.second_id = second_id
        super().__init__(message, related_id=first_id)


class InvalidBondTransition(ReconciliationError):
    """A bond status change or renewal was requested out of order."""

    kind = "InvalidBondTransition"


class StaleTimeline(ReconciliationError):
    """A gap handed to an action no longer matches the current timeline."""

    kind = "StaleTimeline"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of an operation that can be rejected.

    Exactly one of ``value`` and ``error`` is meaningful: ``error`` is None
    on success.
    """

    value: Optional[T] = None
    error: Optional[ReconciliationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ReconciliationError) -> "Outcome[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value, re-raising the error of a failed outcome."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
