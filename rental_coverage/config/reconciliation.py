"""Thresholds of the gap analyzer, alert scheduler and draft actions.

The defaults are the business rules of the rental back office: a billing
month is 30 days, a gap longer than two weeks is high risk, bond expiry is
watched 30 days ahead and an insurer request unanswered for 14 days is
stale.
"""

import warnings

from pydantic import BaseModel, Field, field_validator, model_validator

from .._warnings import ConfigurationWarning
from ..models import PaymentMethod


class GapConfig(BaseModel):
    """Gap pricing and severity rules."""

    days_per_month: int = Field(default=30, gt=0, description="Days in a billing month")
    long_gap_days: int = Field(
        default=14, ge=0, description="Gaps longer than this are HIGH severity"
    )
    gap_payment_method: PaymentMethod = Field(
        default=PaymentMethod.CASH, description="Method of synthesized gap payment periods"
    )

    @field_validator("gap_payment_method")
    @classmethod
    def validate_gap_method(cls, v: PaymentMethod) -> PaymentMethod:
        """Gap periods bill the patient, never the insurer.

        Raises:
            ValueError: If the method is CNAM.
        """
        if v == PaymentMethod.CNAM:
            raise ValueError("Gap payment periods cannot be settled through CNAM")
        return v


class AlertConfig(BaseModel):
    """Lookahead windows of the alert scheduler."""

    expiry_lookahead_days: int = Field(
        default=30, ge=0, description="Warn about bonds ending within this many days"
    )
    expiry_high_priority_days: int = Field(
        default=7, ge=0, description="Expiring bonds within this many days are HIGH priority"
    )
    stale_approval_days: int = Field(
        default=14, ge=0, description="Pending requests older than this are stale"
    )
    rental_ending_days: int = Field(
        default=14, ge=0, description="Warn about rentals ending within this many days"
    )
    rental_ending_high_priority_days: int = Field(
        default=7, ge=0, description="Rentals ending within this many days are HIGH priority"
    )

    @model_validator(mode="after")
    def check_windows(self):
        """Warn when a high-priority window is wider than its lookahead."""
        if self.expiry_high_priority_days > self.expiry_lookahead_days:
            warnings.warn(
                f"expiry_high_priority_days ({self.expiry_high_priority_days}) exceeds "
                f"expiry_lookahead_days ({self.expiry_lookahead_days}); "
                "every expiry alert will be HIGH priority",
                ConfigurationWarning,
                stacklevel=2,
            )
        if self.rental_ending_high_priority_days > self.rental_ending_days:
            warnings.warn(
                f"rental_ending_high_priority_days ({self.rental_ending_high_priority_days}) "
                f"exceeds rental_ending_days ({self.rental_ending_days})",
                ConfigurationWarning,
                stacklevel=2,
            )
        return self


class DraftConfig(BaseModel):
    """Defaults used when drafting the wizard's initial payment periods."""

    urgent_approval_estimate_days: int = Field(
        default=7, gt=0, description="Estimated days before CNAM approves an urgent rental"
    )
    default_period_months: int = Field(
        default=1, gt=0, description="Length of the first period of an open-ended rental"
    )
