"""Pytest configuration and shared fixtures."""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from rental_coverage.bonds import CoverageBond
from rental_coverage.intervals import TimeInterval
from rental_coverage.models import BondStatus, PaymentMethod, RentalPeriod
from rental_coverage.payments import PaymentPeriod


def make_bond(
    bond_id="bond-1",
    start=date(2025, 1, 1),
    end=date(2025, 2, 28),
    status=BondStatus.APPROVED,
    months=2,
    amount=600,
    **kwargs,
):
    """Build a bond with test defaults."""
    return CoverageBond(
        id=bond_id,
        bond_type=kwargs.pop("bond_type", "CONCENTRATEUR_OXYGENE"),
        status=status,
        coverage_start=start,
        coverage_end=end,
        covered_months=months,
        total_amount=Decimal(amount),
        **kwargs,
    )


def make_period(period_id="pay-1", start=date(2025, 1, 1), end=date(2025, 1, 31), amount=300, **kwargs):
    """Build a payment period with test defaults."""
    return PaymentPeriod(
        id=period_id,
        interval=TimeInterval(start, end),
        amount=Decimal(amount),
        method=kwargs.pop("method", PaymentMethod.CASH),
        **kwargs,
    )


def flat_pricing(monthly):
    """Pricing function charging the same monthly cost for any product set."""

    def pricing(product_ids, day):
        return Decimal(monthly)

    return pricing


@pytest.fixture
def project_root():
    """Return the package root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def rental():
    """Committed 90-day rental over the first quarter of 2025."""
    return RentalPeriod(
        start_date=date(2025, 1, 1),
        end_date=date(2025, 3, 31),
        rental_id="rental-1",
        product_ids=("concentrator",),
    )


@pytest.fixture
def open_rental():
    """Open-ended rental started on 1 January 2025."""
    return RentalPeriod(start_date=date(2025, 1, 1), rental_id="rental-open")


@pytest.fixture
def pricing():
    """300 per month, i.e. 10 per day."""
    return flat_pricing(300)


@pytest.fixture
def approved_bond():
    """Approved bond covering January and February 2025 for 600."""
    return make_bond()


@pytest.fixture
def bond_factory():
    return make_bond


@pytest.fixture
def period_factory():
    return make_period


@pytest.fixture
def pricing_factory():
    return flat_pricing
