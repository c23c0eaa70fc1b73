"""Tests for gap-filling and renewal actions."""

from datetime import date
from decimal import Decimal

from rental_coverage.actions import (
    apply_transition,
    auto_generate_payment_periods,
    create_payment_period_for_gap,
    draft_payment_periods,
    initiate_cnam_renewal,
)
from rental_coverage.errors import InvalidBondTransition, OverlappingPaymentPeriod, StaleTimeline
from rental_coverage.gap_analyzer import analyze_gaps
from rental_coverage.intervals import TimeInterval
from rental_coverage.models import (
    BondStatus,
    GapReason,
    PaymentMethod,
    RentalPeriod,
)
from rental_coverage.timeline import build_timeline

TODAY = date(2025, 3, 31)


def first_gap(rental, bonds, periods, pricing, today=TODAY):
    timeline = build_timeline(rental, bonds, periods, today)
    return analyze_gaps(timeline, rental, bonds, pricing, today, periods).gaps[0]


class TestCreatePaymentPeriodForGap:
    """Test billing a single gap."""

    def test_fill_gap(self, rental, period_factory, pricing):
        periods = [period_factory()]
        gap = first_gap(rental, [], periods, pricing)

        outcome = create_payment_period_for_gap(gap, periods, product_ids=("concentrator",))

        assert outcome.ok
        period = outcome.value
        assert periods[-1] is period
        assert period.is_gap_period
        assert period.needs_review
        assert period.interval == gap.interval
        assert period.amount == Decimal("590.00")
        assert period.method == PaymentMethod.CASH
        assert period.gap_reason == GapReason.UNCOVERED

    def test_second_fill_without_rebuild_is_stale(self, rental, period_factory, pricing):
        periods = [period_factory()]
        gap = first_gap(rental, [], periods, pricing)
        assert create_payment_period_for_gap(gap, periods).ok

        outcome = create_payment_period_for_gap(gap, periods)

        assert not outcome.ok
        assert isinstance(outcome.error, StaleTimeline)
        assert len(periods) == 2

    def test_cnam_scheduled_period_does_not_block_fill(self, rental, period_factory, pricing):
        periods = [
            period_factory("cnam", end=date(2025, 3, 31), amount=570, method=PaymentMethod.CNAM),
        ]
        gap = first_gap(rental, [], periods, pricing)
        assert gap.interval == rental.interval

        outcome = create_payment_period_for_gap(gap, periods)

        assert outcome.ok
        assert len(periods) == 2

    def test_filled_gap_is_stale(self, rental, period_factory, pricing):
        periods = [period_factory()]
        create_payment_period_for_gap(first_gap(rental, [], periods, pricing), periods, period_id="g1")
        refreshed = first_gap(rental, [], periods, pricing)
        assert refreshed.payment_period_id == "g1"

        outcome = create_payment_period_for_gap(refreshed, periods)

        assert isinstance(outcome.error, StaleTimeline)
        assert outcome.error.related_id == "g1"

    def test_gap_overlapping_new_direct_payment_is_stale(self, rental, period_factory, pricing):
        periods = [period_factory()]
        gap = first_gap(rental, [], periods, pricing)
        periods.append(period_factory("p2", start=date(2025, 2, 1), end=date(2025, 2, 28)))

        outcome = create_payment_period_for_gap(gap, periods)

        assert isinstance(outcome.error, StaleTimeline)
        assert len(periods) == 2


class TestInitiateCnamRenewal:
    """Test renewal drafts."""

    def test_renewal_draft(self, approved_bond):
        bonds = [approved_bond]
        outcome = initiate_cnam_renewal("bond-1", bonds, today=date(2025, 2, 20), new_bond_id="bond-2")

        assert outcome.ok
        renewal = outcome.value
        assert bonds == [approved_bond, renewal]
        assert renewal.status == BondStatus.PENDING_APPROVAL
        assert renewal.predecessor_bond_id == "bond-1"
        assert renewal.coverage_start == date(2025, 3, 1)
        assert renewal.coverage_end == date(2025, 4, 30)
        assert renewal.total_amount == Decimal("600.00")
        assert renewal.bond_type == approved_bond.bond_type
        assert approved_bond.status == BondStatus.APPROVED

    def test_renewal_of_rejected_bond(self, bond_factory):
        rejected = bond_factory(status=BondStatus.REJECTED)
        bonds = [rejected]

        outcome = initiate_cnam_renewal("bond-1", bonds)

        assert isinstance(outcome.error, InvalidBondTransition)
        assert bonds == [rejected]

    def test_renewal_of_pending_bond(self, bond_factory):
        bonds = [bond_factory(status=BondStatus.PENDING_APPROVAL)]
        assert not initiate_cnam_renewal("bond-1", bonds).ok
        assert len(bonds) == 1

    def test_unknown_bond(self):
        outcome = initiate_cnam_renewal("missing", [])
        assert isinstance(outcome.error, InvalidBondTransition)

    def test_second_renewal_refused(self, approved_bond):
        bonds = [approved_bond]
        assert initiate_cnam_renewal("bond-1", bonds).ok

        outcome = initiate_cnam_renewal("bond-1", bonds)

        assert isinstance(outcome.error, InvalidBondTransition)
        assert len(bonds) == 2

    def test_completed_bond_renewable(self, approved_bond):
        bonds = [approved_bond]
        assert initiate_cnam_renewal("bond-1", bonds, today=date(2025, 3, 15)).ok


class TestApplyTransition:
    """Test insurer decisions on a bond collection."""

    def test_approve_in_place(self, bond_factory):
        bonds = [bond_factory(status=BondStatus.PENDING_APPROVAL, start=None, end=None)]

        outcome = apply_transition(
            "bond-1",
            bonds,
            BondStatus.APPROVED,
            coverage_start=date(2025, 1, 1),
            coverage_end=date(2025, 1, 31),
        )

        assert outcome.ok
        assert bonds[0].status == BondStatus.APPROVED
        assert bonds[0].coverage_interval == TimeInterval(date(2025, 1, 1), date(2025, 1, 31))

    def test_invalid_transition_leaves_collection(self, approved_bond):
        bonds = [approved_bond]
        outcome = apply_transition("bond-1", bonds, BondStatus.REJECTED)
        assert isinstance(outcome.error, InvalidBondTransition)
        assert bonds == [approved_bond]

    def test_unknown_bond(self):
        assert not apply_transition("missing", [], BondStatus.APPROVED).ok


class TestAutoGeneratePaymentPeriods:
    """Test bulk gap billing."""

    def test_one_period_per_uncovered_run(self, rental, approved_bond, pricing):
        periods = []
        outcome = auto_generate_payment_periods(
            [approved_bond], rental, pricing, periods, date(2025, 1, 15)
        )

        assert outcome.ok
        assert len(outcome.value) == 1
        period = outcome.value[0]
        assert period.interval == TimeInterval(date(2025, 3, 1), date(2025, 3, 31))
        assert period.amount == Decimal("310.00")
        assert period.product_ids == ("concentrator",)
        assert periods == outcome.value

    def test_direct_days_not_billed_again(self, rental, period_factory, pricing):
        periods = [
            period_factory("p1"),
            period_factory("p2", start=date(2025, 3, 1), end=date(2025, 3, 31)),
        ]
        outcome = auto_generate_payment_periods([], rental, pricing, periods, TODAY)
        assert [p.interval for p in outcome.value] == [
            TimeInterval(date(2025, 2, 1), date(2025, 2, 28))
        ]

    def test_idempotent(self, rental, pricing):
        periods = []
        auto_generate_payment_periods([], rental, pricing, periods, TODAY)

        outcome = auto_generate_payment_periods([], rental, pricing, periods, TODAY)

        assert outcome.ok
        assert outcome.value == []
        assert len(periods) == 1

    def test_open_rental_up_to_today(self, open_rental, pricing):
        outcome = auto_generate_payment_periods([], open_rental, pricing, [], date(2025, 1, 10))
        assert outcome.value[0].interval == TimeInterval(date(2025, 1, 1), date(2025, 1, 10))
        assert outcome.value[0].amount == Decimal("100.00")

    def test_overlapping_periods_refused(self, rental, period_factory, pricing):
        periods = [
            period_factory("p1"),
            period_factory("p2", start=date(2025, 1, 20), end=date(2025, 2, 20)),
        ]
        outcome = auto_generate_payment_periods([], rental, pricing, periods, TODAY)
        assert isinstance(outcome.error, OverlappingPaymentPeriod)
        assert len(periods) == 2


class TestDraftPaymentPeriods:
    """Test the wizard's starting periods."""

    def test_cash_client(self, rental):
        drafts = draft_payment_periods(rental, Decimal("190"), cnam_eligible=False)
        assert len(drafts) == 1
        assert drafts[0].method == PaymentMethod.CASH
        assert drafts[0].interval == rental.interval

    def test_cnam_client(self, rental):
        drafts = draft_payment_periods(rental, Decimal("190"), cnam_eligible=True)
        assert [p.method for p in drafts] == [PaymentMethod.CNAM]

    def test_urgent_cnam_rental_gets_pending_gap(self):
        rental = RentalPeriod(start_date=date(2025, 1, 1), end_date=date(2025, 3, 31), is_urgent=True)
        drafts = draft_payment_periods(rental, Decimal("190"), cnam_eligible=True)

        assert len(drafts) == 2
        gap = drafts[0]
        assert gap.is_gap_period
        assert gap.gap_reason == GapReason.CNAM_PENDING
        assert gap.interval == TimeInterval(date(2025, 1, 1), date(2025, 1, 7))
        assert gap.amount == Decimal("44.33")
        assert drafts[1].method == PaymentMethod.CNAM

    def test_open_ended_first_month(self, open_rental):
        drafts = draft_payment_periods(open_rental, Decimal("300"), cnam_eligible=False)
        assert drafts[0].interval == TimeInterval(date(2025, 1, 1), date(2025, 1, 31))
