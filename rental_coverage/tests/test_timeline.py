"""Tests for the timeline builder."""

from datetime import date

import pytest

from rental_coverage.errors import OverlappingPaymentPeriod
from rental_coverage.intervals import TimeInterval
from rental_coverage.models import BondStatus, CoverageSource, GapReason, PaymentMethod
from rental_coverage.timeline import build_timeline, display_window

TODAY = date(2025, 1, 15)


def spans(timeline):
    return [(s.interval.start, s.interval.end, s.coverage_source) for s in timeline]


class TestBuildTimeline:
    """Test segment partitioning and labelling."""

    def test_no_funding_is_one_none_segment(self, rental):
        timeline = build_timeline(rental, [], [], TODAY)
        assert spans(timeline) == [(date(2025, 1, 1), date(2025, 3, 31), CoverageSource.NONE)]

    def test_bond_then_uncovered(self, rental, approved_bond):
        timeline = build_timeline(rental, [approved_bond], [], TODAY)
        assert spans(timeline) == [
            (date(2025, 1, 1), date(2025, 2, 28), CoverageSource.CNAM),
            (date(2025, 3, 1), date(2025, 3, 31), CoverageSource.NONE),
        ]
        assert timeline.segments[0].bond_id == "bond-1"

    def test_direct_payment_segment(self, rental, period_factory):
        timeline = build_timeline(rental, [], [period_factory()], TODAY)
        assert spans(timeline) == [
            (date(2025, 1, 1), date(2025, 1, 31), CoverageSource.DIRECT),
            (date(2025, 2, 1), date(2025, 3, 31), CoverageSource.NONE),
        ]
        assert timeline.segments[0].payment_period_id == "pay-1"

    def test_pending_and_rejected_bonds_do_not_cover(self, rental, bond_factory):
        bonds = [
            bond_factory("b1", status=BondStatus.PENDING_APPROVAL),
            bond_factory("b2", status=BondStatus.REJECTED),
        ]
        timeline = build_timeline(rental, bonds, [], TODAY)
        assert timeline.by_source(CoverageSource.CNAM) == []

    def test_cnam_method_period_is_not_direct(self, rental, period_factory):
        timeline = build_timeline(rental, [], [period_factory(method=PaymentMethod.CNAM)], TODAY)
        assert len(timeline) == 1
        assert timeline.segments[0].coverage_source == CoverageSource.NONE

    def test_double_funding_flagged(self, rental, approved_bond, period_factory):
        """A day covered by a bond and a direct payment stays CNAM and is flagged."""
        period = period_factory(start=date(2025, 2, 15), end=date(2025, 3, 15))
        timeline = build_timeline(rental, [approved_bond], [period], TODAY)
        assert spans(timeline) == [
            (date(2025, 1, 1), date(2025, 2, 14), CoverageSource.CNAM),
            (date(2025, 2, 15), date(2025, 2, 28), CoverageSource.CNAM),
            (date(2025, 3, 1), date(2025, 3, 15), CoverageSource.DIRECT),
            (date(2025, 3, 16), date(2025, 3, 31), CoverageSource.NONE),
        ]
        flagged = timeline.double_funded_segments
        assert len(flagged) == 1
        assert flagged[0].funding_period_ids == ("pay-1",)
        assert flagged[0].bond_id == "bond-1"

    def test_adjacent_identical_segments_merged(self, rental, bond_factory, period_factory):
        """Cuts from a gap period inside bond coverage do not split the CNAM segment."""
        bond = bond_factory(end=date(2025, 3, 31))
        gap = period_factory(
            "gap-1",
            start=date(2025, 2, 1),
            end=date(2025, 2, 28),
            is_gap_period=True,
            gap_reason=GapReason.OTHER,
        )
        timeline = build_timeline(rental, [bond], [gap], TODAY)
        assert len(timeline) == 1
        assert timeline.segments[0].interval == rental.interval

    def test_gap_period_keeps_none_with_id(self, rental, period_factory):
        gap = period_factory(
            "gap-1",
            start=date(2025, 2, 1),
            end=date(2025, 2, 28),
            is_gap_period=True,
            gap_reason=GapReason.MAINTENANCE,
        )
        timeline = build_timeline(rental, [], [gap], TODAY)
        assert [s.payment_period_id for s in timeline] == [None, "gap-1", None]
        assert all(s.coverage_source == CoverageSource.NONE for s in timeline)

    def test_bond_outside_rental_clipped(self, rental, bond_factory):
        bond = bond_factory(start=date(2024, 12, 1), end=date(2025, 1, 10))
        timeline = build_timeline(rental, [bond], [], TODAY)
        assert timeline.segments[0].interval == TimeInterval(date(2025, 1, 1), date(2025, 1, 10))

    def test_overlapping_periods_raise(self, rental, period_factory):
        periods = [
            period_factory("p1"),
            period_factory("p2", start=date(2025, 1, 20), end=date(2025, 2, 20)),
        ]
        with pytest.raises(OverlappingPaymentPeriod):
            build_timeline(rental, [], periods, TODAY)

    def test_days_by_source(self, rental, approved_bond):
        days = build_timeline(rental, [approved_bond], [], TODAY).days_by_source()
        assert days[CoverageSource.CNAM] == 59
        assert days[CoverageSource.NONE] == 31
        assert days[CoverageSource.DIRECT] == 0


class TestOpenEndedRental:
    """Test display of rentals without a committed end."""

    def test_displayed_up_to_today(self, open_rental):
        timeline = build_timeline(open_rental, [], [], date(2025, 2, 10))
        assert timeline.window == TimeInterval(date(2025, 1, 1), date(2025, 2, 10))
        assert open_rental.is_open_ended

    def test_not_started(self, open_rental):
        timeline = build_timeline(open_rental, [], [], date(2024, 12, 1))
        assert timeline.window is None
        assert len(timeline) == 0

    def test_committed_rental_displayed_whole(self, rental):
        assert display_window(rental, TODAY) == rental.interval
