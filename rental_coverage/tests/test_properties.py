"""Property-based tests using Hypothesis for reconciliation invariants.

This module checks that the timeline, gap analysis and financial summary
keep their structural guarantees across randomly generated rentals, bonds
and payment periods.
"""

from datetime import date, timedelta
from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from rental_coverage.actions import initiate_cnam_renewal
from rental_coverage.aggregator import summarize
from rental_coverage.bonds import CoverageBond, renewal_chain, validate_bonds
from rental_coverage.gap_analyzer import analyze_gaps, financial_window
from rental_coverage.intervals import TimeInterval, day_after, duration_days, intersect
from rental_coverage.models import (
    BondStatus,
    CoverageSource,
    GapReason,
    PaymentMethod,
    RentalPeriod,
)
from rental_coverage.payments import PaymentPeriod
from rental_coverage.timeline import build_timeline

BASE = date(2025, 1, 1)
EXPLICIT_METHODS = [PaymentMethod.CASH, PaymentMethod.CHEQUE, PaymentMethod.CNAM]


def pricing(product_ids, day):
    return Decimal("300")


@st.composite
def rentals(draw):
    start = BASE + timedelta(days=draw(st.integers(0, 30)))
    if draw(st.booleans()):
        return RentalPeriod(start_date=start)
    end = start + timedelta(days=draw(st.integers(0, 150)))
    return RentalPeriod(start_date=start, end_date=end)


@st.composite
def bond_lists(draw):
    bonds = []
    for i in range(draw(st.integers(0, 3))):
        start = BASE + timedelta(days=draw(st.integers(-20, 150)))
        end = start + timedelta(days=draw(st.integers(0, 90)))
        status = draw(st.sampled_from(list(BondStatus)))
        window = {"coverage_start": start, "coverage_end": end}
        if status == BondStatus.PENDING_APPROVAL and draw(st.booleans()):
            window = {}
        bonds.append(
            CoverageBond(
                id=f"b{i}",
                bond_type="CONCENTRATEUR_OXYGENE",
                status=status,
                total_amount=Decimal(draw(st.integers(0, 2000))),
                **window,
            )
        )
    return bonds


@st.composite
def period_lists(draw):
    """Explicit periods on disjoint day ranges, plus optional gap periods."""
    offsets = sorted(draw(st.sets(st.integers(-10, 180), max_size=8)))
    periods = []
    for i, (first, last) in enumerate(zip(offsets[::2], offsets[1::2])):
        periods.append(
            PaymentPeriod(
                id=f"p{i}",
                interval=TimeInterval(BASE + timedelta(days=first), BASE + timedelta(days=last)),
                amount=Decimal(draw(st.integers(0, 900))),
                method=draw(st.sampled_from(EXPLICIT_METHODS)),
            )
        )
    for i in range(draw(st.integers(0, 2))):
        start = BASE + timedelta(days=draw(st.integers(0, 150)))
        periods.append(
            PaymentPeriod(
                id=f"g{i}",
                interval=TimeInterval(start, start + timedelta(days=draw(st.integers(0, 30)))),
                amount=Decimal(draw(st.integers(0, 500))),
                is_gap_period=True,
                gap_reason=draw(st.sampled_from([GapReason.MAINTENANCE, GapReason.OTHER])),
            )
        )
    return periods


todays = st.integers(0, 200).map(lambda n: BASE + timedelta(days=n))


class TestTimelineProperties:
    """Structural guarantees of the timeline."""

    @given(rental=rentals(), bonds=bond_lists(), periods=period_lists(), today=todays)
    @settings(max_examples=60, suppress_health_check=[HealthCheck.too_slow])
    def test_segments_partition_window(self, rental, bonds, periods, today):
        """Segments are ordered, contiguous, disjoint and cover the window exactly."""
        timeline = build_timeline(rental, bonds, periods, today)
        if timeline.window is None:
            assert len(timeline) == 0
            return

        segments = timeline.segments
        assert segments[0].interval.start == timeline.window.start
        assert segments[-1].interval.end == timeline.window.end
        for previous, current in zip(segments, segments[1:]):
            assert current.interval.start == day_after(previous.interval.end)
            assert previous._label() != current._label()
        assert sum(s.duration_days for s in segments) == duration_days(timeline.window)

    @given(rental=rentals(), bonds=bond_lists(), periods=period_lists(), today=todays)
    @settings(max_examples=40, suppress_health_check=[HealthCheck.too_slow])
    def test_rebuild_is_idempotent(self, rental, bonds, periods, today):
        first = build_timeline(rental, bonds, periods, today)
        second = build_timeline(rental, list(bonds), list(periods), today)
        assert first == second

    @given(rental=rentals(), bonds=bond_lists(), periods=period_lists(), today=todays)
    @settings(max_examples=40, suppress_health_check=[HealthCheck.too_slow])
    def test_only_qualifying_bonds_fund_segments(self, rental, bonds, periods, today):
        funding = {b.id for b in bonds if b.provides_coverage}
        for segment in build_timeline(rental, bonds, periods, today):
            if segment.coverage_source == CoverageSource.CNAM:
                assert segment.bond_id in funding
            if segment.double_funded:
                assert segment.coverage_source == CoverageSource.CNAM
                assert segment.funding_period_ids


class TestGapProperties:
    """Gaps are exactly the unfunded part of the financial window."""

    @given(rental=rentals(), bonds=bond_lists(), periods=period_lists(), today=todays)
    @settings(max_examples=60, suppress_health_check=[HealthCheck.too_slow])
    def test_gaps_complement_funded_days(self, rental, bonds, periods, today):
        timeline = build_timeline(rental, bonds, periods, today)
        analysis = analyze_gaps(timeline, rental, bonds, pricing, today, periods)
        window = financial_window(rental, today)
        if window is None:
            assert analysis.gaps == ()
            return

        funded = 0
        for segment in timeline:
            if segment.coverage_source != CoverageSource.NONE:
                part = intersect(segment.interval, window)
                funded += duration_days(part) if part else 0
        gap_days = sum(g.duration_days for g in analysis.gaps)
        assert funded + gap_days == duration_days(window)
        assert analysis.total_amount == sum((g.amount for g in analysis.gaps), Decimal("0.00"))
        assert all(g.amount == Decimal(10 * g.duration_days) for g in analysis.gaps)


class TestFinancialProperties:
    """Conservation of the financial summary."""

    @given(
        rental=rentals(),
        bonds=bond_lists(),
        periods=period_lists(),
        today=todays,
        deposit=st.integers(0, 1000),
    )
    @settings(max_examples=60, suppress_health_check=[HealthCheck.too_slow])
    def test_grand_total_is_sum_of_buckets(self, rental, bonds, periods, today, deposit):
        timeline = build_timeline(rental, bonds, periods, today)
        summary = summarize(bonds, periods, Decimal(deposit), timeline)
        assert summary.grand_total == (
            summary.cnam_total + summary.direct_total + summary.gap_total + summary.deposit_total
        )
        assert summary.double_funded_days == sum(
            s.duration_days for s in timeline.double_funded_segments
        )


class TestRenewalProperties:
    """Renewal chains built through the actions stay acyclic."""

    @given(renewals=st.integers(1, 6), months=st.integers(1, 3))
    @settings(max_examples=20)
    def test_chains_acyclic_and_contiguous(self, renewals, months):
        bonds = [
            CoverageBond(
                id="b0",
                bond_type="VNI",
                status=BondStatus.APPROVED,
                coverage_start=BASE,
                coverage_end=BASE + timedelta(days=29),
                covered_months=months,
            )
        ]
        for i in range(1, renewals + 1):
            outcome = initiate_cnam_renewal(bonds[-1].id, bonds, new_bond_id=f"b{i}")
            assert outcome.ok
            approved = outcome.value
            bonds[-1] = CoverageBond(
                id=approved.id,
                bond_type=approved.bond_type,
                status=BondStatus.APPROVED,
                coverage_start=approved.coverage_start,
                coverage_end=approved.coverage_end,
                covered_months=approved.covered_months,
                predecessor_bond_id=approved.predecessor_bond_id,
            )

        chain = renewal_chain(f"b{renewals}", bonds)
        assert [b.id for b in chain] == [f"b{i}" for i in range(renewals + 1)]
        assert validate_bonds(bonds) == []
        for previous, current in zip(chain, chain[1:]):
            assert current.coverage_start == day_after(previous.coverage_end)
