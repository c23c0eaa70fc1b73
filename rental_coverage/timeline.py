"""Timeline builder: one ordered partition of the rental by funding source.

The builder cuts the rental interval at every boundary of every qualifying
bond and payment period, then labels each piece:

- ``CNAM`` if a qualifying bond (APPROVED, IN_PROGRESS, COMPLETED) covers it,
- ``DIRECT`` if an explicit directly-paid period covers it,
- ``NONE`` otherwise.

A piece covered by both a bond and a direct period stays ``CNAM`` but is
flagged ``double_funded`` with the direct period ids kept, so the
aggregator can report both amounts. Adjacent pieces with identical labels
are merged, which makes every segment maximal.

Open-ended rentals are displayed up to ``today``; the rental itself stays
open. The timeline is rebuilt from scratch on every call and never mutated.
"""

from dataclasses import dataclass, field
from datetime import date
import logging
from typing import Iterator, List, Optional, Sequence, Tuple

from .bonds import CoverageBond, qualifying_bonds
from .intervals import TimeInterval, clamp_to_today, contains, day_after, day_before, duration_days
from .models import CoverageSource, RentalPeriod
from .payments import PaymentPeriod, ensure_no_overlaps

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimelineSegment:
    """A maximal run of rental days with one funding source.

    Attributes:
        interval: Days of the segment.
        coverage_source: Who funds the segment.
        bond_id: Bond funding a ``CNAM`` segment.
        payment_period_id: Direct period funding a ``DIRECT`` segment, the
            direct period double-funding a ``CNAM`` segment, or the gap
            period billing a ``NONE`` segment.
        double_funded: A ``CNAM`` segment also covered by a direct payment.
        funding_period_ids: All direct periods covering a double-funded segment.
    """

    interval: TimeInterval
    coverage_source: CoverageSource
    bond_id: Optional[str] = None
    payment_period_id: Optional[str] = None
    double_funded: bool = False
    funding_period_ids: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def duration_days(self) -> int:
        return duration_days(self.interval)

    def _label(self) -> tuple:
        return (
            self.coverage_source,
            self.bond_id,
            self.payment_period_id,
            self.double_funded,
            self.funding_period_ids,
        )


@dataclass(frozen=True)
class Timeline:
    """Ordered, non-overlapping segments covering the displayed rental window.

    Attributes:
        window: Displayed rental interval, None when the rental has not started.
        segments: Segments in chronological order.
    """

    window: Optional[TimeInterval]
    segments: Tuple[TimelineSegment, ...] = field(default_factory=tuple)

    def __iter__(self) -> Iterator[TimelineSegment]:
        return iter(self.segments)

    def __len__(self) -> int:
        return len(self.segments)

    def by_source(self, source: CoverageSource) -> List[TimelineSegment]:
        return [s for s in self.segments if s.coverage_source == source]

    @property
    def double_funded_segments(self) -> List[TimelineSegment]:
        return [s for s in self.segments if s.double_funded]

    def days_by_source(self) -> dict:
        """Number of days funded by each source."""
        totals = {source: 0 for source in CoverageSource}
        for segment in self.segments:
            totals[segment.coverage_source] += segment.duration_days
        return totals


def display_window(rental: RentalPeriod, today: date) -> Optional[TimeInterval]:
    """Rental interval as displayed: open-ended rentals stop at ``today``."""
    if rental.is_open_ended:
        return clamp_to_today(rental.interval, today)
    return rental.interval


def _cut_points(window: TimeInterval, intervals: Sequence[TimeInterval]) -> List[date]:
    # Each cut is the first day of a new segment; the last cut is one past the window.
    end_exclusive = day_after(window.end)  # type: ignore[arg-type]
    cuts = {window.start, end_exclusive}
    for interval in intervals:
        for cut in (interval.start, day_after(interval.end) if interval.end else None):
            if cut is not None and window.start < cut < end_exclusive:
                cuts.add(cut)
    return sorted(cuts)


def _label_day(
    day: date,
    bonds: Sequence[CoverageBond],
    direct: Sequence[PaymentPeriod],
    gap_periods: Sequence[PaymentPeriod],
) -> Tuple[CoverageSource, Optional[str], Optional[str], bool, Tuple[str, ...]]:
    bond = next((b for b in bonds if contains(b.coverage_interval, day)), None)  # type: ignore[arg-type]
    paying = tuple(p.id for p in direct if contains(p.interval, day))

    if bond is not None:
        first_direct = paying[0] if paying else None
        return CoverageSource.CNAM, bond.id, first_direct, bool(paying), paying
    if paying:
        return CoverageSource.DIRECT, None, paying[0], False, ()
    gap_period = next((p for p in gap_periods if contains(p.interval, day)), None)
    return CoverageSource.NONE, None, gap_period.id if gap_period else None, False, ()


def build_timeline(
    rental: RentalPeriod,
    bonds: Sequence[CoverageBond],
    periods: Sequence[PaymentPeriod],
    today: date,
) -> Timeline:
    """Partition the rental into funding segments.

    Args:
        rental: The rental being reconciled.
        bonds: All bonds; only qualifying ones contribute coverage.
        periods: All payment periods, explicit and gap.
        today: Reference date used to clamp open-ended rentals.

    Returns:
        The timeline of the displayed rental window.

    Raises:
        OverlappingPaymentPeriod: If two explicit periods overlap.
    """
    ensure_no_overlaps(periods)

    window = display_window(rental, today)
    if window is None:
        logger.debug(f"Rental {rental.rental_id} starts after {today}; empty timeline")
        return Timeline(window=None)

    funding_bonds = qualifying_bonds(bonds)
    ordered = sorted(periods, key=lambda p: (p.start, p.id))
    direct = [p for p in ordered if p.provides_direct_coverage]
    gap_periods = [p for p in ordered if p.is_gap_period]

    boundaries = [b.coverage_interval for b in funding_bonds] + [p.interval for p in ordered]
    cuts = _cut_points(window, boundaries)  # type: ignore[arg-type]

    segments: List[TimelineSegment] = []
    for first_day, next_cut in zip(cuts, cuts[1:]):
        source, bond_id, period_id, double, funding = _label_day(
            first_day, funding_bonds, direct, gap_periods
        )
        segment = TimelineSegment(
            interval=TimeInterval(first_day, day_before(next_cut)),
            coverage_source=source,
            bond_id=bond_id,
            payment_period_id=period_id,
            double_funded=double,
            funding_period_ids=funding,
        )
        if segments and segments[-1]._label() == segment._label():
            previous = segments.pop()
            segment = TimelineSegment(
                interval=TimeInterval(previous.interval.start, segment.interval.end),
                coverage_source=source,
                bond_id=bond_id,
                payment_period_id=period_id,
                double_funded=double,
                funding_period_ids=funding,
            )
        segments.append(segment)

    logger.debug(
        f"Rental {rental.rental_id}: {len(segments)} segments over {window}, "
        f"{sum(1 for s in segments if s.double_funded)} double-funded"
    )
    return Timeline(window=window, segments=tuple(segments))
