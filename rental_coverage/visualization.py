"""Coverage timeline chart.

Draws the rental as a horizontal band: one bar per timeline segment colored
by funding source, double-funded segments outlined, and gaps hatched on a
second row with their amount.
"""

from typing import Optional, Sequence

import matplotlib.dates as mdates
from matplotlib.figure import Figure
from matplotlib.patches import Patch
import matplotlib.pyplot as plt

from .gap_analyzer import Gap
from .intervals import day_after
from .models import CoverageSource
from .timeline import Timeline

# WSJ Color Palette
WSJ_COLORS = {
    "blue": "#0080C7",  # CNAM funding
    "green": "#4CAF50",  # Direct payment
    "red": "#D32F2F",  # Uncovered / gaps
    "orange": "#FF9800",  # Double funding outline
    "gray": "#666666",  # Axes and text
    "light_gray": "#E0E0E0",  # Grid
}

SOURCE_COLORS = {
    CoverageSource.CNAM: WSJ_COLORS["blue"],
    CoverageSource.DIRECT: WSJ_COLORS["green"],
    CoverageSource.NONE: WSJ_COLORS["red"],
}


def _span(start, end):
    # Bars cover whole days: from the first day to the morning after the last.
    left = mdates.date2num(start)
    return left, mdates.date2num(day_after(end)) - left


def plot_coverage_timeline(
    timeline: Timeline,
    gaps: Sequence[Gap] = (),
    ax: Optional[plt.Axes] = None,
    title: Optional[str] = None,
) -> Figure:
    """Plot the funding segments of a rental.

    Args:
        timeline: Timeline to draw.
        gaps: Gaps to hatch under the timeline.
        ax: Axes to draw on; a new figure is created when omitted.
        title: Chart title.

    Returns:
        The figure holding the chart.
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(10, 2.5))
    else:
        fig = ax.figure

    for segment in timeline:
        ax.broken_barh(
            [_span(segment.interval.start, segment.interval.end)],
            (1, 0.8),
            facecolors=SOURCE_COLORS[segment.coverage_source],
            edgecolors=WSJ_COLORS["orange"] if segment.double_funded else "white",
            linewidth=2 if segment.double_funded else 0.5,
        )

    for gap in gaps:
        left, width = _span(gap.interval.start, gap.interval.end)
        ax.broken_barh(
            [(left, width)],
            (0, 0.8),
            facecolors="none",
            edgecolors=WSJ_COLORS["red"],
            hatch="//",
        )
        ax.text(
            left + width / 2,
            0.4,
            f"{gap.amount}",
            ha="center",
            va="center",
            fontsize=8,
            color=WSJ_COLORS["gray"],
        )

    ax.set_yticks([0.4, 1.4])
    ax.set_yticklabels(["Gaps", "Coverage"])
    ax.set_ylim(-0.2, 2.0)
    ax.xaxis_date()
    ax.xaxis.set_major_formatter(mdates.DateFormatter("%d/%m/%y"))
    ax.grid(True, axis="x", color=WSJ_COLORS["light_gray"], linewidth=0.5)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)

    handles = [
        Patch(facecolor=SOURCE_COLORS[CoverageSource.CNAM], label="CNAM"),
        Patch(facecolor=SOURCE_COLORS[CoverageSource.DIRECT], label="Direct"),
        Patch(facecolor=SOURCE_COLORS[CoverageSource.NONE], label="Uncovered"),
    ]
    if timeline.double_funded_segments:
        handles.append(
            Patch(facecolor="white", edgecolor=WSJ_COLORS["orange"], label="Double funded")
        )
    ax.legend(handles=handles, loc="upper right", ncol=len(handles), frameon=False)

    if title:
        ax.set_title(title)
    elif timeline.window is not None:
        ax.set_title(f"Coverage {timeline.window}")
    return fig
