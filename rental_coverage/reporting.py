"""Tabular views of a reconciliation report.

Money columns are converted to float for display and export; the report
itself keeps exact decimals.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

import pandas as pd

from .aggregator import FinancialSummary
from .alerts import Alert
from .config import OutputConfig
from .gap_analyzer import Gap
from .timeline import Timeline

if TYPE_CHECKING:
    from .engine import ReconciliationReport

TIMELINE_COLUMNS = [
    "start",
    "end",
    "days",
    "source",
    "bond_id",
    "payment_period_id",
    "double_funded",
]
GAP_COLUMNS = [
    "start",
    "end",
    "days",
    "amount",
    "severity",
    "reason",
    "related_bond_id",
    "payment_period_id",
]
ALERT_COLUMNS = ["type", "due_date", "days_until", "related_id", "priority", "message"]


def timeline_to_dataframe(timeline: Optional[Timeline]) -> pd.DataFrame:
    """One row per timeline segment, in chronological order."""
    if timeline is None:
        return pd.DataFrame(columns=TIMELINE_COLUMNS)
    return pd.DataFrame(
        [
            {
                "start": pd.Timestamp(segment.interval.start),
                "end": pd.Timestamp(segment.interval.end),
                "days": segment.duration_days,
                "source": segment.coverage_source.value,
                "bond_id": segment.bond_id,
                "payment_period_id": segment.payment_period_id,
                "double_funded": segment.double_funded,
            }
            for segment in timeline
        ],
        columns=TIMELINE_COLUMNS,
    )


def gaps_to_dataframe(gaps: Sequence[Gap]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "start": pd.Timestamp(gap.interval.start),
                "end": pd.Timestamp(gap.interval.end),
                "days": gap.duration_days,
                "amount": float(gap.amount),
                "severity": gap.severity.value,
                "reason": gap.reason.value,
                "related_bond_id": gap.related_bond_id,
                "payment_period_id": gap.payment_period_id,
            }
            for gap in gaps
        ],
        columns=GAP_COLUMNS,
    )


def alerts_to_dataframe(alerts: Sequence[Alert]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "type": alert.type.value,
                "due_date": pd.Timestamp(alert.due_date),
                "days_until": alert.days_until,
                "related_id": alert.related_id,
                "priority": alert.priority.value,
                "message": alert.message,
            }
            for alert in alerts
        ],
        columns=ALERT_COLUMNS,
    )


def summary_to_dataframe(summary: FinancialSummary, currency: str = "TND") -> pd.DataFrame:
    """Financial buckets as ``metric``/``value`` rows, grand total last.

    Examples:
        Print the totals::

            print(summary_to_dataframe(report.summary).to_string(index=False))
    """
    rows = [
        {"metric": "cnam_total", "value": float(summary.cnam_total)},
        {"metric": "direct_total", "value": float(summary.direct_total)},
        {"metric": "gap_total", "value": float(summary.gap_total)},
        {"metric": "deposit_total", "value": float(summary.deposit_total)},
        {"metric": "grand_total", "value": float(summary.grand_total)},
    ]
    df = pd.DataFrame(rows)
    df["currency"] = currency
    return df


def report_to_dataframes(
    report: "ReconciliationReport", currency: str = "TND"
) -> Dict[str, pd.DataFrame]:
    return {
        "timeline": timeline_to_dataframe(report.timeline),
        "gaps": gaps_to_dataframe(report.gaps),
        "alerts": alerts_to_dataframe(report.alerts),
        "summary": summary_to_dataframe(report.summary, currency),
    }


def export_report(
    report: "ReconciliationReport",
    output: Optional[OutputConfig] = None,
    prefix: Optional[str] = None,
) -> List[Path]:
    """Write the report tables to the output directory.

    Args:
        report: Report to export.
        output: Output settings; defaults to :class:`OutputConfig`.
        prefix: File name prefix; the rental id when omitted.

    Returns:
        Paths of the written files, one per table.
    """
    output = output or OutputConfig()
    prefix = prefix or report.rental.rental_id
    directory = output.output_path
    directory.mkdir(parents=True, exist_ok=True)

    paths = []
    for name, df in report_to_dataframes(report, output.currency).items():
        path = directory / f"{prefix}_{name}.{output.file_format}"
        if output.file_format == "csv":
            df.to_csv(path, index=False)
        else:
            df.to_json(path, orient="records", date_format="iso")
        paths.append(path)
    return paths
