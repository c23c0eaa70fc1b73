"""Rental coverage and payment-gap reconciliation"""

from ._version import __version__

# Use lazy imports to keep ``import rental_coverage`` free of pandas and matplotlib
# Direct imports are defined but modules are imported only when accessed

__all__ = [
    "__version__",
    "Alert",
    "BondStatus",
    "Config",
    "CoverageBond",
    "CoverageReconciler",
    "CoverageSource",
    "FinancialSummary",
    "Gap",
    "GapReason",
    "Outcome",
    "PatientStatus",
    "PaymentData",
    "PaymentMethod",
    "PaymentPeriod",
    "ReconciliationError",
    "ReconciliationReport",
    "RentalPeriod",
    "TimeInterval",
    "Timeline",
    "WSJ_COLORS",
    "plot_coverage_timeline",
]


def __getattr__(name):
    """Lazy import modules to avoid loading plotting and table libraries on import."""
    if name in [
        "BondStatus",
        "CoverageSource",
        "GapReason",
        "PatientStatus",
        "PaymentMethod",
        "RentalPeriod",
    ]:
        from .models import (
            BondStatus,
            CoverageSource,
            GapReason,
            PatientStatus,
            PaymentMethod,
            RentalPeriod,
        )

        return locals()[name]
    elif name == "Alert":
        from .alerts import Alert

        return Alert
    elif name == "Config":
        from .config import Config

        return Config
    elif name == "CoverageBond":
        from .bonds import CoverageBond

        return CoverageBond
    elif name in ["CoverageReconciler", "PaymentData", "ReconciliationReport"]:
        from .engine import CoverageReconciler, PaymentData, ReconciliationReport

        return locals()[name]
    elif name == "FinancialSummary":
        from .aggregator import FinancialSummary

        return FinancialSummary
    elif name == "Gap":
        from .gap_analyzer import Gap

        return Gap
    elif name == "Outcome" or name == "ReconciliationError":
        from .errors import Outcome, ReconciliationError

        return locals()[name]
    elif name == "PaymentPeriod":
        from .payments import PaymentPeriod

        return PaymentPeriod
    elif name == "TimeInterval":
        from .intervals import TimeInterval

        return TimeInterval
    elif name == "Timeline":
        from .timeline import Timeline

        return Timeline
    elif name == "WSJ_COLORS" or name == "plot_coverage_timeline":
        from .visualization import WSJ_COLORS, plot_coverage_timeline

        return locals()[name]
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
