"""Custom warning classes for the rental_coverage package.

These warning classes allow callers to programmatically filter, suppress,
or capture warnings using Python's standard ``warnings`` module.

Example:
    Silence double-funding warnings in a batch re-reconciliation::

        import warnings
        from rental_coverage._warnings import DoubleFundingWarning

        warnings.filterwarnings("ignore", category=DoubleFundingWarning)
"""


class RentalCoverageWarning(UserWarning):
    """Base class for all rental_coverage warnings."""


class ConfigurationWarning(RentalCoverageWarning):
    """Unusual configuration values (e.g. a lookahead shorter than the high-priority window)."""


class DoubleFundingWarning(RentalCoverageWarning):
    """A rental day is funded both by an insurer bond and a direct payment.

    The engine reports the condition and never resolves it; whether the
    direct payment is refunded or kept is a business decision for the
    operator.
    """
