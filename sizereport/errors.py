from __future__ import annotations


class SizeReportError(Exception):
    """Base class for errors raised by sizereport itself."""


class NotFoundError(SizeReportError, LookupError):
    """Not enough completed builds exist to run a comparison."""


class MalformedListingError(SizeReportError, ValueError):
    """External size data (CI log, report stream) does not have the expected shape."""
