"""Exception hierarchy for license_fetcher.

Fatal errors abort the pipeline; wrapping sites always chain the underlying
cause with ``raise ... from err`` so the full context reaches the user.
Recoverable errors (``LicenseSourceFailed``, ``CacheUnavailable``) are caught
inside the pipeline and only logged.
"""


class LicenseFetcherError(Exception):
    """Base class for all errors raised by license_fetcher."""


class ProviderInvocationFailed(LicenseFetcherError):
    """A dependency-graph provider could not be run or its output parsed."""


class ReconciliationInconsistent(LicenseFetcherError):
    """The two dependency graphs disagree in a way that cannot be reconciled."""


class LicenseSourceFailed(LicenseFetcherError):
    """A single license source failed; the next source in the chain is tried."""


class CacheUnavailable(LicenseFetcherError):
    """The on-disk resolution cache could not be opened or is corrupt."""


class CodecError(LicenseFetcherError):
    """Encoded package data is corrupt or was written by another format version."""


class UnresolvedLicenseError(LicenseFetcherError):
    """No source produced a license text for a package under strict mode."""

    def __init__(self, name: str, version: str) -> None:
        self.name = name
        self.version = version
        super().__init__(f"No license text found for {name} {version} (strict mode)")
