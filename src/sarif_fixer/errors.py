"""
Error taxonomy for the SARIF fix pipeline.

Every error carries a single human-readable message suitable for showing
to the user as-is. Handling policy by family:

  ParseError / LoadError     -- abort the current operation
  ExtractionError            -- recovered locally as a placeholder
  ConfigurationMissing       -- abort, user is told how to configure
  CompletionError subclasses -- caught at the call site, reported
  EditRejected               -- reported, file left untouched
"""


class SarifFixerError(Exception):
    """Base class for all expected, user-reportable failures."""

    pass


class ParseError(SarifFixerError):
    """The diagnostics log is not valid SARIF (bad JSON or no runs)."""

    pass


class LoadError(SarifFixerError):
    """The rule catalog file is missing, unreadable or malformed."""

    pass


class ExtractionError(SarifFixerError):
    """A source file referenced by a violation could not be read."""

    def __init__(self, message: str, uri: str = ""):
        super().__init__(message)
        self.uri = uri


class ConfigurationMissing(SarifFixerError):
    """No usable completion-service configuration was found."""

    pass


# =============================================================================
# COMPLETION SERVICE
# =============================================================================


class CompletionError(SarifFixerError):
    """Base class for completion-service failures."""

    pass


class InvalidCredential(CompletionError):
    """HTTP 401 from the completion service. Not retried."""

    pass


class AccessDenied(CompletionError):
    """HTTP 403 from the completion service. Not retried."""

    pass


class RateLimited(CompletionError):
    """HTTP 429 persisted after the retry budget was spent."""

    def __init__(self, message: str, retry_after: float):
        super().__init__(message)
        self.retry_after = retry_after


class RequestTimeout(CompletionError):
    """The completion request exceeded its timeout. Not retried."""

    pass


class CompletionFailed(CompletionError):
    """Any other transport or response failure."""

    def __init__(self, message: str, detail: str = ""):
        super().__init__(message)
        self.detail = detail


# =============================================================================
# FIX APPLICATION
# =============================================================================


class EditRejected(SarifFixerError):
    """The fix could not be written. No partial edit was made."""

    pass
