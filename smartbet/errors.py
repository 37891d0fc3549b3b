"""Exceptions raised by the scraping and settlement pipeline."""


class SmartBetError(Exception):
    """Base class for pipeline errors."""


class SessionError(SmartBetError):
    """The browser could not be launched. Fatal for the run."""


class GateError(SmartBetError):
    """Problem getting past a site's anti-bot gate."""


class GateDeniedError(GateError):
    """The page explicitly denied access. Fatal for the run."""


class GateTimeoutError(GateError):
    """The bot challenge did not clear in time. The run continues."""


class ExtractionRowError(SmartBetError):
    """A single row could not be parsed and is skipped."""


class PersistenceRecordError(SmartBetError):
    """A single record could not be saved."""

    def __init__(self, record, cause: Exception):
        super().__init__(f"{type(cause).__name__}: {cause}")
        self.record = record
        self.cause = cause


class ReconciliationLookupError(SmartBetError):
    """No stored match corresponds to a scraped result."""


class JobLedgerError(SmartBetError):
    """Base class for job ledger errors."""


class JobAlreadyRunningError(JobLedgerError):
    """Another run of the same source has not finished yet."""

    def __init__(self, source: str):
        super().__init__(f"A {source} job is already running")
        self.source = source


class LedgerStateError(JobLedgerError):
    """A job was finished twice or was never begun."""
