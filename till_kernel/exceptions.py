"""
Typed Exception Hierarchy for the Till Audit.

Every error carries a ``code`` class attribute (machine-readable) and its
context as instance attributes, so callers catch by type and report by
field instead of parsing messages.

    TillAuditError (base)
    |
    +-- RateError
    |   +-- RateUndeterminableError
    |
    +-- DataError
    |   +-- NoDataForPeriodError
    |   +-- DataSourceError
    |
    +-- ConfigError
        +-- InvalidConfigurationError

Category   | Code                   | When Raised
-----------|------------------------|------------------------------------------
Rate       | RATE_UNDETERMINABLE    | No order carries both currencies for a
           |                        | point-of-sale or mobile-transfer payment
-----------|------------------------|------------------------------------------
Data       | NO_DATA_FOR_PERIOD     | Orders or counters empty for (date, store)
           | DATA_SOURCE_ERROR      | Fetch collaborator could not deliver data
-----------|------------------------|------------------------------------------
Config     | INVALID_CONFIGURATION  | YAML missing keys or carrying bad values

Malformed numeric fields in a single record are NOT errors: they are read
as zero at the ingestion boundary.  The reconciliation engine never
raises; numeric edge cases degenerate to zero values.

A failure of any of these types aborts one (date, store) unit of work
only.  The service layer reports it next to the stores that succeeded.
"""


class TillAuditError(Exception):
    """
    Base exception for all till audit errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "TILL_AUDIT_ERROR"


# Rate-related exceptions


class RateError(TillAuditError):
    """Base exception for exchange-rate errors."""

    code: str = "RATE_ERROR"


class RateUndeterminableError(RateError):
    """
    No order allows the local-per-foreign rate to be derived.

    Fatal for the report: no default rate may be substituted.
    """

    code: str = "RATE_UNDETERMINABLE"

    def __init__(self, order_count: int, store_code: str | None = None):
        self.order_count = order_count
        self.store_code = store_code
        where = f" for {store_code}" if store_code else ""
        super().__init__(
            f"Cannot derive exchange rate{where}: none of {order_count} orders "
            "has point-of-sale or mobile-transfer amounts in both currencies"
        )


# Data-related exceptions


class DataError(TillAuditError):
    """Base exception for input data errors."""

    code: str = "DATA_ERROR"


class NoDataForPeriodError(DataError):
    """The data source returned nothing for a (date, store) pair."""

    code: str = "NO_DATA_FOR_PERIOD"

    def __init__(self, dataset: str, report_date: str, store_code: str):
        self.dataset = dataset
        self.report_date = report_date
        self.store_code = store_code
        super().__init__(f"No {dataset} found for {store_code} on {report_date}")


class DataSourceError(DataError):
    """A data-fetch collaborator could not deliver its payload."""

    code: str = "DATA_SOURCE_ERROR"

    def __init__(self, dataset: str, report_date: str, store_code: str, reason: str):
        self.dataset = dataset
        self.report_date = report_date
        self.store_code = store_code
        self.reason = reason
        super().__init__(
            f"Could not load {dataset} for {store_code} on {report_date}: {reason}"
        )


# Configuration-related exceptions


class ConfigError(TillAuditError):
    """Base exception for configuration errors."""

    code: str = "CONFIG_ERROR"


class InvalidConfigurationError(ConfigError):
    """Configuration document is missing keys or carries invalid values."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid configuration in {source}: {reason}")
