"""
Exceptions raised by odmi.

Errors fall into four groups that callers are expected to treat differently:

- Configuration errors (`ConfigurationError` and subclasses) mean a record type's declarations are inconsistent or a
  value cannot be represented in a document. They are raised immediately and never caught by odmi.
- Data errors (`DataError` and subclasses) mean a requested field path does not exist on a record. Field accessors
  return these wrapped in a `DBFailure` rather than raising them.
- Usage errors (`UsageError` and subclasses) mean the caller used a result incorrectly, such as reading by index after
  declaring streaming mode, calling `one()` on an empty result, or indexing past the end.
- `OperationTimedOut` means a query deadline passed or the query was cancelled while waiting on the driver.
"""


class OdmiError(Exception):
    """Base exception for every error raised by odmi."""


class ConfigurationError(OdmiError):
    """Raised when a record type's field declarations are self-inconsistent."""


class ValueConversionError(ConfigurationError):
    """Raised when a value cannot be converted to or from its document representation."""


class DuplicateModelError(ConfigurationError):
    """Raised when a model name is registered twice in the same registry."""


class DataError(OdmiError):
    """Base exception for recoverable problems with the data a record holds."""


class DocumentFieldNotFound(DataError, KeyError):
    """Returned by the generic field accessors when a field path does not resolve to a field."""

    def __init__(self, field_name: str, model_name: str | None = None):
        message = f"Document field {field_name!r} does not exist"
        if model_name:
            message = f"{message} on {model_name}"

        super().__init__(message)
        self.field_name = field_name
        self.model_name = model_name

    def __str__(self):
        return self.args[0]


class UsageError(OdmiError):
    """Base exception for caller logic errors."""


class InvalidOperation(UsageError):
    """Raised when a method is called in a state that does not allow it."""

    def __init__(self, method_name: str, reason: str):
        super().__init__(f"Cannot call {method_name}(): {reason}")
        self.method_name = method_name
        self.reason = reason


class IndexOutOfBounds(UsageError, IndexError):
    """Raised when reading a result index that the query did not produce."""

    def __init__(self, index: int, length: int):
        super().__init__(f"Index {index} is out of bounds for a result with {length} record{'' if length == 1 else 's'}")
        self.index = index
        self.length = length


class ResultNotFound(UsageError):
    """Raised when a result that must contain a record contains none."""


class ResultNotExpected(UsageError):
    """Raised when a result that must contain exactly one record contains more."""


class OperationTimedOut(OdmiError, TimeoutError):
    """Raised when a query's deadline passes or its context is cancelled while waiting on the driver."""

    def __init__(self, method_name: str, reason: str):
        super().__init__(f"{method_name}() timed out: {reason}")
        self.method_name = method_name
        self.reason = reason
