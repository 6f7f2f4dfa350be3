from typing import Type, TYPE_CHECKING

from odmi.errors import OdmiError

if TYPE_CHECKING:
    from odmi.drivers import BaseDriver


class BaseDriverException(OdmiError):
    """Base exception for driver exceptions."""
    def __init__(self, *args, driver: "BaseDriver | Type[BaseDriver] | None" = None):
        super().__init__(*args)

        self.driver = driver
        if driver:
            self.add_note(f" - Using Driver: {driver!r}")


class DriverConnectFailed(BaseDriverException):
    """Raised when a driver fails to connect to a database."""


class DriverOperationError(BaseDriverException):
    """Raised when the database rejects or fails a find, insert, or update."""


class NoActiveDriver(BaseDriverException):
    """Raised when a model needs a driver but none was passed and none is active in the current context."""
