from odmi.drivers.drivers import BaseDriver, ForwardCursor
from odmi.drivers.exceptions import (
    BaseDriverException,
    DriverConnectFailed,
    DriverOperationError,
    NoActiveDriver,
)


__all__ = [
    "BaseDriver",
    "ForwardCursor",
    "BaseDriverException",
    "DriverConnectFailed",
    "DriverOperationError",
    "NoActiveDriver",
]
