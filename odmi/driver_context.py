"""
Active Driver Context

Models look up the driver to use for queries and saves from the `active_driver` context variable unless one is passed
explicitly. `use_driver()` (or using a driver as a context manager) sets it for the duration of a `with` block and
restores the previous driver afterwards, so threads and tasks each see their own active driver.
"""


from contextvars import ContextVar
from typing import TypeVar, Generic, TYPE_CHECKING

if TYPE_CHECKING:
    from odmi.drivers import BaseDriver


T = TypeVar("T", bound="BaseDriver")


active_driver: "ContextVar[BaseDriver]" = ContextVar("active_driver")
"""The driver used by models when no driver is passed to `find`, `save` or `reload`."""


class UseDriver(Generic[T]):
    """A context manager that makes a driver the active driver within a `with` block.

    Unlike using the driver itself as a context manager, leaving the block does not disconnect the driver.

    Attributes:
        driver (T): The driver to activate within the context.
    """
    def __init__(self, driver: T):
        self.driver = driver
        self._previous_context_token = None

    def __enter__(self) -> T:
        self._previous_context_token = active_driver.set(self.driver)
        return self.driver

    def __exit__(self, *_):
        active_driver.reset(self._previous_context_token)


def get_active_driver() -> "BaseDriver | None":
    return active_driver.get(None)


def use_driver(driver: T) -> UseDriver[T]:
    """Activates a driver for the duration of a `with` block.

    Example:
        ```python
        driver = MongoDBDriver.connect(MongoDBSettings.from_env())
        with use_driver(driver):
            pet = Pet.find(pet_id).one()
        ```
    """
    return UseDriver(driver)
