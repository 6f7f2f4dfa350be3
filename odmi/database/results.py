"""Result values for operations whose failures are ordinary outcomes rather than programming errors.

Record field accessors return a `DBResult`. A path that resolves produces `DBSuccess` and a path that does not
produces `DBFailure` wrapping a `DocumentFieldNotFound`. Both support structural pattern matching.

Example:
    ```python
    match pet.get_field("owner.name"):
        case DBResult.DBSuccess(name):
            print(f"Owned by {name}")
        case DBResult.DBFailure(error):
            print(f"No owner: {error}")
    ```
"""
from abc import ABC, abstractmethod
from typing import Callable, Generic, Type, TypeVar, ParamSpec


T = TypeVar("T")
D = TypeVar("D")
P = ParamSpec("P")


class DBStatusNoResultException(Exception):
    """Raised when accessing `.result` on a `DBFailure` or `.exception` on a `DBSuccess`."""


class DBResult(ABC, Generic[T]):
    """Outcome of an operation that either produced a value or failed with an exception.

    Class Attributes:
        DBSuccess (Type[DBSuccess[T]]): Reference to the `DBSuccess` class.
        DBFailure (Type[DBFailure[T]]): Reference to the `DBFailure` class.
    """
    __match_args__ = ("result", "exception")

    DBSuccess: "Type[DBSuccess[T]]"
    DBFailure: "Type[DBFailure[T]]"

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if cls.__name__ in DBResult.__annotations__:
            setattr(DBResult, cls.__name__, cls)

    @property
    @abstractmethod
    def result(self) -> T:
        """The value of a successful operation.

        Raises:
            DBStatusNoResultException: If called on `DBFailure`.
        """
        ...

    @property
    @abstractmethod
    def exception(self) -> Exception:
        """The exception of a failed operation.

        Raises:
            DBStatusNoResultException: If called on `DBSuccess`.
        """
        ...

    @abstractmethod
    def result_or(self, default: D) -> T | D:
        ...

    @abstractmethod
    def exception_or(self, default: D) -> Exception | D:
        ...

    @abstractmethod
    def or_raise(self) -> T:
        """The value of a successful operation, raising the exception of a failed one."""
        ...

    @classmethod
    def build(cls, callback: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> "DBResult[T]":
        """Calls the callback and wraps its return value or raised exception."""
        try:
            return DBSuccess(callback(*args, **kwargs))
        except Exception as error:
            return DBFailure(error)


class DBSuccess(DBResult[T]):
    __match_args__ = ("result",)

    def __init__(self, result: T):
        self._result = result

    def __eq__(self, other):
        return isinstance(other, DBSuccess) and other._result == self._result

    def __repr__(self):
        return f"DBResult.DBSuccess({self._result!r})"

    @property
    def exception(self) -> Exception:
        raise DBStatusNoResultException("DBResult does not wrap an exception")

    @property
    def result(self) -> T:
        return self._result

    def result_or(self, default: D) -> T:
        return self._result

    def exception_or(self, default: D) -> D:
        return default

    def or_raise(self) -> T:
        return self._result


class DBFailure(DBResult[T]):
    __match_args__ = ("exception",)

    def __init__(self, exception: Exception):
        self._exception = exception

    def __repr__(self):
        return f"DBResult.DBFailure({self._exception!r})"

    @property
    def exception(self) -> Exception:
        return self._exception

    @property
    def result(self) -> T:
        raise DBStatusNoResultException(
            f"DBResult.{type(self).__name__} does not wrap a result, it only contains an exception"
        )

    def result_or(self, default: D) -> D:
        return default

    def exception_or(self, default: D) -> Exception:
        return self._exception

    def or_raise(self) -> T:
        raise self._exception
