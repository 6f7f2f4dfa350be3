"""
Query Results

A `Result` wraps the forward-only cursor a driver returns for a query and turns it into records on demand. It can be
consumed in one of two ways, chosen by the first call made on it:

- Random access: `at()`, `first()`, `last()`, `count()` and `one()` read raw documents into a lookback buffer so they
  can be revisited. `count()`, `first()` and `last()` read the whole cursor. `at()` only reads as far as the requested
  index.
- Streaming: after `streaming()` the result is a single pass over the cursor with no buffering. Only iteration,
  `for_each()` and `to_list()` are allowed, and the cursor is released as soon as it is exhausted.

Mixing the two raises `InvalidOperation`. The driver cursor is released exactly once, on exhaustion, on `close()`, when
leaving a `with` block, or, as a last resort, when the result is garbage collected while still open.

Example:
    ```python
    with Pet.find() as pets:
        print(pets.count(), pets.first().name)

    for pet in Pet.find().streaming():
        print(pet.name)
    ```
"""
import logging
import weakref
from enum import Enum, auto
from typing import Any, Callable, Generic, Iterator, TYPE_CHECKING, TypeVar

from odmi.database.context import QueryContext
from odmi.errors import IndexOutOfBounds, InvalidOperation, OperationTimedOut, ResultNotExpected, ResultNotFound
from odmi.mapping.documents import Document

if TYPE_CHECKING:
    from odmi.drivers import ForwardCursor
    from odmi.models.model_type import ModelType


T = TypeVar("T")

logger = logging.getLogger(__name__)


class ResultState(Enum):
    FRESH = auto()
    RANDOM_ACCESS = auto()
    STREAMING = auto()
    EXHAUSTED = auto()
    CLOSED = auto()


class _CursorHandle:
    """Owns a driver cursor and guarantees it is closed at most once."""
    def __init__(self, cursor: "ForwardCursor"):
        self._cursor = cursor

    @property
    def released(self) -> bool:
        return self._cursor is None

    def next_document(self) -> Document:
        return next(self._cursor)

    def release(self) -> bool:
        if self._cursor is None:
            return False

        cursor, self._cursor = self._cursor, None
        cursor.close()
        return True


def _release_abandoned(handle: _CursorHandle, description: str):
    if handle.release():
        logger.warning("Result for %s was never closed or exhausted, released its cursor on collection", description)


class Result(Generic[T]):
    """Records produced by a query, read lazily from the driver's cursor.

    A result is not thread safe; each instance should be consumed by one thread.
    """
    def __init__(
        self,
        model_type: "ModelType",
        cursor: "ForwardCursor",
        *,
        context: QueryContext | None = None,
    ):
        self._model_type = model_type
        self._context = context or QueryContext.background()
        self._handle = _CursorHandle(cursor)
        self._finalizer = weakref.finalize(self, _release_abandoned, self._handle, model_type.model_name)
        self._buffer: list[Document] = []
        self._mode = ResultState.FRESH
        self._exhausted = False
        self._streamed = False

    def __enter__(self) -> "Result[T]":
        return self

    def __exit__(self, *_):
        self.close()

    def __iter__(self) -> Iterator[T]:
        if self._mode is ResultState.STREAMING:
            if self._streamed:
                raise InvalidOperation("for_each", "a streaming result can only be consumed once")

            self._streamed = True
            return self._stream()

        self._mode = ResultState.RANDOM_ACCESS
        return self._iterate_buffer()

    def __repr__(self):
        return f"<{type(self).__name__} {self._model_type.model_name}: {self.state.name}, {len(self._buffer)} buffered>"

    @property
    def state(self) -> ResultState:
        if self._exhausted:
            return ResultState.EXHAUSTED

        if self._handle.released:
            return ResultState.CLOSED

        return self._mode

    # ---------------------------------------- #
    # Streaming                                #
    # ---------------------------------------- #
    def streaming(self) -> "Result[T]":
        """Switches the result to single pass consumption.

        Raises:
            InvalidOperation: A random access read has already been made.
        """
        if self._mode is ResultState.STREAMING:
            return self

        if self._mode is not ResultState.FRESH:
            raise InvalidOperation("streaming", "random access reads have already been made on this result")

        if self._handle.released:
            raise InvalidOperation("streaming", "the result has been closed")

        self._mode = ResultState.STREAMING
        return self

    def for_each(self, callback: Callable[[T], Any]):
        for record in self:
            callback(record)

    def to_list(self) -> list[T]:
        return list(self)

    # ---------------------------------------- #
    # Random Access                            #
    # ---------------------------------------- #
    def at(self, index: int) -> T:
        """The record at an index, reading forward only as far as needed.

        Raises:
            IndexOutOfBounds: The query produced fewer records than the index requires.
        """
        self._use_random_access("at")
        if index < 0 or not self._read_to(index, "at"):
            raise IndexOutOfBounds(index, len(self._buffer))

        return self._materialize(self._buffer[index])

    def first(self) -> T:
        """The first record. Reads the whole cursor.

        Raises:
            ResultNotFound: The query produced no records.
        """
        self._use_random_access("first")
        self._read_all("first")
        if not self._buffer:
            raise ResultNotFound(f"No {self._model_type.model_name} records matched the query")

        return self._materialize(self._buffer[0])

    def last(self) -> T:
        """The last record. Reads the whole cursor.

        Raises:
            ResultNotFound: The query produced no records.
        """
        self._use_random_access("last")
        self._read_all("last")
        if not self._buffer:
            raise ResultNotFound(f"No {self._model_type.model_name} records matched the query")

        return self._materialize(self._buffer[-1])

    def count(self) -> int:
        """The number of records. Reads the whole cursor."""
        self._use_random_access("count")
        self._read_all("count")
        return len(self._buffer)

    def one(self) -> T:
        """The only record of the result. The cursor is released afterwards.

        Raises:
            ResultNotFound: The query produced no records.
            ResultNotExpected: The query produced more than one record.
        """
        self._use_random_access("one")
        try:
            self._read_to(1, "one")
            match self._buffer:
                case []:
                    raise ResultNotFound(f"No {self._model_type.model_name} records matched the query")

                case [document]:
                    return self._materialize(document)

                case _:
                    raise ResultNotExpected(
                        f"Expected one {self._model_type.model_name} record but the query matched more"
                    )

        finally:
            self.close()

    # ---------------------------------------- #
    # Cursor Management                        #
    # ---------------------------------------- #
    def close(self):
        """Releases the driver cursor. Closing more than once does nothing."""
        self._release("closed")

    def _release(self, reason: str):
        self._finalizer.detach()
        if self._handle.release():
            logger.debug("Released %s cursor (%s)", self._model_type.model_name, reason)

    def _read(self, method_name: str) -> Document | None:
        """Pulls the next raw document from the cursor, returning `None` once it is exhausted."""
        if self._exhausted:
            return None

        if self._handle.released:
            raise InvalidOperation(method_name, "the result has been closed")

        try:
            self._context.check(method_name)
        except OperationTimedOut:
            self._release("timed out")
            raise

        try:
            return self._handle.next_document()

        except StopIteration:
            self._exhausted = True
            self._release("exhausted")
            return None

        except Exception:
            self._release("failed")
            raise

    def _read_to(self, index: int, method_name: str) -> bool:
        while len(self._buffer) <= index:
            if (document := self._read(method_name)) is None:
                return False

            self._buffer.append(document)

        return True

    def _read_all(self, method_name: str):
        while (document := self._read(method_name)) is not None:
            self._buffer.append(document)

    def _use_random_access(self, method_name: str):
        if self._mode is ResultState.STREAMING:
            raise InvalidOperation(method_name, "the result is in streaming mode")

        self._mode = ResultState.RANDOM_ACCESS

    def _iterate_buffer(self) -> Iterator[T]:
        index = 0
        while self._read_to(index, "for_each"):
            yield self._materialize(self._buffer[index])
            index += 1

    def _stream(self) -> Iterator[T]:
        while (document := self._read("for_each")) is not None:
            yield self._materialize(document)

    def _materialize(self, document: Document) -> T:
        return self._model_type.hydrate(document)
