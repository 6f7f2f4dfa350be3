"""
Query Contexts

A `QueryContext` carries a deadline and a cancellation flag for a query. Results check their context before every read
from the driver cursor, so a cancelled or expired query fails on its next read with `OperationTimedOut` instead of
blocking or quietly returning a short result.

Example:
    ```python
    context = QueryContext.with_timeout(2.5)
    with Pet.find(context=context) as pets:
        for pet in pets.streaming():
            ...
    ```
"""
import threading
import time
from datetime import datetime, timezone

from odmi.errors import OperationTimedOut


class QueryContext:
    """Deadline and cancellation state shared by the reads of a query.

    Deadlines are tracked on the monotonic clock. Cancellation is thread safe, so another thread may cancel a query that
    is being consumed.
    """
    def __init__(self, deadline: float | None = None, *, parents: "tuple[QueryContext, ...]" = ()):
        self._deadline = deadline
        self._cancelled = threading.Event()
        self._parents = parents

    @classmethod
    def background(cls) -> "QueryContext":
        """A context that never expires unless cancelled."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float) -> "QueryContext":
        return cls(time.monotonic() + seconds)

    @classmethod
    def with_deadline(cls, deadline: datetime | float) -> "QueryContext":
        """A context that expires at a wall clock time, given as a datetime or a Unix timestamp. Naive datetimes are
        treated as UTC."""
        if isinstance(deadline, datetime):
            if deadline.tzinfo is None:
                deadline = deadline.replace(tzinfo=timezone.utc)

            seconds = (deadline - datetime.now(timezone.utc)).total_seconds()
        else:
            seconds = deadline - time.time()

        return cls.with_timeout(seconds)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set() or any(parent.cancelled for parent in self._parents)

    @property
    def deadline(self) -> float | None:
        """The earliest monotonic deadline of this context and the contexts it was merged from."""
        deadlines = [self._deadline] + [parent.deadline for parent in self._parents]
        return min((d for d in deadlines if d is not None), default=None)

    def cancel(self):
        self._cancelled.set()

    def remaining(self) -> float | None:
        """Seconds until the deadline, or `None` when there is no deadline."""
        if (deadline := self.deadline) is None:
            return None

        return max(deadline - time.monotonic(), 0.0)

    def is_done(self) -> bool:
        return self.cancelled or self.remaining() == 0.0

    def check(self, method_name: str):
        """Raises if the context can no longer be waited on.

        Raises:
            OperationTimedOut: The context was cancelled or its deadline has passed.
        """
        if self.cancelled:
            raise OperationTimedOut(method_name, "the query was cancelled")

        if self.remaining() == 0.0:
            raise OperationTimedOut(method_name, "the query deadline was exceeded")

    def merged(self, other: "QueryContext | None") -> "QueryContext":
        """A context that expires at the earlier deadline and is cancelled when either context is."""
        if other is None or other is self:
            return self

        return QueryContext(parents=(self, other))

    def __repr__(self):
        remaining = self.remaining()
        return (
            f"<{type(self).__name__} "
            f"{'cancelled' if self.cancelled else 'no deadline' if remaining is None else f'{remaining:.3f}s remaining'}>"
        )
