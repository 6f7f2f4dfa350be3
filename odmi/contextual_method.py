"""
Contextual Method Decorator

Provides a descriptor for methods that need one implementation when called on a model class and another when called on
a model instance, such as `get_model_type`, where an instance may have been created from a re-scoped model type.
"""


from types import MethodType
from typing import Callable, ParamSpec, Self, TypeVar

P = ParamSpec("P")
R = TypeVar("R")


class ContextualMethod:
    """A descriptor that binds to the instance when accessed on an instance and to the class when accessed on the class.

    Example:
        ```python
        class Record:
            @contextual_method
            def describe(self):
                return f"instance of {type(self).__name__}"

            @describe.classmethod
            def describe(cls):
                return f"class {cls.__name__}"
        ```
    """
    def __init__(self, method: Callable[P, R]):
        self._method = method
        self._classmethod = method

    def classmethod(self, method: Callable[P, R]) -> Self:
        """Sets the implementation used when the method is accessed on the class.

        Raises:
            ValueError: The class implementation has a different name than the instance implementation.
        """
        if method.__name__ != self._method.__name__:
            raise ValueError(
                f"Method name {method.__name__!r} does not match {self._method.__name__!r}"
            )

        self._classmethod = method
        return self

    def __get__(self, instance, owner) -> Callable[P, R]:
        if instance is None:
            return MethodType(self._classmethod, owner)

        return MethodType(self._method, instance)


def contextual_method(func: Callable[P, R]) -> ContextualMethod:
    """Decorator that creates a `ContextualMethod`. Use `.classmethod` on the result to give the class variant."""
    return ContextualMethod(func)
