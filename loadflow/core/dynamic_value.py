"""Dynamic values and request context.

A configuration field may be a literal or a function of the accumulated
request context. Both forms are wrapped in a small tagged union so that
resolution branches on the tag instead of guessing from the value.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar, Union

T = TypeVar("T")


class Context(Mapping):
    """Append-only key/value state threaded through a chain of requests.

    A Context is never mutated. ``merge`` returns a new Context with one
    more overlay on top, so a later write shadows an earlier one with the
    same key and no key is ever removed.

    Example:
        >>> ctx = Context({"sessionId": "s1"})
        >>> ctx = ctx.merge({"refCode": "R-9"})
        >>> ctx.get("sessionId"), ctx["refCode"]
        ('s1', 'R-9')
    """

    def __init__(self, initial: Optional[Mapping[str, Any]] = None) -> None:
        self._layers: tuple[dict[str, Any], ...] = (dict(initial),) if initial else ()

    @classmethod
    def _from_layers(cls, layers: tuple[dict[str, Any], ...]) -> "Context":
        ctx = cls()
        ctx._layers = layers
        return ctx

    def merge(self, values: Mapping[str, Any]) -> "Context":
        """Return a new Context with ``values`` overlaid on this one."""
        if not values:
            return self
        return Context._from_layers(self._layers + (dict(values),))

    def __getitem__(self, key: str) -> Any:
        for layer in reversed(self._layers):
            if key in layer:
                return layer[key]
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        seen: set[str] = set()
        for layer in self._layers:
            for key in layer:
                if key not in seen:
                    seen.add(key)
                    yield key

    def __len__(self) -> int:
        return sum(1 for _ in self)

    @property
    def depth(self) -> int:
        """Number of overlays merged into this context."""
        return len(self._layers)

    def to_dict(self) -> dict[str, Any]:
        """Flatten all overlays into a plain dictionary."""
        return {key: self[key] for key in self}

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return self.to_dict() == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"Context({self.to_dict()!r})"


@dataclass(frozen=True)
class Literal(Generic[T]):
    """A value that resolves to itself."""

    value: T


@dataclass(frozen=True)
class Derived(Generic[T]):
    """A value computed from the current context.

    Attributes:
        fn: Single-argument function of the context; must only read it
    """

    fn: Callable[[Context], T]


DynamicValue = Union[Literal[T], Derived[T]]


def dynamic(value: Any) -> DynamicValue:
    """Wrap a plain value into its DynamicValue form.

    Callables become Derived, already-wrapped values are returned as is,
    anything else becomes a Literal.
    """
    if isinstance(value, (Literal, Derived)):
        return value
    if callable(value):
        return Derived(value)
    return Literal(value)


def resolve(value: Any, context: Context) -> Any:
    """Resolve a dynamic value against the context.

    Args:
        value: Literal, Derived, or an unwrapped literal
        context: Current request context

    Returns:
        The literal value, or the result of calling the derived function.
        Exceptions raised by a derived function propagate unchanged.
    """
    if isinstance(value, Derived):
        return value.fn(context)
    if isinstance(value, Literal):
        return value.value
    return value
