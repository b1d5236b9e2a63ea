"""
Structured field addressing for the validation engine.

A ``FieldPath`` is an immutable sequence of segments where every segment is
either a mapping key (``str``) or a sequence index (``int``). Paths render to
the familiar dotted notation (``orderItems.0.productId``) only at the edges:
when a schema is declared and when a violation is reported.
"""

import re
from typing import Any, Iterable, Union

Segment = Union[str, int]

_INDEX_PATTERN = re.compile(r"^\d+$")


class _Missing:
    """Sentinel for values that are absent from the model."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


class FieldPath(tuple):
    """Ordered sequence of path segments."""

    def __new__(cls, segments: Iterable[Segment] = ()):
        return super().__new__(cls, tuple(segments))

    @classmethod
    def parse(cls, dotted: Union[str, "FieldPath", Iterable[Segment]]) -> "FieldPath":
        """
        Build a path from dotted notation.

        Purely numeric segments become sequence indices, so ``"items.1.qty"``
        parses to ``("items", 1, "qty")``. Existing paths and segment
        iterables are accepted unchanged.
        """
        if isinstance(dotted, FieldPath):
            return dotted
        if not isinstance(dotted, str):
            return cls(dotted)
        if dotted == "":
            return cls()

        segments = []
        for part in dotted.split("."):
            segments.append(int(part) if _INDEX_PATTERN.match(part) else part)
        return cls(segments)

    @property
    def parent(self) -> "FieldPath":
        return FieldPath(self[:-1])

    def child(self, segment: Segment) -> "FieldPath":
        return FieldPath(self + (segment,))

    def join(self, other: Union[str, "FieldPath", Iterable[Segment]]) -> "FieldPath":
        return FieldPath(self + FieldPath.parse(other))

    def sibling(self, key: Union[str, "FieldPath"]) -> "FieldPath":
        """Resolve ``key`` relative to this path's parent."""
        return self.parent.join(key)

    def resolve(self, source: Any) -> Any:
        """Read the value addressed by this path, or ``MISSING``."""
        current = source
        for segment in self:
            current = _step(current, segment)
            if current is MISSING:
                return MISSING
        return current

    def __str__(self) -> str:
        return ".".join(str(segment) for segment in self)

    def __repr__(self) -> str:
        return f"FieldPath({str(self)!r})"


def _step(container: Any, segment: Segment) -> Any:
    if isinstance(container, dict):
        if segment in container:
            return container[segment]
        # Dotted input may address an int-keyed segment with its string form.
        if isinstance(segment, int) and str(segment) in container:
            return container[str(segment)]
        return MISSING

    if isinstance(container, (list, tuple)):
        if isinstance(segment, str):
            if not _INDEX_PATTERN.match(segment):
                return MISSING
            segment = int(segment)
        if 0 <= segment < len(container):
            return container[segment]
        return MISSING

    return MISSING
