"""Discover model classes by name, for resolving forward references."""

from typing import Iterator, Optional


def iter_subclasses(base: type) -> Iterator[type]:
    """Yield every subclass of base, depth first, skipping parametrized generics (e.g. SqlNull[int])."""
    seen: set[type] = set()
    stack = list(base.__subclasses__())
    while stack:
        subclass = stack.pop()
        if subclass in seen:
            continue
        seen.add(subclass)
        stack.extend(subclass.__subclasses__())
        if "[" in subclass.__name__:
            continue
        yield subclass


def find_subclass(base: type, name: str) -> Optional[type]:
    """Return the unique subclass of base with __name__ == name, or None.

    Raises if multiple subclasses match.
    """
    matches = [subclass for subclass in iter_subclasses(base) if subclass.__name__ == name]
    if len(matches) > 1:
        raise ValueError(f"More than one subclass of `{base.__name__}` found with name `{name}`")
    return matches[0] if matches else None
