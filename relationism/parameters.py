"""Positional parameter binding: rewrite portable `?` placeholders into dialect markers."""

import re
from typing import Any, Iterable, Optional, Sequence

from .errors import ConfigurationError
from .scanner import dump_value

PLACEHOLDER = "?"

# quoted literals and identifiers are matched first, so a `?` inside them is not a placeholder
_TOKEN = re.compile(r"'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|\?")


def split_placeholders(fragment: str) -> list[str]:
    """Split fragment around its `?` placeholders, leaving quoted `?` in place."""
    parts, start = [], 0
    for match in _TOKEN.finditer(fragment):
        if match.group(0) == PLACEHOLDER:
            parts.append(fragment[start:match.start()])
            start = match.end()
    parts.append(fragment[start:])
    return parts


class In:
    """A list argument expanded to one marker per value.

    `where("id IN (?)", In([1, 2]))` binds as `id IN (?1, ?2)`. An empty list
    binds as NULL, which matches nothing.
    """

    def __init__(self, values: Iterable[Any]):
        self.values = list(values)

    def __repr__(self) -> str:
        return f"In({self.values!r})"


class Fragment:
    """A piece of statement text with portable placeholders and their arguments.

    Markers are only assigned when the statement is built, so they follow the
    order fragments appear in the text, whatever order the builder was called in.
    A literal fragment (a column list, a plain ORDER BY item) has no placeholders.
    """

    def __init__(self, text: str, args: Sequence[Any] = (), literal: bool = False):
        self.text = text
        self.args = tuple(args)
        self.literal = literal
        if not literal:
            count = len(split_placeholders(text)) - 1
            if count != len(self.args):
                raise ConfigurationError(
                    f"`{text}` has {count} placeholder(s) for {len(self.args)} argument(s)"
                )

    @classmethod
    def join(cls, fragments: Iterable["Fragment"], separator: str, prefix: str = "", suffix: str = "") -> Optional["Fragment"]:
        """Concatenate fragments, keeping their arguments in text order; None if there are none."""
        fragments = list(fragments)
        if not fragments:
            return None
        text = prefix + separator.join(f.text for f in fragments) + suffix
        return cls(text, [arg for f in fragments for arg in f.args])

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Fragment) and (self.text, self.args, self.literal) == (other.text, other.args, other.literal)

    def __repr__(self) -> str:
        return f"Fragment({self.text!r}, {self.args!r})"


class ParameterSequence:
    """Running positional counter and argument list of one statement.

    Fragments must be bound in the order they appear in the statement text:
    engines with unnumbered markers (`%s`, `?`) bind arguments by position.
    """

    def __init__(self, dialect, start: int = 0):
        self.dialect = dialect
        self.counter = start
        self.args: list[Any] = []

    def next_marker(self, value: Any) -> str:
        self.counter += 1
        self.args.append(dump_value(value))
        return self.dialect.positional_marker(self.counter)

    def bind(self, fragment, args: Sequence[Any] = ()) -> str:
        """Return fragment (a str or a Fragment) with each placeholder replaced by the next marker.

        Text around the markers is escaped for the driver's parameter style.

        Raises:
            ConfigurationError: If the number of placeholders and arguments differ.
        """
        escape = self.dialect.escape_text
        if isinstance(fragment, Fragment):
            if fragment.literal:
                return escape(fragment.text)
            fragment, args = fragment.text, fragment.args
        parts = split_placeholders(fragment)
        if len(parts) - 1 != len(args):
            raise ConfigurationError(
                f"`{fragment}` has {len(parts) - 1} placeholder(s) for {len(args)} argument(s)"
            )
        bound = [escape(parts[0])]
        for arg, part in zip(args, parts[1:]):
            if isinstance(arg, In):
                bound.append(", ".join(self.next_marker(v) for v in arg.values) or "NULL")
            else:
                bound.append(self.next_marker(arg))
            bound.append(escape(part))
        return "".join(bound)
