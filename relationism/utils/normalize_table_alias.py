"""Strip table qualifiers that do not belong to the queried table."""

import logging
import re

logger = logging.getLogger("relationism")

_QUALIFIED = re.compile(r"(?<![\w.])([A-Za-z_][A-Za-z0-9_]*)\.([A-Za-z_][A-Za-z0-9_]*)")


def is_acronym_of(prefix: str, name: str) -> bool:
    """True if every letter of prefix appears in name in order, starting with its first letter."""
    prefix, name = prefix.lower(), name.lower()
    if not prefix or not name or prefix[0] != name[0]:
        return False
    position = 0
    for char in prefix:
        position = name.find(char, position)
        if position < 0:
            return False
        position += 1
    return True


def normalize_table_alias(condition: str, expected_alias: str, table_name: str) -> str:
    """Rewrite `X.col` to `col` when X plausibly abbreviates table_name.

    Qualifiers equal to expected_alias or table_name are kept, as are qualifiers
    that look like another table (they may refer to a join).
    """
    expected = (expected_alias or "").lower()
    table = (table_name or "").lower()

    def replace(match: re.Match) -> str:
        prefix, column = match.group(1), match.group(2)
        lowered = prefix.lower()
        if lowered in (expected, table):
            return match.group(0)
        if len(lowered) > 2 and (lowered in table or is_acronym_of(lowered, table)):
            logger.debug("Stripping plausible alias '%s' from condition, keeping '%s'", prefix, column)
            return column
        return match.group(0)

    return _QUALIFIED.sub(replace, condition)
