"""Engine options attached to a named connection."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_COLUMN_SUFFIX_MARGIN = 35
"""Room left in the identifier budget for the longest generated column suffix."""


class EngineSettings(BaseModel):
    """Options for planning and loading relations."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    identifier_limit: Optional[int] = Field(default=None, gt=0)
    """Maximum length of a generated identifier; None uses the dialect's limit."""
    column_suffix_margin: int = Field(default=DEFAULT_COLUMN_SUFFIX_MARGIN, ge=0)
    """Characters reserved for the column part of a joined alias."""
    strict_preloads: bool = False
    """If True, a failed relation load raises PreloadError instead of logging a warning."""

    def resolve_identifier_limit(self, dialect) -> int:
        """Return the configured limit, falling back to the dialect's."""
        if self.identifier_limit is not None:
            return self.identifier_limit
        return type(dialect).IDENTIFIER_LIMIT
