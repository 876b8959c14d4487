"""Session sources — where live snapshots come from and where kills go."""

from querykill.source.base import SessionSource, SourceError, TerminateError

__all__ = ["SessionSource", "SourceError", "TerminateError"]
