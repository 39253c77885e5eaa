"""Exception hierarchy for ``statement_insights``.

No-match and cache-miss outcomes are plain ``None`` values and never appear
here. Only failures of the remote collaborator and of statement parsing are
modelled as exceptions.
"""

from __future__ import annotations


class InsightsError(RuntimeError):
    """Base class for package errors."""


class RemoteCallError(InsightsError):
    """A remote model call failed after its retry budget was exhausted.

    ``attempts`` records how many calls were made; the last underlying
    exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, *, attempts: int = 1) -> None:
        super().__init__(message)
        self.attempts = attempts


class MalformedResponseError(RemoteCallError, ValueError):
    """The model answered, but its output could not be decoded or validated."""


class StatementParseError(InsightsError):
    """A statement or free-text transaction could not be parsed.

    Unlike enrichment failures this is surfaced to the user, who is asked to
    enter the details manually.
    """
