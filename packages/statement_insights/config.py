"""Runtime configuration: environment overrides and policy parameters.

Environment variables (all optional):

- ``INSIGHTS_DATA_DIR``: root directory of the JSON blob store. Default:
  ``./.insights`` under the current working directory.
- ``INSIGHTS_MODEL``: model name for Responses API calls.
- ``INSIGHTS_LOG_LEVEL``: read by :mod:`statement_insights.logging_setup`.

Nothing here reads the environment at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_MODEL: str = "gpt-5-mini"


def get_data_dir() -> Path:
    """Return the data directory used by :class:`~statement_insights.storage.JsonFileStore`."""

    root = os.getenv("INSIGHTS_DATA_DIR")
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return (Path.cwd() / ".insights").resolve()


def get_model() -> str:
    model = os.getenv("INSIGHTS_MODEL")
    if model and model.strip():
        return model.strip()
    return DEFAULT_MODEL


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded exponential backoff: ``attempts`` calls in total, sleeping
    ``base_delay`` seconds after the first failure and doubling thereafter."""

    attempts: int = 3
    base_delay: float = 0.5

    def __post_init__(self) -> None:
        if isinstance(self.attempts, bool) or not isinstance(self.attempts, int):
            raise ValueError("RetryPolicy.attempts must be an integer")
        if self.attempts < 1:
            raise ValueError("RetryPolicy.attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("RetryPolicy.base_delay must be >= 0")

    def delay_for(self, attempt_no: int) -> float:
        """Delay to sleep after the ``attempt_no``-th failed call (1-based)."""

        return self.base_delay * (2 ** (attempt_no - 1))


@dataclass(frozen=True, slots=True)
class BudgetPolicy:
    """Tunable thresholds of the budget statistics engine.

    Attributes
    ----------
    window_months:
        Number of most recent active months considered.
    monthly_ratio, occasional_ratio:
        Presence-ratio cut-offs for the ``Monthly`` / ``Occasional`` labels;
        anything lower is ``Rare``.
    risky_volatility:
        A cut below the historical minimum is risky when volatility is under
        this value.
    deep_cut_ratio:
        A monthly category budgeted under ``average * deep_cut_ratio`` is a
        risky cut.
    volatile_threshold, stable_threshold:
        Volatility bands used when offering strategy options.
    savings_boost, aggressive_cut, moderate_cut:
        Multipliers applied to the average for goal-driven proposals.
    target_lows_margin:
        Multiplier applied to the best (lowest non-zero) month for the
        "Target Lows" option.
    """

    window_months: int = 12
    monthly_ratio: float = 0.8
    occasional_ratio: float = 0.4
    risky_volatility: float = 0.2
    deep_cut_ratio: float = 0.8
    volatile_threshold: float = 0.4
    stable_threshold: float = 0.1
    savings_boost: float = 1.1
    aggressive_cut: float = 0.8
    moderate_cut: float = 0.9
    target_lows_margin: float = 1.05

    def __post_init__(self) -> None:
        if self.window_months < 1:
            raise ValueError("BudgetPolicy.window_months must be >= 1")
        if not 0 <= self.occasional_ratio <= self.monthly_ratio <= 1:
            raise ValueError("BudgetPolicy requires 0 <= occasional_ratio <= monthly_ratio <= 1")


__all__ = ["BudgetPolicy", "DEFAULT_MODEL", "RetryPolicy", "get_data_dir", "get_model"]
