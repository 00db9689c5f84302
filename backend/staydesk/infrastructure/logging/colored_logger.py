"""Colored mutation logger for the console's write path.

Every MutationIntent the coordinator runs is traced as a sequence of
color-coded stage lines, so a create that fell back to the local store or an
asset upload that failed stands out in the terminal.

Color scheme:
    Blue    SUBMIT    upstream write attempt
    Yellow  FALLBACK  change kept in the local fallback store
    Cyan    REFRESH   post-mutation refetch / invalidation
    Magenta UPLOAD    asset upload sub-step
    Red     ERROR
    Green   COMPLETE
"""

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any


# ── ANSI Color Codes ─────────────────────────────────────────────────

class _Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    GRAY = "\033[90m"


# ── Mutation Stage Definitions ───────────────────────────────────────

Stage = tuple[str, str]


class MutationStage:
    """Predefined mutation stages with their colors."""

    SUBMIT: Stage = ("SUBMIT", _Colors.BLUE)
    FALLBACK: Stage = ("FALLBACK", _Colors.YELLOW)
    REFRESH: Stage = ("REFRESH", _Colors.CYAN)
    UPLOAD: Stage = ("UPLOAD", _Colors.MAGENTA)
    ERROR: Stage = ("ERROR", _Colors.RED)
    COMPLETE: Stage = ("COMPLETE", _Colors.GREEN)


def _format_details(kwargs: dict[str, Any]) -> str:
    if not kwargs:
        return ""
    details = " | ".join(f"{k}={v}" for k, v in kwargs.items())
    return f" {_Colors.GRAY}({details}){_Colors.RESET}"


# ── MutationLogger ───────────────────────────────────────────────────

class MutationLogger:
    """Color-coded logger for mutation pipelines.

    Usage:
        log = MutationLogger("MutationCoordinator")
        with log.timed_step(MutationStage.SUBMIT, "update room #12"):
            record = await gateway.update(12, payload)
        log.step_complete(MutationStage.COMPLETE, "room #12 saved")
    """

    def __init__(self, component_name: str):
        self._logger = logging.getLogger(component_name)

    def step_start(self, stage: Stage, message: str, **kwargs: Any) -> None:
        label, color = stage
        self._logger.info(
            f"{color}{_Colors.BOLD}[{label}]{_Colors.RESET} {color}{message}{_Colors.RESET}"
            + _format_details(kwargs)
        )

    def step_complete(self, stage: Stage, message: str, **kwargs: Any) -> None:
        label, color = stage
        self._logger.info(
            f"{color}[{label}]{_Colors.RESET} {_Colors.GREEN}✓ {message}{_Colors.RESET}"
            + _format_details(kwargs)
        )

    def step_warning(self, stage: Stage, message: str) -> None:
        label, _ = stage
        self._logger.warning(
            f"{_Colors.YELLOW}{_Colors.BOLD}[{label}]{_Colors.RESET} {_Colors.YELLOW}{message}{_Colors.RESET}"
        )

    def step_error(self, stage: Stage, message: str, error: Exception | None = None) -> None:
        label, _ = stage
        formatted = (
            f"{_Colors.RED}{_Colors.BOLD}[{label}]{_Colors.RESET} {_Colors.RED}{message}{_Colors.RESET}"
        )
        if error:
            formatted += f" {_Colors.DIM}→ {type(error).__name__}: {error}{_Colors.RESET}"
        self._logger.error(formatted)

    def detail(self, message: str, **kwargs: Any) -> None:
        self._logger.info(f"   {_Colors.GRAY}├─ {message}{_Colors.RESET}" + _format_details(kwargs))

    @contextmanager
    def timed_step(self, stage: Stage, message: str, **kwargs: Any) -> Iterator[None]:
        """Log start and end of a step with its elapsed time.

        Failures are logged at WARNING and re-raised: whether they are fatal
        is the caller's decision.
        """
        self.step_start(stage, message, **kwargs)
        start = time.perf_counter()
        try:
            yield
        except Exception as e:
            elapsed = time.perf_counter() - start
            self._logger.warning(
                f"{_Colors.YELLOW}[{stage[0]}]{_Colors.RESET} {message} failed after "
                f"{elapsed:.2f}s {_Colors.DIM}→ {type(e).__name__}: {e}{_Colors.RESET}"
            )
            raise
        else:
            elapsed = time.perf_counter() - start
            self.step_complete(stage, f"{message} ({elapsed:.2f}s)")
