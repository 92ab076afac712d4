"""
Step pipeline — the ordered installation workflow.

The pipeline is a fixed list of Step values executed top to bottom,
exactly once per run. Every step receives the same StepContext
(snapshot, user, broker, mutator, ledger) and returns True/False.

A failing step never stops the pipeline: a broken extension install
must not block the bootloader step that follows it. Ordinary
exceptions raised inside a step are converted into a ``failed``
ledger entry here; only FatalError and interrupts escape to the
top-level handler.

Flow:
    steps → (for each) set ledger tag → run → record outcome → next
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from mfgi.adapters.base import Runner
from mfgi.adapters.shell.privilege import PrivilegeBroker
from mfgi.core.config.settings import RuntimeSettings
from mfgi.core.engine.ledger import ResultLedger
from mfgi.core.errors import FatalError, InstallInterrupted
from mfgi.core.models.catalog import Catalog
from mfgi.core.models.command import CommandResult
from mfgi.core.models.identity import TargetUser
from mfgi.core.models.preferences import Preferences
from mfgi.core.persistence.safe_edit import SafeFileMutator

logger = logging.getLogger(__name__)

Progress = Callable[[str], None]


def _log_progress(message: str) -> None:
    logger.info("%s", message)


@dataclass
class StepContext:
    """Everything a step may touch. Built once per run."""

    preferences: Preferences
    user: TargetUser | None
    broker: PrivilegeBroker
    mutator: SafeFileMutator
    ledger: ResultLedger
    catalog: Catalog
    settings: RuntimeSettings
    progress: Progress = _log_progress
    network_probe: Callable[[], bool] | None = None
    _network: bool | None = field(default=None, init=False, repr=False)

    @property
    def dry_run(self) -> bool:
        return self.preferences.dry_run

    @property
    def runner(self) -> Runner:
        return self.broker.runner

    @property
    def desktop_user(self) -> TargetUser | None:
        """The detected user unless it is root."""
        if self.user is None or self.user.is_root:
            return None
        return self.user

    def root(self, argv: Sequence[str], *, mutating: bool = True) -> CommandResult:
        return self.broker.run_as_root(argv, mutating=mutating)

    def as_user(self, argv: Sequence[str], *, mutating: bool = True) -> CommandResult:
        return self.broker.run_as(self.user, argv, mutating=mutating)

    def session(self, argv: Sequence[str], *, mutating: bool = True) -> CommandResult:
        return self.broker.run_as_with_session(self.user, argv, mutating=mutating)

    def network_ready(self) -> bool:
        """Probe connectivity once per run."""
        if self._network is None:
            self._network = bool(self.network_probe()) if self.network_probe else True
        return self._network


StepFunction = Callable[[StepContext], bool]


@dataclass(frozen=True)
class Step:
    """A named, independently testable unit of the pipeline."""

    name: str
    title: str
    run: StepFunction


@dataclass
class StepOutcome:
    name: str
    ok: bool
    duration_ms: int = 0
    error: str | None = None


@dataclass
class PipelineReport:
    """Per-step outcomes of one pipeline pass."""

    outcomes: list[StepOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def failed_steps(self) -> list[str]:
        return [o.name for o in self.outcomes if not o.ok]

    @property
    def all_ok(self) -> bool:
        return not self.failed_steps


def run_pipeline(steps: Sequence[Step], ctx: StepContext) -> PipelineReport:
    """Execute every step once, in order, never stopping on failure.

    Raises:
        FatalError: Escalated untouched from a step.
        InstallInterrupted: A termination signal arrived during a step.
    """
    report = PipelineReport()
    total = len(steps)
    logger.info("Starting installation with %d steps", total)

    for number, step in enumerate(steps, start=1):
        logger.info("[%d/%d] Executing step: %s", number, total, step.name)
        ctx.ledger.set_step(step.name)
        start = time.monotonic()
        error: str | None = None

        try:
            ok = bool(step.run(ctx))
        except (FatalError, InstallInterrupted):
            raise
        except Exception as e:
            logger.exception("Step %s raised an unexpected error", step.name)
            error = f"{type(e).__name__}: {e}"
            ctx.ledger.failed(f"{step.title}: unexpected error ({error})")
            ok = False

        if not ok:
            logger.error("Step failed: %s", step.name)
            if ctx.ledger.count_for_step(step.name) == 0:
                ctx.ledger.failed(f"{step.title}: step failed")

        report.outcomes.append(
            StepOutcome(
                name=step.name,
                ok=ok,
                duration_ms=int((time.monotonic() - start) * 1000),
                error=error,
            )
        )

    ctx.ledger.set_step("")
    logger.info("Installation run completed")
    return report
