"""
Install use case — one complete installer run.

This is the top-level orchestrator below the CLI: it creates the
private temp area, opens the session log frame, detects the desktop
user, builds the step context and runs the pipeline.

All cleanup lives in a single ``try/finally``: whatever happens
(normal completion, an escalated FatalError, Ctrl-C, SIGTERM) the
summary is emitted, the log frame is closed with the matching trailer
and the temp area is removed. Exceptions are re-raised afterwards so
the caller can pick the exit code.
"""

from __future__ import annotations

import contextlib
import logging
import signal
import traceback
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from mfgi import __version__
from mfgi.adapters.base import Runner
from mfgi.adapters.shell.privilege import PrivilegeBroker
from mfgi.core.config.settings import RuntimeSettings
from mfgi.core.engine.ledger import ResultLedger
from mfgi.core.engine.pipeline import PipelineReport, Progress, Step, StepContext, run_pipeline
from mfgi.core.errors import InstallInterrupted, SessionLogError
from mfgi.core.models.catalog import Catalog
from mfgi.core.models.identity import TargetUser
from mfgi.core.models.preferences import Preferences
from mfgi.core.observability.logging_config import attach_session_log, detach_session_log
from mfgi.core.persistence.safe_edit import SafeFileMutator, TempArea
from mfgi.core.persistence.session_log import LogManager, SessionLog, SessionMetadata
from mfgi.core.services.network import check_network
from mfgi.core.steps import default_steps

logger = logging.getLogger(__name__)

PROGRAM = "mfgi"

SummaryHook = Callable[[ResultLedger], None]


@dataclass
class InstallResult:
    """What one run produced."""

    ledger: ResultLedger
    report: PipelineReport | None = None
    user: TargetUser | None = None
    log_path: Path | None = None

    @property
    def has_failures(self) -> bool:
        return self.ledger.has_failures

    def to_dict(self) -> dict:
        return {
            "user": self.user.username if self.user else None,
            "log_path": str(self.log_path) if self.log_path else None,
            "failed_steps": self.report.failed_steps if self.report else [],
            "results": self.ledger.to_dict(),
        }


@dataclass
class _Cleanup:
    temp_area: TempArea | None = None
    session: SessionLog | None = None
    handler: logging.Handler | None = None


def _error_location(exc: BaseException) -> str:
    frames = traceback.extract_tb(exc.__traceback__)
    if not frames:
        return "unknown"
    last = frames[-1]
    return f"{Path(last.filename).name}:{last.lineno} in {last.name}"


def _error_reason(exc: BaseException) -> str:
    if isinstance(exc, KeyboardInterrupt):
        return "Interrupted (SIGINT)"
    if isinstance(exc, InstallInterrupted):
        return str(exc)
    return f"unexpected error: {type(exc).__name__}: {exc}"


@contextlib.contextmanager
def terminate_as_exception() -> Iterator[None]:
    """Turn SIGTERM into InstallInterrupted for the duration of the run."""

    def _raise(signum, _frame):
        raise InstallInterrupted(signum, "SIGTERM")

    try:
        previous = signal.signal(signal.SIGTERM, _raise)
    except ValueError:
        # Not the main thread; leave signal handling alone.
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


def _summary_lines(ledger: ResultLedger) -> list[str]:
    lines = ["", "Summary"]
    for title, messages in ledger.summarize():
        lines.append(title)
        lines.extend(f"  - {m}" for m in messages)
    return lines


def _open_session_log(settings: RuntimeSettings, args: Sequence[str]) -> SessionLog | None:
    """Open the session frame; a log that cannot be opened safely is skipped."""
    manager = LogManager(settings.log_file, settings.log_max_size, settings.log_keep_rotated)
    try:
        return manager.open(SessionMetadata(program=PROGRAM, version=__version__, args=list(args)))
    except SessionLogError as e:
        logger.warning("%s - continuing without log file", e)
        return None


def run_install(
    preferences: Preferences,
    settings: RuntimeSettings,
    catalog: Catalog,
    runner: Runner,
    *,
    ledger: ResultLedger | None = None,
    broker: PrivilegeBroker | None = None,
    steps: Sequence[Step] | None = None,
    env: Mapping[str, str] | None = None,
    args: Sequence[str] = (),
    progress: Progress | None = None,
    on_summary: SummaryHook | None = None,
    temp_parent: Path | None = None,
) -> InstallResult:
    """Run the installation pipeline with full lifecycle handling.

    Raises:
        FatalError: Escalated from a step or the temp area.
        KeyboardInterrupt, InstallInterrupted: Termination requested.
    """
    ledger = ledger or ResultLedger()
    result = InstallResult(ledger=ledger)
    state = _Cleanup()
    failure: BaseException | None = None

    try:
        state.temp_area = TempArea(temp_parent)

        if not preferences.dry_run:
            state.session = _open_session_log(settings, args)
            if state.session is not None:
                state.handler = attach_session_log(state.session.path)
                result.log_path = state.session.path
                logger.info(
                    "Logging to: %s (max size: %dMB, keep: %d rotated)",
                    settings.log_file,
                    settings.log_max_size // (1024 * 1024),
                    settings.log_keep_rotated,
                )
        else:
            logger.info("Dry-run mode enabled")

        logger.info("Starting %s v%s", PROGRAM, __version__)

        broker = broker or PrivilegeBroker(runner, greeters=catalog.greeters)
        result.user = broker.detect_target_user(env)
        if result.user is None:
            logger.warning("Continuing without a detected desktop user...")
        broker.check_readiness(result.user)

        ctx = StepContext(
            preferences=preferences,
            user=result.user,
            broker=broker,
            mutator=SafeFileMutator(state.temp_area, dry_run=preferences.dry_run),
            ledger=ledger,
            catalog=catalog,
            settings=settings,
            network_probe=lambda: check_network(runner),
        )
        if progress is not None:
            ctx.progress = progress

        result.report = run_pipeline(list(steps) if steps is not None else default_steps(), ctx)
        return result

    except BaseException as e:
        failure = e
        logger.error("Installation aborted: %s (at %s)", _error_reason(e), _error_location(e))
        raise

    finally:
        if on_summary is not None:
            on_summary(ledger)

        detach_session_log(state.handler)
        if state.session is not None:
            try:
                state.session.write(*_summary_lines(ledger))
                if failure is None:
                    state.session.close()
                else:
                    state.session.close_error(_error_reason(failure), _error_location(failure))
            except (OSError, SessionLogError) as e:
                logger.warning("Could not finalize session log: %s", e)

        if state.temp_area is not None:
            state.temp_area.cleanup()
