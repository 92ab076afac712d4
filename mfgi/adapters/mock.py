"""
Mock runner — universal test double for external commands.

Returns success for everything by default. Responses can be set per
command prefix, or computed by a responder callable that plays the
part of the host (see the fake host in the tests).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

from mfgi.adapters.base import Runner
from mfgi.core.models.command import CommandResult

Responder = Callable[[list[str]], CommandResult | None]


@dataclass
class Call:
    argv: list[str]
    env: dict[str, str] = field(default_factory=dict)
    input: str | None = None


class MockRunner(Runner):
    """Scripted runner for tests and previews."""

    def __init__(
        self,
        dry_run: bool = False,
        available: Iterable[str] = (),
        responder: Responder | None = None,
    ):
        super().__init__(dry_run=dry_run)
        self._available = set(available)
        self._responder = responder
        self._responses: list[tuple[tuple[str, ...], CommandResult]] = []
        self._call_log: list[Call] = []

    @property
    def call_log(self) -> list[Call]:
        """Every command that actually reached ``execute``."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def commands(self) -> list[list[str]]:
        return [c.argv for c in self._call_log]

    def called(self, *prefix: str) -> bool:
        """True if any executed command starts with ``prefix``."""
        return any(tuple(c.argv[: len(prefix)]) == prefix for c in self._call_log)

    def set_available(self, *names: str) -> None:
        self._available.update(names)

    def set_response(self, prefix: Iterable[str], result: CommandResult) -> None:
        """Return ``result`` for commands starting with ``prefix`` (latest wins)."""
        self._responses.insert(0, (tuple(prefix), result))

    def set_failure(self, prefix: Iterable[str], returncode: int = 1, stderr: str = "mock failure") -> None:
        prefix = tuple(prefix)
        self.set_response(prefix, CommandResult.failure(list(prefix), returncode, stderr))

    def set_output(self, prefix: Iterable[str], stdout: str) -> None:
        prefix = tuple(prefix)
        self.set_response(prefix, CommandResult.success(list(prefix), stdout=stdout))

    def which(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self._available else None

    def execute(
        self,
        argv: list[str],
        *,
        env: Mapping[str, str] | None = None,
        input: str | None = None,
    ) -> CommandResult:
        self._call_log.append(Call(argv=list(argv), env=dict(env or {}), input=input))

        for prefix, result in self._responses:
            if tuple(argv[: len(prefix)]) == prefix:
                return result.model_copy(update={"argv": list(argv)})

        if self._responder is not None:
            result = self._responder(list(argv))
            if result is not None:
                return result

        return CommandResult.success(argv)

    def reset(self) -> None:
        self._call_log.clear()
        self._responses.clear()
