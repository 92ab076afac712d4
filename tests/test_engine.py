"""
Tests for the step pipeline — ordering, failure isolation, idempotence
and dry-run purity.
"""

import pytest

from mfgi.core.engine.pipeline import Step, run_pipeline
from mfgi.core.errors import FatalError, InstallInterrupted
from mfgi.core.models.preferences import Preferences
from mfgi.core.steps import default_steps


def _step(name, fn, title=None):
    return Step(name, title or name.title(), fn)


def _subject(message):
    return message.split(":", 1)[0]


# ── Control flow ─────────────────────────────────────────────────────


class TestRunPipeline:
    def test_runs_steps_in_order(self, make_context):
        seen = []
        steps = [
            _step("a", lambda ctx: seen.append("a") or True),
            _step("b", lambda ctx: seen.append("b") or True),
            _step("c", lambda ctx: seen.append("c") or True),
        ]
        report = run_pipeline(steps, make_context())
        assert seen == ["a", "b", "c"]
        assert report.total == 3
        assert report.all_ok

    def test_failed_step_does_not_stop_later_steps(self, make_context):
        ctx = make_context()

        def broken(c):
            c.ledger.failed("Extension: could not install foo")
            return False

        def grub(c):
            c.ledger.changed("GRUB: hidden boot menu configured")
            return True

        report = run_pipeline([_step("extensions", broken), _step("grub", grub)], ctx)
        assert report.failed_steps == ["extensions"]
        assert ctx.ledger.messages("changed") == ["GRUB: hidden boot menu configured"]
        assert ctx.ledger.failure_count == 1

    def test_exception_becomes_failed_entry(self, make_context):
        ctx = make_context()

        def explode(c):
            raise RuntimeError("boom")

        report = run_pipeline([_step("explode", explode, "Exploder"), _step("after", lambda c: True)], ctx)
        assert report.failed_steps == ["explode"]
        assert report.outcomes[0].error == "RuntimeError: boom"
        assert ctx.ledger.messages("failed") == ["Exploder: unexpected error (RuntimeError: boom)"]
        assert report.outcomes[1].ok

    def test_silent_false_is_recorded(self, make_context):
        ctx = make_context()
        run_pipeline([_step("quiet", lambda c: False, "Quiet")], ctx)
        assert ctx.ledger.messages("failed") == ["Quiet: step failed"]

    def test_fatal_error_escalates(self, make_context):
        ctx = make_context()
        seen = []

        def fatal(c):
            raise FatalError("temp area vanished")

        with pytest.raises(FatalError):
            run_pipeline([_step("fatal", fatal), _step("never", lambda c: seen.append(1))], ctx)
        assert seen == []

    def test_termination_escalates(self, make_context):
        ctx = make_context()
        seen = []

        def terminated(c):
            raise InstallInterrupted(15, "SIGTERM")

        with pytest.raises(InstallInterrupted):
            run_pipeline([_step("term", terminated), _step("never", lambda c: seen.append(1))], ctx)
        assert seen == []
        assert ctx.ledger.failure_count == 0

    def test_entries_tagged_with_step(self, make_context):
        ctx = make_context()
        run_pipeline([_step("tagged", lambda c: bool(c.ledger.skipped("x")))], ctx)
        assert ctx.ledger.entries("skipped")[0].step == "tagged"
        assert ctx.ledger.count_for_step("tagged") == 1


# ── Whole pipeline against a fake host ───────────────────────────────


FULL = Preferences(
    scope="user",
    install_apps=True,
    install_wallpapers=True,
    style=2,
    hide_grub=True,
)


class TestIdempotence:
    def test_second_run_changes_nothing(self, make_context, make_runner):
        runner = make_runner()

        first = make_context(runner=runner, preferences=FULL)
        run_pipeline(default_steps(), first)
        assert first.ledger.failure_count == 0, first.ledger.messages("failed")
        assert first.ledger.messages("changed")

        second = make_context(runner=runner, preferences=FULL)
        run_pipeline(default_steps(), second)
        assert second.ledger.messages("changed") == []
        assert second.ledger.failure_count == 0

        # Every item changed the first time is reported as skipped now.
        skipped = {(e.step, _subject(e.message)) for e in second.ledger.entries("skipped")}
        for entry in first.ledger.entries("changed"):
            assert (entry.step, _subject(entry.message)) in skipped, entry.message

    def test_first_run_reaches_host(self, make_context, make_runner, fake_host):
        runner = make_runner()
        run_pipeline(default_steps(), make_context(runner=runner, preferences=FULL))

        assert "gnome-tour" not in fake_host.rpms
        assert "fedora" not in fake_host.remotes["system"]
        assert "flathub" in fake_host.remotes["user"]
        assert "org.mozilla.firefox" in fake_host.apps["user"]
        assert fake_host.units["fedora-flathub.service"] == "masked"
        assert fake_host.units["NetworkManager.service"] == "enabled"
        assert fake_host.default_target == "graphical.target"
        assert fake_host.gsettings[("org.gnome.desktop.wm.preferences", "button-layout")] == (
            "':minimize,maximize,close'"
        )


class TestDryRun:
    def test_one_entry_per_step_and_no_mutation(self, make_context, make_runner, fake_host, tmp_path):
        prefs = FULL.model_copy(update={"dry_run": True})
        runner = make_runner(dry_run=True)
        ctx = make_context(runner=runner, preferences=prefs)

        run_pipeline(default_steps(), ctx)

        for step in default_steps():
            assert ctx.ledger.count_for_step(step.name) == 1, step.name
        assert ctx.ledger.failure_count == 0
        assert fake_host.mutations == []
        assert not (tmp_path / "etc-default-grub").exists()
        assert not (tmp_path / "backgrounds").exists()

    def test_dry_run_with_minimal_preferences(self, make_context):
        prefs = Preferences(dry_run=True)
        ctx = make_context(preferences=prefs)
        run_pipeline(default_steps(), ctx)
        for step in default_steps():
            assert ctx.ledger.count_for_step(step.name) == 1, step.name
        assert ctx.ledger.failure_count == 0
