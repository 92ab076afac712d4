"""
Tests for the result ledger — recording, ordering and summaries.
"""

from __future__ import annotations

import pytest

from mfgi.core.engine.ledger import ResultLedger


@pytest.fixture
def reported():
    return []


@pytest.fixture
def ledger(reported):
    return ResultLedger(reporter=reported.append)


# ═══════════════════════════════════════════════════════════════════════
#  Recording
# ═══════════════════════════════════════════════════════════════════════


class TestRecord:
    def test_reports_immediately(self, ledger, reported):
        entry = ledger.changed("dnf: installed git")
        assert reported == [entry]
        assert entry.status == "changed"

    def test_order_preserved_per_status(self, ledger):
        ledger.skipped("a")
        ledger.changed("b")
        ledger.skipped("c")
        assert ledger.messages("skipped") == ["a", "c"]
        assert ledger.messages("changed") == ["b"]

    def test_invalid_status(self, ledger, reported):
        with pytest.raises(ValueError, match="Invalid result status"):
            ledger.record("maybe", "x")
        assert reported == []
        assert ledger.total == 0

    def test_step_tag(self, ledger):
        ledger.set_step("configure_grub")
        ledger.changed("GRUB: hidden boot menu configured")
        ledger.set_step("")
        ledger.skipped("untagged")
        assert ledger.count_for_step("configure_grub") == 1
        assert ledger.entries("skipped")[0].step == ""

    def test_timestamp_is_utc_iso(self, ledger):
        entry = ledger.failed("x")
        assert entry.timestamp.endswith("+00:00")


# ═══════════════════════════════════════════════════════════════════════
#  Summary
# ═══════════════════════════════════════════════════════════════════════


class TestSummarize:
    def test_fixed_section_order(self, ledger):
        ledger.failed("f")
        ledger.skipped("s")
        ledger.changed("c")
        assert ledger.summarize() == [
            ("Changed:", ["c"]),
            ("Already set/skipped:", ["s"]),
            ("Failed:", ["f"]),
        ]

    def test_empty_sections_omitted(self, ledger):
        ledger.skipped("s")
        assert ledger.summarize() == [("Already set/skipped:", ["s"])]

    def test_empty_ledger(self, ledger):
        assert ledger.summarize() == []
        assert not ledger.has_failures

    def test_final_message(self, ledger):
        ledger.changed("c")
        assert ledger.final_message() == "mfgi v18 installation completed!"
        ledger.failed("one")
        ledger.failed("two")
        assert ledger.final_message() == "mfgi v18 installation completed with 2 failure(s)."

    def test_to_dict(self, ledger):
        ledger.set_step("install_base_packages")
        ledger.changed("dnf: installed git")
        data = ledger.to_dict()
        assert set(data) == {"changed", "skipped", "failed"}
        assert data["changed"][0]["message"] == "dnf: installed git"
        assert data["changed"][0]["step"] == "install_base_packages"


class TestDefaultReporter:
    def test_logs_entries(self, caplog):
        ledger = ResultLedger()
        with caplog.at_level("INFO", logger="mfgi.core.engine.ledger"):
            ledger.changed("hello")
            ledger.failed("broken")
        assert "[changed] hello" in caplog.text
        assert any(r.levelname == "WARNING" and "broken" in r.message for r in caplog.records)
