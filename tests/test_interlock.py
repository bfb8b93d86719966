"""
Tests for the Cognitive Interlock
=================================

Decision tables are tested on their own; the engine is tested with an
injected command runner and a temporary Humsana home.
"""

import pytest

from humsana.audit import AuditSink
from humsana.config import ExecutionMode, HumsanaPaths, InterlockConfig
from humsana.executor import CommandResult
from humsana.fatigue import FatigueCategory, FatigueReading
from humsana.impact import calculate_destructive_impact
from humsana.interlock import (
    OVERRIDE_INSTRUCTION,
    InterlockContext,
    Outcome,
    Verdict,
    build_context,
    check_command,
    decide_command,
    decide_write,
    execute_command,
    has_override,
    write_file,
)


# =============================================================================
# Fixtures
# =============================================================================

class RecordingRunner:
    """Stands in for run_command and remembers what it was asked to run."""

    def __init__(self, result=None):
        self.calls = []
        self.result = result or CommandResult(stdout="ok\n", stderr="", exit_code=0)

    def __call__(self, command, timeout):
        self.calls.append((command, timeout))
        return self.result


@pytest.fixture
def paths(tmp_path):
    return HumsanaPaths(tmp_path / ".humsana")


@pytest.fixture
def runner():
    return RecordingRunner()


@pytest.fixture
def make_ctx(paths, runner):
    def _make(fatigue, live=False, **config_values):
        config = InterlockConfig(
            execution_mode=ExecutionMode.LIVE if live else ExecutionMode.DRY_RUN,
            **config_values,
        )
        return InterlockContext(
            config=config,
            fatigue=FatigueReading(level=fatigue, category=FatigueCategory.HIGH, uptime_hours=9.5),
            audit=AuditSink(paths),
            runner=runner,
        )
    return _make


def lines(count, prefix="line"):
    return "\n".join(f"{prefix} {i}" for i in range(count)) + "\n"


def rewrite_removing(tmp_path, removed, total=100):
    """Create a file of `total` lines and return (path, content with `removed` lines gone)."""
    target = tmp_path / "src" / "module.py"
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(lines(total))
    new_content = "\n".join(f"line {i}" for i in range(removed, total)) + "\n"
    return target, new_content


# =============================================================================
# Decision Tables
# =============================================================================

class TestCommandDecisions:

    def test_safe_command_proceeds(self):
        assert decide_command(False, 99, 70) is Verdict.PROCEED

    def test_dangerous_below_threshold_warns(self):
        assert decide_command(True, 70, 70) is Verdict.WARN

    def test_dangerous_above_threshold_blocks(self):
        assert decide_command(True, 71, 70) is Verdict.BLOCK

    def test_override_unblocks(self):
        assert decide_command(True, 71, 70, "P0 production incident") is Verdict.OVERRIDE

    def test_override_has_no_effect_when_not_blocked(self):
        assert decide_command(True, 30, 70, "just because") is Verdict.WARN
        assert decide_command(False, 99, 70, "just because") is Verdict.PROCEED

    def test_blank_override_is_ignored(self):
        assert decide_command(True, 71, 70, "   ") is Verdict.BLOCK
        assert not has_override("")
        assert not has_override(None)
        assert has_override("x")


class TestWriteDecisions:

    def impact(self, removed):
        old = lines(100)
        new = "\n".join(f"line {i}" for i in range(removed, 100))
        return calculate_destructive_impact(old, new)

    @pytest.mark.parametrize("fatigue,removed,expected", [
        (40, 80, Verdict.PROCEED),
        (51, 30, Verdict.PROCEED),
        (51, 31, Verdict.WARN),
        (60, 35, Verdict.WARN),
        (70, 35, Verdict.WARN),
        (71, 31, Verdict.BLOCK),
        (75, 35, Verdict.BLOCK),
        (85, 50, Verdict.BLOCK),
        (80, 55, Verdict.BLOCK),
        (81, 51, Verdict.HARD_BLOCK),
        (85, 55, Verdict.HARD_BLOCK),
    ])
    def test_matrix(self, fatigue, removed, expected):
        assert decide_write(self.impact(removed), fatigue, InterlockConfig()) is expected

    def test_override_unblocks_hard_block(self):
        assert decide_write(self.impact(55), 85, InterlockConfig(), "reviewed it") is Verdict.OVERRIDE

    def test_override_does_not_apply_to_warning(self):
        assert decide_write(self.impact(35), 60, InterlockConfig(), "reviewed it") is Verdict.WARN

    def test_thresholds_come_from_config(self):
        config = InterlockConfig(write_warn_threshold=5, write_block_threshold=10)
        assert decide_write(self.impact(11), 81, config) is Verdict.HARD_BLOCK
        assert decide_write(self.impact(6), 71, config) is Verdict.BLOCK


# =============================================================================
# check_command
# =============================================================================

class TestCheckCommand:

    def test_blocked(self, make_ctx):
        check = check_command(make_ctx(71), "DROP TABLE users")

        assert check.is_blocked
        assert check.outcome is Outcome.BLOCKED
        assert check.override_instruction == OVERRIDE_INSTRUCTION
        assert "OVERRIDE SAFETY PROTOCOL: [reason]" in check.to_dict()["override_instruction"]
        assert check.assessment.matched_patterns == ["drop table"]

    def test_warning_only_at_threshold(self, make_ctx):
        check = check_command(make_ctx(70), "DROP TABLE users")

        assert not check.is_blocked
        assert check.assessment.is_dangerous
        assert check.outcome is Outcome.ALLOWED_WITH_WARNING
        assert "override_instruction" not in check.to_dict()

    def test_safe(self, make_ctx):
        check = check_command(make_ctx(99), "ls -la")

        assert check.outcome is Outcome.ALLOWED
        assert not check.assessment.is_dangerous

    def test_has_no_side_effects(self, make_ctx, paths, runner):
        ctx = make_ctx(95, live=True)

        first = check_command(ctx, "rm -rf /")
        second = check_command(ctx, "rm -rf /")

        assert first.to_dict() == second.to_dict()
        assert runner.calls == []
        assert not paths.home.exists()


# =============================================================================
# execute_command
# =============================================================================

class TestExecuteCommand:

    def test_blocked_command_is_not_run(self, make_ctx, runner, paths):
        result = execute_command(make_ctx(71, live=True), "DROP TABLE users")

        assert result.outcome is Outcome.BLOCKED
        assert result.override_required
        assert runner.calls == []
        data = result.to_dict()
        assert data["status"] == "BLOCKED"
        assert data["override_instruction"] == OVERRIDE_INSTRUCTION
        assert "DROP TABLE users" in data["message"]

        entries = AuditSink(paths).read_entries()
        assert [(e.outcome, e.override_reason) for e in entries] == [("BLOCKED", None)]

    def test_blocked_message_truncates_long_commands(self, make_ctx):
        command = "rm -rf " + "x" * 100
        result = execute_command(make_ctx(90), command)

        assert command[:50] + "..." in result.message
        assert command not in result.message

    def test_override_in_live_mode_runs_and_is_audited(self, make_ctx, runner, paths):
        result = execute_command(make_ctx(71, live=True), "DROP TABLE users", "P0 production incident")

        assert result.outcome is Outcome.EXECUTED_OVERRIDE
        assert runner.calls == [("DROP TABLE users", 30)]
        assert result.stdout == "ok\n"
        assert result.exit_code == 0

        entries = AuditSink(paths).read_entries()
        assert len(entries) == 1
        assert entries[0].override_reason == "P0 production incident"
        assert entries[0].outcome == "EXECUTED_OVERRIDE"
        assert entries[0].action_description == "Command: DROP TABLE users"

    def test_override_in_dry_run_is_simulated_and_audited(self, make_ctx, runner, paths):
        result = execute_command(make_ctx(90), "terraform destroy", "  scheduled teardown  ")

        assert result.outcome is Outcome.SIMULATED_OVERRIDE
        assert runner.calls == []
        entries = AuditSink(paths).read_entries()
        assert entries[0].override_reason == "scheduled teardown"
        assert entries[0].outcome == "SIMULATED_OVERRIDE"

    def test_whitespace_override_stays_blocked(self, make_ctx, runner):
        result = execute_command(make_ctx(90, live=True), "terraform destroy", "   ")

        assert result.outcome is Outcome.BLOCKED
        assert runner.calls == []

    def test_warning_only_in_live_mode(self, make_ctx, runner, paths):
        result = execute_command(make_ctx(70, live=True), "DROP TABLE users")

        assert result.outcome is Outcome.EXECUTED
        assert result.warning
        assert runner.calls == [("DROP TABLE users", 30)]
        assert AuditSink(paths).read_entries() == []

    def test_safe_command_in_live_mode(self, make_ctx, runner):
        result = execute_command(make_ctx(99, live=True), "ls -la")

        assert result.outcome is Outcome.EXECUTED
        assert not result.warning
        assert result.to_dict()["stdout"] == "ok\n"

    def test_dry_run_never_executes(self, make_ctx, runner):
        for command in ("ls -la", "DROP TABLE users"):
            result = execute_command(make_ctx(10), command)
            assert result.outcome is Outcome.SIMULATED
        assert runner.calls == []

    def test_dry_run_warning_is_flagged(self, make_ctx):
        result = execute_command(make_ctx(50), "git push --force")

        assert result.outcome is Outcome.SIMULATED
        assert result.warning
        assert result.to_dict()["mode"] == "dry_run"

    def test_failed_command(self, make_ctx, runner):
        runner.result = CommandResult(stdout="", stderr="no such table", exit_code=1)

        result = execute_command(make_ctx(10, live=True), "sqlite3 db 'select 1'")

        assert result.outcome is Outcome.FAILED
        assert result.exit_code == 1
        assert result.stderr == "no such table"
        assert "exit code 1" in result.message

    def test_timed_out_command(self, make_ctx, runner):
        runner.result = CommandResult(
            stdout="", stderr="", exit_code=None, timed_out=True, error="Command timed out after 5s",
        )

        result = execute_command(make_ctx(10, live=True, command_timeout_seconds=5), "sleep 60")

        assert result.outcome is Outcome.FAILED
        assert runner.calls == [("sleep 60", 5)]
        assert "timed out" in result.message

    def test_failed_override_is_audited_as_failed(self, make_ctx, runner, paths):
        runner.result = CommandResult(stdout="", stderr="denied", exit_code=2)

        result = execute_command(make_ctx(90, live=True), "kubectl delete ns prod", "incident")

        assert result.outcome is Outcome.FAILED
        assert AuditSink(paths).read_entries()[0].outcome == "FAILED"

    def test_deny_patterns_are_enforced(self, make_ctx, runner):
        result = execute_command(make_ctx(90, live=True, deny_patterns=["chmod 777"]), "chmod 777 /srv")

        assert result.outcome is Outcome.BLOCKED
        assert runner.calls == []


# =============================================================================
# write_file
# =============================================================================

class TestWriteFile:

    def test_warn_and_write(self, make_ctx, tmp_path, paths):
        target, new_content = rewrite_removing(tmp_path, 35)

        result = write_file(make_ctx(60, live=True), str(target), new_content)

        assert result.outcome is Outcome.ALLOWED_WITH_WARNING
        assert result.status == "WRITTEN_WARNING"
        assert result.warning
        assert target.read_text() == new_content
        assert AuditSink(paths).list_snapshots() == []

    def test_block_and_snapshot(self, make_ctx, tmp_path, paths):
        target, new_content = rewrite_removing(tmp_path, 35)

        result = write_file(make_ctx(75, live=True), str(target), new_content)

        assert result.outcome is Outcome.BLOCKED_AND_SAVED_FOR_REVIEW
        assert result.override_required
        assert target.read_text() == lines(100)
        snapshots = AuditSink(paths).list_snapshots()
        assert len(snapshots) == 1
        assert str(snapshots[0]) == result.review_path
        assert snapshots[0].read_text() == new_content
        assert "AI Rewrite Blocked" in result.message

        entries = AuditSink(paths).read_entries()
        assert entries[0].outcome == "BLOCKED_AND_SAVED_FOR_REVIEW"
        assert entries[0].action_description == f"Write: {target} | Removed: 35 lines"

    def test_hard_block_and_snapshot(self, make_ctx, tmp_path, paths):
        target, new_content = rewrite_removing(tmp_path, 55)

        result = write_file(make_ctx(85, live=True), str(target), new_content)

        assert result.outcome is Outcome.BLOCKED_AND_SAVED_FOR_REVIEW
        assert "High-Risk AI Edit Blocked" in result.message
        assert "55%" in result.message
        assert target.read_text() == lines(100)
        assert result.to_dict()["review_path"] == result.review_path

    def test_override_writes_and_is_logged(self, make_ctx, tmp_path, paths):
        target, new_content = rewrite_removing(tmp_path, 55)

        result = write_file(make_ctx(85, live=True), str(target), new_content, "reviewed the diff")

        assert result.outcome is Outcome.EXECUTED_OVERRIDE
        assert result.status == "WRITTEN_OVERRIDE"
        assert target.read_text() == new_content
        assert AuditSink(paths).list_snapshots() == []
        entries = AuditSink(paths).read_entries()
        assert entries[0].override_reason == "reviewed the diff"
        assert entries[0].outcome == "WRITTEN_OVERRIDE"

    def test_override_in_dry_run(self, make_ctx, tmp_path, paths):
        target, new_content = rewrite_removing(tmp_path, 55)

        result = write_file(make_ctx(85), str(target), new_content, "reviewed")

        assert result.outcome is Outcome.SIMULATED_OVERRIDE
        assert target.read_text() == lines(100)
        assert AuditSink(paths).read_entries()[0].outcome == "SIMULATED_OVERRIDE"

    def test_block_still_snapshots_in_dry_run(self, make_ctx, tmp_path, paths):
        target, new_content = rewrite_removing(tmp_path, 35)

        result = write_file(make_ctx(75), str(target), new_content)

        assert result.outcome is Outcome.BLOCKED_AND_SAVED_FOR_REVIEW
        assert len(AuditSink(paths).list_snapshots()) == 1

    def test_dry_run_warning(self, make_ctx, tmp_path):
        target, new_content = rewrite_removing(tmp_path, 35)

        result = write_file(make_ctx(60), str(target), new_content)

        assert result.outcome is Outcome.SIMULATED
        assert result.status == "SIMULATED_WARNING"
        assert target.read_text() == lines(100)

    def test_dry_run_never_writes(self, make_ctx, tmp_path):
        target = tmp_path / "new_module.py"

        result = write_file(make_ctx(10), str(target), "x = 1\n")

        assert result.outcome is Outcome.SIMULATED
        assert result.status == "SIMULATED"
        assert result.impact.is_new_file
        assert not target.exists()

    def test_new_file_in_live_mode(self, make_ctx, tmp_path):
        target = tmp_path / "pkg" / "new_module.py"

        result = write_file(make_ctx(95, live=True), str(target), "x = 1\n")

        assert result.outcome is Outcome.EXECUTED
        assert result.status == "WRITTEN"
        assert target.read_text() == "x = 1\n"
        assert result.to_dict()["impact"]["percentage_removed"] == 0

    def test_small_edit_while_fatigued_proceeds(self, make_ctx, tmp_path):
        target, new_content = rewrite_removing(tmp_path, 30)

        result = write_file(make_ctx(99, live=True), str(target), new_content)

        assert result.outcome is Outcome.EXECUTED
        assert not result.warning

    def test_unreadable_target_fails(self, make_ctx, tmp_path):
        result = write_file(make_ctx(10, live=True), str(tmp_path), "x")

        assert result.outcome is Outcome.FAILED
        assert result.impact is None
        assert result.to_dict()["impact"] is None

    def test_snapshot_failure_still_blocks(self, make_ctx, tmp_path, paths):
        paths.home.mkdir(parents=True)
        paths.review_dir.write_text("not a directory")
        target, new_content = rewrite_removing(tmp_path, 35)

        result = write_file(make_ctx(75, live=True), str(target), new_content)

        assert result.outcome is Outcome.BLOCKED
        assert result.review_path is None
        assert "review_path" not in result.to_dict()
        assert target.read_text() == lines(100)

    def test_every_result_carries_fatigue(self, make_ctx, tmp_path):
        target, new_content = rewrite_removing(tmp_path, 35)

        data = write_file(make_ctx(75), str(target), new_content).to_dict()

        assert data["fatigue"] == {"level": 75, "category": "high", "uptime_hours": 9.5}
        assert data["message"]


# =============================================================================
# build_context
# =============================================================================

class TestBuildContext:

    @pytest.mark.asyncio
    async def test_context_from_disk(self, paths, monkeypatch):
        monkeypatch.delenv("HUMSANA_EXECUTION_MODE", raising=False)
        monkeypatch.delenv("HUMSANA_FATIGUE_THRESHOLD", raising=False)
        monkeypatch.delenv("HUMSANA_WEBHOOK_URL", raising=False)
        paths.home.mkdir(parents=True)
        paths.config_file.write_text("execution_mode: live\nwebhook_url: http://localhost:1/hook\n")

        ctx = await build_context(paths)

        assert ctx.config.is_live
        assert ctx.mode == "live"
        assert ctx.fatigue.level == 0
        assert ctx.audit.webhook_url == "http://localhost:1/hook"
