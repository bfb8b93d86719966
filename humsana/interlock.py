"""
Cognitive Interlock
===================

Gates shell commands and file rewrites on the user's current fatigue.

Decisions are made in two steps:

1. A pure guard chain turns the measured signals into a Verdict. Guards are
   checked in order and the first one that applies wins, so the
   override > hard block > block > warn priority is visible in one table
   (COMMAND_GUARDS, WRITE_GUARDS) and testable without touching disk.
2. The engine acts on the verdict: it runs or simulates the action, saves
   blocked content for review, and writes the audit trail.

Every request gets its own InterlockContext; nothing is cached between calls.

Usage:
    ctx = await build_context()
    result = execute_command(ctx, "terraform destroy", override_reason=None)
    print(result.to_dict())
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from humsana.audit import AuditSink
from humsana.config import HumsanaPaths, InterlockConfig
from humsana.executor import CommandRunner, run_command
from humsana.fatigue import FatigueReading
from humsana.file_ops import FileOps
from humsana.impact import ImpactReport, calculate_destructive_impact
from humsana.risk import RiskAssessment, RiskClassifier
from humsana.state import UserState, load_user_state

logger = logging.getLogger(__name__)

OVERRIDE_PHRASE = "OVERRIDE SAFETY PROTOCOL"
OVERRIDE_INSTRUCTION = f"To proceed, user MUST say: {OVERRIDE_PHRASE}: [reason]"

# Fatigue levels for the write interlock tiers
WRITE_WARN_FATIGUE = 50
WRITE_BLOCK_FATIGUE = 70
WRITE_HARD_BLOCK_FATIGUE = 80

COMMAND_PREVIEW_LENGTH = 50


class Outcome(Enum):
    """Every result the interlock can produce."""
    ALLOWED = "ALLOWED"
    ALLOWED_WITH_WARNING = "ALLOWED_WITH_WARNING"
    SIMULATED = "SIMULATED"
    SIMULATED_OVERRIDE = "SIMULATED_OVERRIDE"
    BLOCKED = "BLOCKED"
    BLOCKED_AND_SAVED_FOR_REVIEW = "BLOCKED_AND_SAVED_FOR_REVIEW"
    EXECUTED = "EXECUTED"
    EXECUTED_OVERRIDE = "EXECUTED_OVERRIDE"
    FAILED = "FAILED"


class Verdict(Enum):
    PROCEED = "proceed"
    WARN = "warn"
    OVERRIDE = "override"
    BLOCK = "block"
    HARD_BLOCK = "hard_block"


# =============================================================================
# Decision Tables
# =============================================================================

@dataclass(frozen=True)
class Guard:
    """One row of a decision table."""
    name: str
    verdict: Verdict
    applies: Callable[[Any], bool]


@dataclass(frozen=True)
class CommandSignals:
    is_dangerous: bool
    fatigue_level: int
    fatigue_threshold: int
    has_override: bool

    @property
    def should_block(self) -> bool:
        return self.is_dangerous and self.fatigue_level > self.fatigue_threshold


@dataclass(frozen=True)
class WriteSignals:
    lines_removed: int
    fatigue_level: int
    warn_threshold: int
    block_threshold: int
    has_override: bool

    @property
    def high_impact(self) -> bool:
        return self.lines_removed > self.warn_threshold

    @property
    def critical_impact(self) -> bool:
        return self.lines_removed > self.block_threshold

    @property
    def warn(self) -> bool:
        return self.fatigue_level > WRITE_WARN_FATIGUE and self.high_impact

    @property
    def block(self) -> bool:
        return self.fatigue_level > WRITE_BLOCK_FATIGUE and self.high_impact

    @property
    def hard_block(self) -> bool:
        return self.fatigue_level > WRITE_HARD_BLOCK_FATIGUE and self.critical_impact


COMMAND_GUARDS: tuple[Guard, ...] = (
    Guard("override", Verdict.OVERRIDE, lambda s: s.should_block and s.has_override),
    Guard("block", Verdict.BLOCK, lambda s: s.should_block),
    Guard("caution", Verdict.WARN, lambda s: s.is_dangerous),
)

WRITE_GUARDS: tuple[Guard, ...] = (
    Guard("override", Verdict.OVERRIDE, lambda s: s.has_override and (s.block or s.hard_block)),
    Guard("hard_block", Verdict.HARD_BLOCK, lambda s: s.hard_block),
    Guard("block", Verdict.BLOCK, lambda s: s.block),
    Guard("warn", Verdict.WARN, lambda s: s.warn),
)


def evaluate_guards(guards: Sequence[Guard], signals: Any) -> Verdict:
    """Return the verdict of the first guard that applies, or PROCEED."""
    for guard in guards:
        if guard.applies(signals):
            return guard.verdict
    return Verdict.PROCEED


def has_override(override_reason: Optional[str]) -> bool:
    """Only presence is checked; the reason's wording is up to the human."""
    return bool(override_reason and override_reason.strip())


def decide_command(
    is_dangerous: bool,
    fatigue_level: int,
    fatigue_threshold: int,
    override_reason: Optional[str] = None,
) -> Verdict:
    return evaluate_guards(COMMAND_GUARDS, CommandSignals(
        is_dangerous=is_dangerous,
        fatigue_level=fatigue_level,
        fatigue_threshold=fatigue_threshold,
        has_override=has_override(override_reason),
    ))


def decide_write(
    impact: ImpactReport,
    fatigue_level: int,
    config: InterlockConfig,
    override_reason: Optional[str] = None,
) -> Verdict:
    return evaluate_guards(WRITE_GUARDS, WriteSignals(
        lines_removed=impact.lines_removed,
        fatigue_level=fatigue_level,
        warn_threshold=config.write_warn_threshold,
        block_threshold=config.write_block_threshold,
        has_override=has_override(override_reason),
    ))


# =============================================================================
# Request Context
# =============================================================================

@dataclass
class InterlockContext:
    """Everything one interlock request needs, passed explicitly."""
    config: InterlockConfig
    fatigue: FatigueReading
    audit: AuditSink
    runner: CommandRunner = run_command
    files: type = FileOps

    @property
    def classifier(self) -> RiskClassifier:
        return RiskClassifier.from_config(self.config)

    @property
    def mode(self) -> str:
        return self.config.execution_mode.value


async def build_context(
    paths: Optional[HumsanaPaths] = None,
    user_state: Optional[UserState] = None,
) -> InterlockContext:
    """Load config and a fresh fatigue reading for one request."""
    if paths is None:
        paths = HumsanaPaths.from_env()
    config = InterlockConfig.load(paths.config_file)
    if user_state is None:
        user_state = await load_user_state(paths)
    return InterlockContext(
        config=config,
        fatigue=user_state.fatigue,
        audit=AuditSink(paths, webhook_url=config.webhook_url),
    )


# =============================================================================
# Results
# =============================================================================

@dataclass
class CommandCheck:
    """Result of a side-effect-free command check."""
    command: str
    assessment: RiskAssessment
    is_blocked: bool
    outcome: Outcome
    message: str
    fatigue: FatigueReading
    override_instruction: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "outcome": self.outcome.value,
            "is_dangerous": self.assessment.is_dangerous,
            "is_blocked": self.is_blocked,
            "matched_patterns": list(self.assessment.matched_patterns),
            "fatigue": self.fatigue.to_dict(),
            "message": self.message,
        }
        if self.override_instruction:
            data["override_instruction"] = self.override_instruction
        return data


@dataclass
class CommandOutcome:
    command: str
    outcome: Outcome
    message: str
    fatigue: FatigueReading
    mode: str
    warning: bool = False
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    exit_code: Optional[int] = None
    override_required: bool = False

    @property
    def status(self) -> str:
        return self.outcome.value

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "status": self.status,
            "outcome": self.outcome.value,
            "message": self.message,
            "fatigue": self.fatigue.to_dict(),
            "mode": self.mode,
            "warning": self.warning,
        }
        if self.stdout is not None or self.stderr is not None:
            data["stdout"] = self.stdout or ""
            data["stderr"] = self.stderr or ""
            data["exit_code"] = self.exit_code
        if self.override_required:
            data["override_required"] = True
            data["override_instruction"] = OVERRIDE_INSTRUCTION
        return data


# Live-mode write outcomes use file vocabulary on the wire.
_WRITE_STATUS_LABELS = {
    Outcome.EXECUTED: "WRITTEN",
    Outcome.EXECUTED_OVERRIDE: "WRITTEN_OVERRIDE",
    Outcome.ALLOWED_WITH_WARNING: "WRITTEN_WARNING",
}


@dataclass
class WriteOutcome:
    filepath: str
    outcome: Outcome
    message: str
    fatigue: FatigueReading
    mode: str
    impact: Optional[ImpactReport] = None
    warning: bool = False
    review_path: Optional[str] = None
    override_required: bool = False

    @property
    def status(self) -> str:
        if self.outcome is Outcome.SIMULATED and self.warning:
            return "SIMULATED_WARNING"
        return _WRITE_STATUS_LABELS.get(self.outcome, self.outcome.value)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "status": self.status,
            "outcome": self.outcome.value,
            "message": self.message,
            "filepath": self.filepath,
            "impact": self.impact.to_dict() if self.impact else None,
            "fatigue": self.fatigue.to_dict(),
            "mode": self.mode,
            "warning": self.warning,
        }
        if self.review_path:
            data["review_path"] = self.review_path
        if self.override_required:
            data["override_required"] = True
            data["override_instruction"] = OVERRIDE_INSTRUCTION
        return data


# =============================================================================
# Command Interlock
# =============================================================================

def _preview(command: str) -> str:
    if len(command) <= COMMAND_PREVIEW_LENGTH:
        return command
    return command[:COMMAND_PREVIEW_LENGTH] + "..."


def check_command(ctx: InterlockContext, command: str) -> CommandCheck:
    """
    Report whether a command is dangerous and would be blocked right now.

    Pure query: never runs the command, writes files, or logs audit entries.
    """
    assessment = ctx.classifier.assess(command)
    verdict = decide_command(assessment.is_dangerous, ctx.fatigue.level, ctx.config.fatigue_threshold)

    if verdict is Verdict.BLOCK:
        return CommandCheck(
            command=command,
            assessment=assessment,
            is_blocked=True,
            outcome=Outcome.BLOCKED,
            message=(
                f"INTERLOCK ENGAGED: High fatigue ({ctx.fatigue.level}%) detected. "
                f"You have been active for {ctx.fatigue.uptime_hours:.1f} hours. "
                f"Command is blocked for safety."
            ),
            fatigue=ctx.fatigue,
            override_instruction=OVERRIDE_INSTRUCTION,
        )

    if verdict is Verdict.WARN:
        return CommandCheck(
            command=command,
            assessment=assessment,
            is_blocked=False,
            outcome=Outcome.ALLOWED_WITH_WARNING,
            message=(
                f"Command is potentially dangerous, but fatigue ({ctx.fatigue.level}%) "
                f"is below threshold. Proceed with caution."
            ),
            fatigue=ctx.fatigue,
        )

    return CommandCheck(
        command=command,
        assessment=assessment,
        is_blocked=False,
        outcome=Outcome.ALLOWED,
        message="Command is safe.",
        fatigue=ctx.fatigue,
    )


def _run(ctx: InterlockContext, command: str, success: Outcome, success_message: str) -> CommandOutcome:
    result = ctx.runner(command, ctx.config.command_timeout_seconds)
    if result.succeeded:
        return CommandOutcome(
            command=command,
            outcome=success,
            message=success_message,
            fatigue=ctx.fatigue,
            mode=ctx.mode,
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exit_code,
        )

    reason = result.error or f"exit code {result.exit_code}"
    return CommandOutcome(
        command=command,
        outcome=Outcome.FAILED,
        message=f"Command failed: {reason}",
        fatigue=ctx.fatigue,
        mode=ctx.mode,
        stdout=result.stdout,
        stderr=result.stderr,
        exit_code=result.exit_code,
    )


def execute_command(
    ctx: InterlockContext,
    command: str,
    override_reason: Optional[str] = None,
) -> CommandOutcome:
    """Run (or simulate) a command behind the interlock."""
    assessment = ctx.classifier.assess(command)
    verdict = decide_command(
        assessment.is_dangerous, ctx.fatigue.level, ctx.config.fatigue_threshold, override_reason,
    )
    fatigue = ctx.fatigue

    if verdict is Verdict.OVERRIDE:
        if ctx.config.is_live:
            result = _run(ctx, command, Outcome.EXECUTED_OVERRIDE, "Command executed with safety override.")
        else:
            result = CommandOutcome(
                command=command,
                outcome=Outcome.SIMULATED_OVERRIDE,
                message=(
                    f"[DRY RUN] Override accepted.\n\n"
                    f"Command: `{command}`\n"
                    f"Reason: {override_reason}\n\n"
                    f"This command WOULD have been executed with override.\n"
                    f"(Execution skipped: dry_run mode)"
                ),
                fatigue=fatigue,
                mode=ctx.mode,
            )
        ctx.audit.record_override(
            f"Command: {command}",
            override_reason.strip(),
            result.status,
            extra={"fatigue": fatigue.to_dict(), "mode": ctx.mode},
        )
        return result

    if verdict is Verdict.BLOCK:
        ctx.audit.record_block(f"Command: {command}", Outcome.BLOCKED.value)
        return CommandOutcome(
            command=command,
            outcome=Outcome.BLOCKED,
            message=(
                f"INTERLOCK ENGAGED\n\n"
                f"High fatigue detected ({fatigue.level}%, {fatigue.category.value}).\n"
                f"You have been active for {fatigue.uptime_hours:.1f} hours.\n\n"
                f"Command `{_preview(command)}` is high-risk and has been blocked.\n\n"
                f"To proceed, you MUST reply with:\n"
                f"**{OVERRIDE_PHRASE}: [reason]**\n\n"
                f"Example: `{OVERRIDE_PHRASE}: P0 production incident`"
            ),
            fatigue=fatigue,
            mode=ctx.mode,
            override_required=True,
        )

    warning = verdict is Verdict.WARN
    caution = (
        f"\n\nCaution: this command matches a dangerous pattern "
        f"(fatigue {fatigue.level}% is below the {ctx.config.fatigue_threshold}% threshold)."
        if warning else ""
    )

    if not ctx.config.is_live:
        return CommandOutcome(
            command=command,
            outcome=Outcome.SIMULATED,
            message=(
                f"[DRY RUN] Safety check passed.\n\n"
                f"Command: `{command}`\n\n"
                f"This command WOULD have been executed.\n"
                f"(Execution skipped: dry_run mode active)\n\n"
                f"To enable real execution, set `execution_mode: live` in ~/.humsana/config.yaml"
                f"{caution}"
            ),
            fatigue=fatigue,
            mode=ctx.mode,
            warning=warning,
        )

    result = _run(ctx, command, Outcome.EXECUTED, f"Command executed successfully.{caution}")
    result.warning = warning
    return result


# =============================================================================
# File Write Interlock
# =============================================================================

def _write_result(
    ctx: InterlockContext,
    filepath: str,
    content: str,
    impact: ImpactReport,
    success: Outcome,
    success_message: str,
    warning: bool = False,
) -> WriteOutcome:
    written = ctx.files.write(filepath, content)
    if written["success"]:
        return WriteOutcome(
            filepath=filepath,
            outcome=success,
            message=success_message,
            fatigue=ctx.fatigue,
            mode=ctx.mode,
            impact=impact,
            warning=warning,
        )
    return WriteOutcome(
        filepath=filepath,
        outcome=Outcome.FAILED,
        message=f"Write failed: {written['error']}",
        fatigue=ctx.fatigue,
        mode=ctx.mode,
        impact=impact,
        warning=warning,
    )


def _blocked_write(
    ctx: InterlockContext,
    filepath: str,
    content: str,
    impact: ImpactReport,
    critical: bool,
) -> WriteOutcome:
    fatigue = ctx.fatigue
    try:
        review_path: Optional[str] = ctx.audit.snapshot_for_review(filepath, content)
    except OSError as e:
        logger.warning("Could not save review snapshot for %s: %s", filepath, e)
        review_path = None

    if critical:
        headline = "INTERLOCK ENGAGED: High-Risk AI Edit Blocked"
        detail = (
            f"You are critically fatigued ({fatigue.level}%) and this AI change deletes "
            f"{impact.lines_removed} lines ({impact.percentage_removed}% of the file).\n\n"
            f"**You are unlikely to review this carefully.**"
        )
    else:
        headline = "INTERLOCK ENGAGED: AI Rewrite Blocked"
        detail = (
            f"Fatigue: {fatigue.level}% ({fatigue.category.value})\n"
            f"Lines removed: {impact.lines_removed}\n\n"
            f"This AI change modifies significant code while you're fatigued."
        )

    if review_path:
        saved = f"The proposed change has been saved to:\n`{review_path}`"
        outcome = Outcome.BLOCKED_AND_SAVED_FOR_REVIEW
    else:
        saved = "The proposed change could not be saved for review."
        outcome = Outcome.BLOCKED

    ctx.audit.record_block(f"Write: {filepath} | Removed: {impact.lines_removed} lines", outcome.value)
    return WriteOutcome(
        filepath=filepath,
        outcome=outcome,
        message=(
            f"{headline}\n\n{detail}\n\n{saved}\n\n"
            f"To proceed, you MUST reply with:\n"
            f"**{OVERRIDE_PHRASE}: [reason]**"
        ),
        fatigue=fatigue,
        mode=ctx.mode,
        impact=impact,
        review_path=review_path,
        override_required=True,
    )


def write_file(
    ctx: InterlockContext,
    filepath: str,
    content: str,
    override_reason: Optional[str] = None,
) -> WriteOutcome:
    """Write (or simulate writing) a file behind the interlock."""
    fatigue = ctx.fatigue

    existing = ctx.files.read_if_exists(filepath)
    if not existing["success"]:
        return WriteOutcome(
            filepath=filepath,
            outcome=Outcome.FAILED,
            message=f"Could not read existing file: {existing['error']}",
            fatigue=fatigue,
            mode=ctx.mode,
        )

    impact = calculate_destructive_impact(existing["content"], content)
    verdict = decide_write(impact, fatigue.level, ctx.config, override_reason)

    if verdict is Verdict.OVERRIDE:
        if ctx.config.is_live:
            result = _write_result(
                ctx, filepath, content, impact,
                Outcome.EXECUTED_OVERRIDE, "File written with safety override.",
            )
        else:
            result = WriteOutcome(
                filepath=filepath,
                outcome=Outcome.SIMULATED_OVERRIDE,
                message=(
                    f"[DRY RUN] Write override accepted.\n\n"
                    f"File: `{filepath}`\n"
                    f"Lines removed: {impact.lines_removed}\n"
                    f"Reason: {override_reason}\n\n"
                    f"File WOULD have been written.\n"
                    f"(Write skipped: dry_run mode)"
                ),
                fatigue=fatigue,
                mode=ctx.mode,
                impact=impact,
            )
        ctx.audit.record_override(
            f"Write: {filepath} | Removed: {impact.lines_removed} lines",
            override_reason.strip(),
            result.status,
            extra={"fatigue": fatigue.to_dict(), "mode": ctx.mode, "impact": impact.to_dict()},
        )
        return result

    if verdict in (Verdict.HARD_BLOCK, Verdict.BLOCK):
        return _blocked_write(ctx, filepath, content, impact, critical=verdict is Verdict.HARD_BLOCK)

    if verdict is Verdict.WARN:
        if not ctx.config.is_live:
            return WriteOutcome(
                filepath=filepath,
                outcome=Outcome.SIMULATED,
                message=(
                    f"[DRY RUN] Warning: Large AI Edit\n\n"
                    f"File: `{filepath}`\n"
                    f"Lines removed: {impact.lines_removed}\n"
                    f"Fatigue: {fatigue.level}%\n\n"
                    f"This is a significant change. Please review carefully.\n\n"
                    f"File WOULD have been written.\n"
                    f"(Write skipped: dry_run mode)"
                ),
                fatigue=fatigue,
                mode=ctx.mode,
                impact=impact,
                warning=True,
            )
        return _write_result(
            ctx, filepath, content, impact,
            Outcome.ALLOWED_WITH_WARNING,
            (
                f"File written with warning.\n\n"
                f"Lines removed: {impact.lines_removed}\n"
                f"Fatigue: {fatigue.level}%\n\n"
                f"Please review this change carefully."
            ),
            warning=True,
        )

    if not ctx.config.is_live:
        summary = "New file" if impact.is_new_file else f"Lines removed: {impact.lines_removed}"
        return WriteOutcome(
            filepath=filepath,
            outcome=Outcome.SIMULATED,
            message=(
                f"[DRY RUN] Safety check passed.\n\n"
                f"File: `{filepath}`\n"
                f"{summary}\n\n"
                f"File WOULD have been written.\n"
                f"(Write skipped: dry_run mode)"
            ),
            fatigue=fatigue,
            mode=ctx.mode,
            impact=impact,
        )

    return _write_result(ctx, filepath, content, impact, Outcome.EXECUTED, "File written successfully.")
