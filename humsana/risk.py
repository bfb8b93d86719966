"""
Risk Classification Module
==========================

Decides whether a shell command matches a dangerous-operation pattern.

The pattern set is the built-in defaults (see humsana.config) merged with the
user's configured deny patterns. Matching is a case-insensitive substring
check: cheap and predictable, and a heuristic rather than a security
boundary. Obfuscated commands will get past it.
"""

from dataclasses import dataclass, field
from typing import Iterable

from humsana.config import InterlockConfig


@dataclass
class RiskAssessment:
    """Risk assessment for one command."""
    command: str
    is_dangerous: bool
    matched_patterns: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "command": self.command,
            "is_dangerous": self.is_dangerous,
            "matched_patterns": list(self.matched_patterns),
        }


class RiskClassifier:
    """
    Classifies commands against a merged, ordered pattern set.

    Patterns are de-duplicated case-insensitively, keeping first occurrence.
    """

    def __init__(self, patterns: Iterable[str]):
        self.patterns: list[str] = []
        seen: set[str] = set()
        for pattern in patterns:
            lowered = pattern.lower()
            if lowered and lowered not in seen:
                seen.add(lowered)
                self.patterns.append(pattern)

    @classmethod
    def from_config(cls, config: InterlockConfig) -> "RiskClassifier":
        """Built-in + configured dangerous commands, then deny patterns."""
        return cls([*config.dangerous_commands, *config.deny_patterns])

    def match_patterns(self, command: str) -> list[str]:
        """All patterns contained in the command, in pattern order."""
        lowered = command.lower()
        return [p for p in self.patterns if p.lower() in lowered]

    def is_dangerous(self, command: str) -> bool:
        lowered = command.lower()
        return any(p.lower() in lowered for p in self.patterns)

    def assess(self, command: str) -> RiskAssessment:
        matched = self.match_patterns(command)
        return RiskAssessment(
            command=command,
            is_dangerous=bool(matched),
            matched_patterns=matched,
        )

    def format_assessment(self, assessment: RiskAssessment) -> str:
        """Format an assessment for display."""
        lines = [
            f"Command: {assessment.command}",
            f"  Dangerous: {'YES' if assessment.is_dangerous else 'no'}",
        ]
        if assessment.matched_patterns:
            lines.append("  Matched:")
            for pattern in assessment.matched_patterns:
                lines.append(f"    - {pattern}")
        return "\n".join(lines)

