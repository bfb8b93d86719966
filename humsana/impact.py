"""
Destructive Impact Analysis
===========================

Measures how much of a file's current content a proposed rewrite throws away.

The comparison is set-based: each side is reduced to the set of its
non-blank, whitespace-trimmed lines. A line is "removed" if its text no
longer appears anywhere in the new content and "added" if it did not appear
anywhere in the old content. Moving a line is free; editing a line in place
counts as one removed plus one added.

Files with many duplicated or reordered lines are measured imprecisely. That
is an accepted approximation; the thresholds built on top of it are coarse.
"""

from dataclasses import dataclass
from typing import Optional

from humsana.fatigue import round_half_up


@dataclass(frozen=True)
class ImpactReport:
    lines_removed: int
    lines_added: int
    total_old_lines: int
    total_new_lines: int
    percentage_removed: int
    is_new_file: bool = False

    def to_dict(self) -> dict:
        return {
            "lines_removed": self.lines_removed,
            "lines_added": self.lines_added,
            "total_old_lines": self.total_old_lines,
            "total_new_lines": self.total_new_lines,
            "percentage_removed": self.percentage_removed,
            "is_new_file": self.is_new_file,
        }


def _line_set(lines: list[str]) -> set[str]:
    return {stripped for stripped in (line.strip() for line in lines) if stripped}


def calculate_destructive_impact(old_content: Optional[str], new_content: str) -> ImpactReport:
    """
    Compare old and new content.

    Args:
        old_content: Current file content, or None if the file does not exist
        new_content: Proposed content

    Returns:
        ImpactReport; percentage_removed is 0 when there was no old content
    """
    is_new_file = old_content is None
    old_lines = (old_content or "").splitlines()
    new_lines = new_content.splitlines()

    old_set = _line_set(old_lines)
    new_set = _line_set(new_lines)

    lines_removed = len(old_set - new_set)
    lines_added = len(new_set - old_set)

    if old_lines:
        percentage_removed = round_half_up(lines_removed / len(old_lines) * 100)
    else:
        percentage_removed = 0

    return ImpactReport(
        lines_removed=lines_removed,
        lines_added=lines_added,
        total_old_lines=len(old_lines),
        total_new_lines=len(new_lines),
        percentage_removed=percentage_removed,
        is_new_file=is_new_file,
    )
