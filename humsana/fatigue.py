"""
Fatigue Estimation
==================

Derives a 0-100 fatigue score from session stress and "cognitive uptime",
the time worked since the last real break.

Two inputs, summed rather than multiplied so either one alone can reach a
risky band:
- Uptime contributes up to 60 points, saturating at 12 hours.
- Stress (0.0 - 1.0) contributes up to 40 points.

The category describes uptime only and is reported next to the combined
score.
"""

import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

BREAK_THRESHOLD = timedelta(minutes=60)
UPTIME_SATURATION_HOURS = 12
MAX_UPTIME_FATIGUE = 60
MAX_STRESS_FATIGUE = 40


class FatigueCategory(Enum):
    """Uptime bands."""
    LOW = "low"              # < 4h
    MODERATE = "moderate"    # < 8h
    HIGH = "high"            # < 12h
    CRITICAL = "critical"    # >= 12h


@dataclass(frozen=True)
class FatigueReading:
    """A fatigue score plus the uptime it was derived from."""
    level: int
    category: FatigueCategory
    uptime_hours: float

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "category": self.category.value,
            "uptime_hours": round(self.uptime_hours, 1),
        }


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (round() uses banker's rounding)."""
    return int(math.floor(value + 0.5))


def calculate_fatigue(stress_level: float, uptime_hours: float) -> int:
    """Combine stress and uptime into a fatigue level in [0, 100]."""
    uptime_hours = max(0.0, uptime_hours)
    base = min(MAX_UPTIME_FATIGUE, (uptime_hours / UPTIME_SATURATION_HOURS) * MAX_UPTIME_FATIGUE)
    stress = stress_level * MAX_STRESS_FATIGUE
    return min(100, max(0, round_half_up(base + stress)))


def categorize_uptime(uptime_hours: float) -> FatigueCategory:
    if uptime_hours < 4:
        return FatigueCategory.LOW
    if uptime_hours < 8:
        return FatigueCategory.MODERATE
    if uptime_hours < 12:
        return FatigueCategory.HIGH
    return FatigueCategory.CRITICAL


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 heartbeat timestamp. Naive values are taken as UTC."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def compute_uptime_hours(heartbeats: Sequence[datetime], now: datetime) -> float:
    """
    Hours since the last break.

    Walks the heartbeats from newest to oldest; the first gap of at least
    BREAK_THRESHOLD ends the search and uptime starts at the heartbeat right
    after that gap. Without a gap, uptime starts at the earliest heartbeat.
    """
    if not heartbeats:
        return 0.0

    session_start = heartbeats[0]
    for i in range(len(heartbeats) - 1, 0, -1):
        if heartbeats[i] - heartbeats[i - 1] >= BREAK_THRESHOLD:
            session_start = heartbeats[i]
            break

    return max(0.0, (now - session_start).total_seconds() / 3600)


def load_heartbeats(activity_path: Path) -> list[datetime]:
    """Read heartbeat timestamps from activity.json. Raises on malformed data."""
    data = json.loads(activity_path.read_text(encoding="utf-8"))
    entries = data.get("heartbeats") or []
    return [parse_timestamp(entry["timestamp"]) for entry in entries]


def read_cognitive_uptime(activity_path: Path, now: Optional[datetime] = None) -> float:
    """
    Uptime in hours from the heartbeat log.

    Fails open: a missing, unreadable, or malformed log counts as no uptime.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    if not activity_path.exists():
        return 0.0
    try:
        heartbeats = load_heartbeats(activity_path)
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
        logger.debug("Ignoring unreadable heartbeat log %s: %s", activity_path, e)
        return 0.0
    return compute_uptime_hours(heartbeats, now)


def estimate_fatigue(stress_level: float, uptime_hours: float) -> FatigueReading:
    """Build the full fatigue reading used by every interlock decision."""
    return FatigueReading(
        level=calculate_fatigue(stress_level, uptime_hours),
        category=categorize_uptime(uptime_hours),
        uptime_hours=max(0.0, uptime_hours),
    )
