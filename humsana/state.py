"""
User State
==========

Combines behavioral metrics and cognitive uptime into a single user-state
snapshot, with response-style recommendations for the assistant.

States are checked in priority order:
    critical_fatigue > stressed > focused > debugging > relaxed

Two degraded states report zero metrics:
    unknown - the daemon's signal store does not exist
    error   - the signal store exists but could not be read
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from humsana.config import HumsanaPaths
from humsana.fatigue import FatigueReading, estimate_fatigue, read_cognitive_uptime
from humsana.signals import BehavioralMetrics, read_behavioral_metrics

logger = logging.getLogger(__name__)

CRITICAL_FATIGUE_LEVEL = 85
HIGH_SIGNAL_LEVEL = 0.7


@dataclass(frozen=True)
class Recommendations:
    """How the assistant should pitch its replies."""
    style: str
    length: str
    ask_clarifying_questions: bool
    tone: str

    def to_dict(self) -> dict:
        return {
            "style": self.style,
            "length": self.length,
            "ask_clarifying_questions": self.ask_clarifying_questions,
            "tone": self.tone,
        }


NEUTRAL_RECOMMENDATIONS = Recommendations("helpful", "moderate", True, "friendly")

# state -> (label, recommendations)
STATE_PROFILES: dict[str, tuple[str, Recommendations]] = {
    "critical_fatigue": (
        "Critical Fatigue",
        Recommendations("minimal", "very_short", False, "suggest taking a break"),
    ),
    "stressed": (
        "Stressed",
        Recommendations("direct", "brief", False, "calm, supportive"),
    ),
    "focused": (
        "Deep Focus",
        Recommendations("direct", "concise", False, "efficient, don't interrupt flow"),
    ),
    "debugging": (
        "Debugging",
        Recommendations("code_first", "minimal", False, "just give the fix"),
    ),
    "relaxed": (
        "Relaxed",
        Recommendations("conversational", "flexible", True, "friendly, engaging"),
    ),
    "unknown": ("Daemon not running", NEUTRAL_RECOMMENDATIONS),
    "error": ("Error reading state", NEUTRAL_RECOMMENDATIONS),
}


@dataclass
class UserState:
    """Snapshot of the user's behavioral state for one request."""
    state: str
    state_label: str
    metrics: BehavioralMetrics
    fatigue: FatigueReading
    recommendations: Recommendations = field(default=NEUTRAL_RECOMMENDATIONS)

    def to_dict(self) -> dict:
        return {
            "state": self.state,
            "state_label": self.state_label,
            "metrics": {
                "stress_level": round(self.metrics.stress_level, 2),
                "focus_level": round(self.metrics.focus_level, 2),
                "cognitive_load": round(self.metrics.cognitive_load, 2),
                "typing_wpm": round(self.metrics.typing_wpm),
                "fatigue_level": self.fatigue.level,
                "uptime_hours": round(self.fatigue.uptime_hours, 1),
            },
            "fatigue": self.fatigue.to_dict(),
            "recommendations": self.recommendations.to_dict(),
        }


def classify_state(metrics: BehavioralMetrics, fatigue: FatigueReading) -> str:
    """Pick the dominant state for the given metrics."""
    if fatigue.level > CRITICAL_FATIGUE_LEVEL:
        return "critical_fatigue"
    if metrics.stress_level > HIGH_SIGNAL_LEVEL:
        return "stressed"
    if metrics.focus_level > HIGH_SIGNAL_LEVEL:
        return "focused"
    if metrics.cognitive_load > HIGH_SIGNAL_LEVEL:
        return "debugging"
    return "relaxed"


def build_user_state(state: str, metrics: BehavioralMetrics, fatigue: FatigueReading) -> UserState:
    label, recommendations = STATE_PROFILES[state]
    return UserState(
        state=state,
        state_label=label,
        metrics=metrics,
        fatigue=fatigue,
        recommendations=recommendations,
    )


async def load_user_state(paths: HumsanaPaths, now: Optional[datetime] = None) -> UserState:
    """
    Read the signal store and heartbeat log and classify the user's state.

    Never raises for missing or broken data sources; a degraded state with
    zero stress is returned instead so the interlock keeps working.
    """
    uptime = read_cognitive_uptime(paths.activity_file, now=now)

    if not paths.signals_db.exists():
        return build_user_state("unknown", BehavioralMetrics(), estimate_fatigue(0.0, uptime))

    try:
        metrics = await read_behavioral_metrics(paths.signals_db, now=now)
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Could not read signal store %s: %s", paths.signals_db, e)
        return build_user_state("error", BehavioralMetrics(), estimate_fatigue(0.0, uptime))

    fatigue = estimate_fatigue(metrics.stress_level, uptime)
    return build_user_state(classify_state(metrics, fatigue), metrics, fatigue)
