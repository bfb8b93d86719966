"""
Behavioral Signal Reader
========================

Reads the trailing-window averages of the daemon's behavioral metrics from
the signal store.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import func, select

from humsana.db.connection import open_signal_store
from humsana.db.models import AnalysisResult

SIGNAL_WINDOW_MINUTES = 5


@dataclass(frozen=True)
class BehavioralMetrics:
    """Averaged behavioral metrics. All zero when no samples are available."""
    stress_level: float = 0.0
    focus_level: float = 0.0
    cognitive_load: float = 0.0
    typing_wpm: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


async def read_behavioral_metrics(
    db_path: Path,
    window_minutes: int = SIGNAL_WINDOW_MINUTES,
    now: Optional[datetime] = None,
) -> BehavioralMetrics:
    """
    Average the samples recorded in the last `window_minutes`.

    The caller decides how to treat a missing database; database errors
    propagate so the caller can report an "error" state.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    cutoff = now.astimezone(timezone.utc).replace(tzinfo=None) - timedelta(minutes=window_minutes)

    query = select(
        func.avg(AnalysisResult.stress_level),
        func.avg(AnalysisResult.focus_level),
        func.avg(AnalysisResult.cognitive_load),
        func.avg(AnalysisResult.typing_wpm),
    ).where(AnalysisResult.timestamp > cutoff)

    async with open_signal_store(db_path) as session:
        result = await session.execute(query)
        stress, focus, load, wpm = result.one()

    return BehavioralMetrics(
        stress_level=float(stress or 0.0),
        focus_level=float(focus or 0.0),
        cognitive_load=float(load or 0.0),
        typing_wpm=float(wpm or 0.0),
    )
