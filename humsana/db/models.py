"""
Database Models for the Signal Store
====================================

SQLAlchemy models for the SQLite database written by the Humsana daemon.
Humsana itself only reads these tables.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    pass


class AnalysisResult(Base):
    """
    One behavioral analysis sample produced by the daemon.

    Timestamps are naive UTC, as written by SQLite's datetime('now').
    """
    __tablename__ = "analysis_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), index=True)

    stress_level: Mapped[Optional[float]] = mapped_column(Float, nullable=True)     # 0.0 - 1.0
    focus_level: Mapped[Optional[float]] = mapped_column(Float, nullable=True)      # 0.0 - 1.0
    cognitive_load: Mapped[Optional[float]] = mapped_column(Float, nullable=True)   # 0.0 - 1.0
    typing_wpm: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
