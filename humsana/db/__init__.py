"""
Database Package
================

Schema and connection helpers for the behavioral signal store.
"""

from humsana.db.models import Base, AnalysisResult
from humsana.db.connection import open_signal_store, signal_store_url
