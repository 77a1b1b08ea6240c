"""
LLM Vocab Board

Capture English words and sentences while reading, enrich them with an LLM,
and review them on a fixed spaced-repetition schedule.
"""

from . import text
from . import structured
from . import db
from . import enrichment
from . import capture
from . import scheduler
from . import notifier

__version__ = "0.1.0"
__all__ = ["text", "structured", "db", "enrichment", "capture", "scheduler", "notifier"]
