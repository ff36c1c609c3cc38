"""
LLM Song Cards

Learn Japanese from song lyrics: AI-annotated lines (readings, translations)
and vocabulary cards with a simple new / learning / mastered tracker.
"""

from . import db
from . import annotator
from . import cards
from . import study
from . import structured
from . import plugin

__version__ = "0.1.0"
__all__ = ["db", "annotator", "cards", "study", "structured", "plugin"]
