"""Tunable constants for the adaptive session engine."""
import os
from pathlib import Path

DEFAULT_DB_PATH = os.environ.get(
    "ADAPTIVE_TUTOR_DB", str(Path.home() / ".adaptive_tutor" / "tutor.db")
)
LOG_LEVEL = os.environ.get("ADAPTIVE_TUTOR_LOG_LEVEL", "WARNING")

# Difficulty levels
MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 3

SESSION_SIZE = 5
DIAGNOSTIC_SIZE = 3

# Disengagement detection (seconds)
IDLE_THRESHOLD_SECONDS = 10.0
DEFAULT_IDLE_THRESHOLD_SECONDS = 15.0
DETECTION_GRACE_SECONDS = 5.0

# Scoring
XP_PER_CORRECT = 5
ACCURACY_BONUS_XP = 10
ACCURACY_BONUS_THRESHOLD = 80
BADGE_ACCURACY_THRESHOLD = 70
BADGE_MASTERY_CEILING = 50
BADGE_XP_AWARD = 25
