"""
Configuration layer - Settings and constants
"""

from src.config.settings import settings, RefinementSettings, PROJECT_ROOT
from src.config.constants import BUILTIN_FUNCTIONS, STRFTIME_TO_DATEPART, TYPE_FAMILIES

__all__ = [
    "settings",
    "RefinementSettings",
    "PROJECT_ROOT",
    "BUILTIN_FUNCTIONS",
    "STRFTIME_TO_DATEPART",
    "TYPE_FAMILIES",
]
