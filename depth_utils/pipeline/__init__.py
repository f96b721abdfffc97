"""
Pipeline support modules for batch depth refinement
"""

from .config import RefineConfig
from .progress import ProgressPrinter, ProgressSummary, ViewStatus, summarize

__all__ = [
    'RefineConfig',
    'ProgressPrinter',
    'ProgressSummary',
    'ViewStatus',
    'summarize'
]
