"""
Postprocessing passes for schedule repair.
"""

from .rematch_fix import fix_consecutive_rematches, find_consecutive_rematches

__all__ = [
    "fix_consecutive_rematches",
    "find_consecutive_rematches",
]
