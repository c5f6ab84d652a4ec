"""Per-plant memory: the thought signature and the policy that rewrites it.

Each plant carries exactly one signature string. After every successful
analysis the engine proposes a new one (it was shown the old one as input),
and a compactor decides what is kept. See ``compactor.py``.
"""

from plantops.memory.compactor import MemoryCompactor, ReplaceCompactor

__all__ = ["MemoryCompactor", "ReplaceCompactor"]
