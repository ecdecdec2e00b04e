"""
Per-resource import scripts and their orchestration (registry, import
windows, run lifecycle, executor).
"""

from engmetrics.scripts.base import ImportScript, ImportSession, RunContext

__all__ = ["ImportScript", "ImportSession", "RunContext"]
