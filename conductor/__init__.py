"""
Conductor - task decomposition and capability-aware scheduling.

Turns a structured project analysis into an ordered, dependency-safe stream
of worker assignments and keeps them valid as workers and tasks fail.
"""

__version__ = "0.1.0"
__author__ = "Conductor Team"

from conductor.core.pipeline import Conductor

__all__ = ["Conductor", "__version__"]
