"""Core module - configuration, logging, events, errors and collaborators."""

from conductor.core.config import Settings, clear_settings_cache, get_settings
from conductor.core.events import EventBus, EventRecorder
from conductor.core.exceptions import (
    AssignmentError,
    ConductorError,
    ConductorTimeoutError,
    DependencyError,
    ReassignmentExhausted,
    TaskCreationError,
    ValidationError,
)

__all__ = [
    "AssignmentError",
    "ConductorError",
    "ConductorTimeoutError",
    "DependencyError",
    "EventBus",
    "EventRecorder",
    "ReassignmentExhausted",
    "Settings",
    "TaskCreationError",
    "ValidationError",
    "clear_settings_cache",
    "get_settings",
]
