"""Pytest configuration and shared fixtures."""

import os
from collections.abc import Callable, Generator
from typing import Any

import pytest

# Set test environment
os.environ.setdefault("CONDUCTOR_LOG_LEVEL", "DEBUG")


@pytest.fixture
def mock_settings() -> Generator:
    """Clear the cached settings around a test."""
    from conductor.core.config import clear_settings_cache

    clear_settings_cache()

    yield

    clear_settings_cache()


@pytest.fixture
def settings():
    """Provide default settings, ignoring any local .env file."""
    from conductor.core.config import Settings

    return Settings(_env_file=None)


@pytest.fixture
def make_settings() -> Callable:
    """Build settings with overrides."""
    from conductor.core.config import Settings

    def _make(**overrides: Any) -> Settings:
        return Settings(_env_file=None, **overrides)

    return _make


@pytest.fixture
def sample_document() -> dict[str, Any]:
    """Provide a valid project analysis document."""
    return {
        "projectType": "webapp",
        "complexity": "moderate",
        "estimatedDuration": 6,
        "tasks": [
            {
                "id": "schema",
                "description": "Design the database schema for users and todos",
                "type": "database",
                "estimatedMinutes": 30,
            },
            {
                "id": "api",
                "description": "Implement the REST API for todos",
                "type": "backend",
                "estimatedMinutes": 60,
                "dependsOn": ["schema"],
                "priority": "high",
            },
            {
                "id": "ui",
                "description": "Build the todo list UI",
                "type": "frontend",
                "estimatedMinutes": 45,
                "dependsOn": ["api"],
            },
            {
                "id": "tests",
                "description": "Write end-to-end tests",
                "type": "testing",
                "estimatedMinutes": 30,
                "dependsOn": ["api"],
            },
        ],
        "requiredAgents": ["backend-specialist", "frontend-specialist"],
        "parallelizable": [["ui", "tests"]],
    }


@pytest.fixture
def sample_workers() -> list:
    """Provide a small pool of workers."""
    from conductor.decomposition.models import Worker

    return [
        Worker(
            id="frontend-1",
            name="Frontend Dev",
            type="frontend",
            capabilities=["React", "CSS", "TypeScript", "UI/UX"],
            template_id="frontend-specialist",
        ),
        Worker(
            id="backend-1",
            name="Backend Dev",
            type="backend",
            capabilities=["Node.js", "API", "Database", "REST", "SQL", "TypeScript"],
            template_id="backend-specialist",
        ),
        Worker(
            id="qa-1",
            name="QA Engineer",
            type="testing",
            capabilities=["Testing", "Jest", "E2E", "QA"],
            specializations=["testing-specialist"],
        ),
    ]


@pytest.fixture
def make_task() -> Callable:
    """Build tasks with sensible defaults."""
    from conductor.decomposition.models import Task

    def _make(task_id: str, dependencies: list[str] | None = None, **kwargs: Any) -> Task:
        kwargs.setdefault("title", f"Task {task_id}")
        kwargs.setdefault("description", f"Do {task_id}")
        return Task(id=task_id, dependencies=dependencies or [], **kwargs)

    return _make


@pytest.fixture
def make_worker() -> Callable:
    """Build workers with sensible defaults."""
    from conductor.decomposition.models import Worker

    def _make(worker_id: str, capabilities: list[str] | None = None, **kwargs: Any) -> Worker:
        return Worker(id=worker_id, capabilities=capabilities or [], **kwargs)

    return _make


@pytest.fixture
def task_store():
    """Provide an empty in-memory task store."""
    from conductor.core.memory import InMemoryTaskStore

    return InMemoryTaskStore()


@pytest.fixture
def event_bus():
    """Provide an event bus."""
    from conductor.core.events import EventBus

    return EventBus()


@pytest.fixture
def recorder(event_bus):
    """Provide a recorder subscribed to every event on ``event_bus``."""
    from conductor.core.events import WILDCARD, EventRecorder

    events = EventRecorder()
    event_bus.subscribe(WILDCARD, events)
    return events


# Markers
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
