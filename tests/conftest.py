import os
import sys
from datetime import date

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from document_store import SqliteDocumentStore
from models import Exercise, WorkoutModule
from weekly_plan import WeeklyPlanService
from workout_library import WorkoutLibrary

# A Wednesday; its ISO week starts on Monday 2025-05-05
TODAY = date(2025, 5, 7)
UID = "user-1"


@pytest.fixture
def store(tmp_path):
    return SqliteDocumentStore(tmp_path / "documents.db")


@pytest.fixture
def library(store):
    return WorkoutLibrary(store)


@pytest.fixture
def chest_day():
    return WorkoutModule(
        title="Chest Day",
        exercises=[
            Exercise("Push-ups", 3, "12"),
            Exercise("Chest Dips", 3, "10"),
            Exercise("Plank", 0, "45 sec"),
        ],
        notes="Use controlled form",
    )


@pytest.fixture
def rewards():
    """Records reward hook calls."""
    calls = []

    def hook(uid):
        calls.append(uid)
        return "55255882"

    hook.calls = calls
    return hook


@pytest.fixture
def service(store, library, rewards):
    return WeeklyPlanService(store, library, reward_hook=rewards)
