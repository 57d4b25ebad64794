"""Tests for the saved workout module library."""

from conftest import UID
from models import Exercise, WorkoutModule
from workout_library import modules_collection


class TestWorkoutLibrary:
    def test_save_and_list(self, library, store, chest_day):
        chest_day.exercises[0].is_completed = True
        saved = library.save_module(UID, chest_day)

        stored = store.get(f"users/{UID}/workoutModules/{saved.id}")
        assert stored["title"] == "Chest Day"
        assert stored["notes"] == "Use controlled form"
        assert "isCompleted" not in stored["exercises"][0]

        modules = library.list_modules(UID)
        assert [m.id for m in modules] == [saved.id]
        assert not any(ex.is_completed for ex in modules[0].exercises)

    def test_each_save_gets_new_id(self, library, chest_day):
        first = library.save_module(UID, chest_day)
        second = library.save_module(UID, chest_day)
        assert first.id != second.id
        assert len(library.list_modules(UID)) == 2

    def test_malformed_documents_are_skipped(self, library, store, chest_day):
        library.save_module(UID, chest_day)
        store.set(f"{modules_collection(UID)}/broken", {"title": 7, "exercises": []})
        store.set(f"{modules_collection(UID)}/no-exercises", {"title": "Legs"})
        assert [m.title for m in library.list_modules(UID)] == ["Chest Day"]
        assert library.get_module(UID, "broken") is None

    def test_get_module(self, library, chest_day):
        saved = library.save_module(UID, chest_day)
        assert library.get_module(UID, saved.id).title == "Chest Day"
        assert library.get_module(UID, "missing") is None
        assert library.get_module(UID, "") is None
        assert library.get_module(UID, "a/b") is None

    def test_libraries_are_per_user(self, library, chest_day):
        library.save_module(UID, chest_day)
        assert library.list_modules("someone-else") == []

    def test_delete_module(self, library, chest_day):
        saved = library.save_module(UID, chest_day)
        assert library.delete_module(UID, saved.id) is True
        assert library.delete_module(UID, saved.id) is False
        assert library.list_modules(UID) == []

    def test_delete_by_title(self, library, chest_day):
        library.save_module(UID, chest_day)
        library.save_module(UID, chest_day)
        legs = library.save_module(UID, WorkoutModule("Leg Day", [Exercise("Squat", 3, "10")]))
        assert library.delete_by_title(UID, "Chest Day") == 2
        assert [m.id for m in library.list_modules(UID)] == [legs.id]
        assert library.delete_by_title(UID, "Chest Day") == 0

    def test_saved_titles(self, library, chest_day):
        library.save_module(UID, chest_day)
        library.save_module(UID, WorkoutModule("Leg Day"))
        assert library.saved_titles(UID) == {"Chest Day", "Leg Day"}
