"""Data objects shared by the weekly plan, the module library and the chat assistant.

Every type converts to and from the plain dicts stored in the document store.
``from_dict`` is forgiving (documents may be partial or written by older
clients), while ``WorkoutModule.parse`` is strict and is used for module data
produced by the chat assistant.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional


# ========== FIELD COERCION ==========

def _as_str(value: Any, default: str = "") -> str:
	if isinstance(value, str):
		return value
	# reps written as a bare number by older clients
	if isinstance(value, int) and not isinstance(value, bool):
		return str(value)
	return default


def _as_int(value: Any, default: int = 0) -> int:
	if isinstance(value, bool):
		return default
	if isinstance(value, int):
		return value
	if isinstance(value, float) and value.is_integer():
		return int(value)
	return default


def _as_float(value: Any, default: float = 0.0) -> float:
	if isinstance(value, bool):
		return default
	if isinstance(value, (int, float)):
		return float(value)
	return default


def _as_bool(value: Any, default: bool = False) -> bool:
	return value if isinstance(value, bool) else default


def parse_day(value: Any) -> Optional[date]:
	"""Read a stored day: ISO date/datetime strings, date or datetime objects."""
	if isinstance(value, datetime):
		return value.date()
	if isinstance(value, date):
		return value
	if isinstance(value, str) and len(value) >= 10:
		try:
			return date.fromisoformat(value[:10])
		except ValueError:
			return None
	return None


# ========== WORKOUT DATA ==========

@dataclass
class Exercise:
	name: str
	sets: int
	reps: str
	is_completed: bool = False

	def to_dict(self) -> Dict[str, Any]:
		return {
			"name": self.name,
			"sets": self.sets,
			"reps": self.reps,
			"isCompleted": self.is_completed,
		}

	def to_library_dict(self) -> Dict[str, Any]:
		"""Library documents do not carry completion state."""
		return {"name": self.name, "sets": self.sets, "reps": self.reps}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "Exercise":
		return cls(
			name=_as_str(data.get("name")),
			sets=_as_int(data.get("sets")),
			reps=_as_str(data.get("reps")),
			is_completed=_as_bool(data.get("isCompleted")),
		)

	def describe(self) -> str:
		if self.sets > 0:
			return f"{self.name} — {self.sets} sets of {self.reps}"
		return f"{self.name} — {self.reps}"


@dataclass
class WorkoutModule:
	title: str
	exercises: List[Exercise] = field(default_factory=list)
	notes: Optional[str] = None

	def to_dict(self) -> Dict[str, Any]:
		return {
			"title": self.title,
			"notes": self.notes or "",
			"exercises": [ex.to_dict() for ex in self.exercises],
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "WorkoutModule":
		raw_exercises = data.get("exercises")
		if not isinstance(raw_exercises, list):
			raw_exercises = []
		notes = data.get("notes")
		return cls(
			title=_as_str(data.get("title")),
			exercises=[Exercise.from_dict(ex) for ex in raw_exercises if isinstance(ex, dict)],
			notes=notes if isinstance(notes, str) else None,
		)

	@classmethod
	def parse(cls, data: Any) -> "WorkoutModule":
		"""Strictly decode a module authored by the chat assistant."""
		if not isinstance(data, dict):
			raise ValueError("module must be an object")
		title = data.get("title")
		raw_exercises = data.get("exercises")
		if not isinstance(title, str) or not isinstance(raw_exercises, list):
			raise ValueError("module requires a title and an exercises list")
		exercises = []
		for ex in raw_exercises:
			if not isinstance(ex, dict):
				raise ValueError("exercise must be an object")
			name, sets, reps = ex.get("name"), ex.get("sets"), ex.get("reps")
			if not isinstance(name, str) or isinstance(sets, bool) or not isinstance(sets, int):
				raise ValueError(f"invalid exercise: {ex!r}")
			if isinstance(reps, (int, float)) and not isinstance(reps, bool):
				reps = str(reps)
			if not isinstance(reps, str):
				raise ValueError(f"invalid reps for {name!r}")
			exercises.append(Exercise(name=name, sets=sets, reps=reps))
		notes = data.get("notes")
		return cls(title=title, exercises=exercises, notes=notes if isinstance(notes, str) else None)

	def fresh_copy(self) -> "WorkoutModule":
		"""Same module with every exercise unchecked."""
		return WorkoutModule(
			title=self.title,
			exercises=[Exercise(ex.name, ex.sets, ex.reps) for ex in self.exercises],
			notes=self.notes,
		)

	@property
	def is_complete(self) -> bool:
		return all(ex.is_completed for ex in self.exercises)


@dataclass
class SavedModule(WorkoutModule):
	"""A module stored in the user's library under ``id``."""
	id: str = field(default_factory=lambda: str(uuid.uuid4()))

	def to_library_dict(self) -> Dict[str, Any]:
		return {
			"title": self.title,
			"exercises": [ex.to_library_dict() for ex in self.exercises],
			"notes": self.notes or "",
		}

	def to_api_dict(self) -> Dict[str, Any]:
		data = self.to_library_dict()
		data["id"] = self.id
		return data

	def as_module(self) -> WorkoutModule:
		return WorkoutModule(title=self.title, exercises=list(self.exercises), notes=self.notes)


@dataclass
class DayPlan:
	day_name: str
	date: date
	assigned_module: Optional[WorkoutModule] = None
	reward_claimed: bool = False

	def to_dict(self) -> Dict[str, Any]:
		data: Dict[str, Any] = {
			"dayName": self.day_name,
			"date": self.date.isoformat(),
			"rewardClaimed": self.reward_claimed,
		}
		if self.assigned_module is not None:
			data["assignedModule"] = self.assigned_module.to_dict()
		return data

	@classmethod
	def from_dict(cls, data: Dict[str, Any], today: Optional[date] = None) -> "DayPlan":
		module_data = data.get("assignedModule")
		return cls(
			day_name=_as_str(data.get("dayName")),
			date=parse_day(data.get("date")) or today or date.today(),
			assigned_module=WorkoutModule.from_dict(module_data) if isinstance(module_data, dict) else None,
			reward_claimed=_as_bool(data.get("rewardClaimed")),
		)


# ========== USER PROFILE ==========

class _ValueEnum(str, Enum):
	@classmethod
	def from_value(cls, raw: Any, default: Optional["_ValueEnum"] = None):
		for member in cls:
			if member.value == raw:
				return member
		return default


class Goal(_ValueEnum):
	TONE_UP = "Tone up"
	LOSE_WEIGHT = "Lose weight"
	BUILD_MUSCLE = "Build Muscle"
	STRENGTH_TRAINING = "Strength Training"
	IMPROVED_ENDURANCE = "Improved Endurance"


class Equipment(_ValueEnum):
	HOME_GYM_FULL = "At Home Gym (Dumbells and Yoga Mat)"
	HOME_GYM_MAT_ONLY = "At Home Gym (Yoga Mat)"
	GYM_ACCESS = "Gym Access"
	NO_EQUIPMENT = "No Equipment"


class Injury(_ValueEnum):
	KNEE_INJURY = "Knee Injury"
	SHOULDER_INJURY = "Shoulder Injury"
	LOWER_BACK_PAIN = "Lower Back Pain"
	ASTHMA = "Asthma/Respiratory Conditions"
	ARTHRITIS = "Arthritis/Joint Pain"


class ExperienceLevel(_ValueEnum):
	BEGINNER = "Beginner"
	INTERMEDIATE = "Intermediate"
	ADVANCED = "Advanced"


@dataclass
class UserMetrics:
	goal: Goal
	height_in_inches: int
	weight: float
	equipment: Equipment
	injuries: List[Injury]
	experience: ExperienceLevel

	def to_dict(self) -> Dict[str, Any]:
		return {
			"goal": self.goal.value,
			"heightInInches": self.height_in_inches,
			"weight": self.weight,
			"equipment": self.equipment.value,
			"injuries": [injury.value for injury in self.injuries],
			"experienceLevel": self.experience.value,
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "UserMetrics":
		raw_injuries = data.get("injuries")
		if not isinstance(raw_injuries, list):
			raw_injuries = []
		injuries = [Injury.from_value(raw) for raw in raw_injuries]
		return cls(
			goal=Goal.from_value(data.get("goal"), Goal.LOSE_WEIGHT),
			height_in_inches=_as_int(data.get("heightInInches")),
			weight=_as_float(data.get("weight")),
			equipment=Equipment.from_value(data.get("equipment"), Equipment.NO_EQUIPMENT),
			injuries=[injury for injury in injuries if injury is not None],
			experience=ExperienceLevel.from_value(data.get("experienceLevel"), ExperienceLevel.BEGINNER),
		)
