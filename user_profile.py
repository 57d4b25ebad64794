"""User profile document (``users/<uid>``): names, email and fitness metrics."""
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from document_store import DocumentStore
from models import Equipment, ExperienceLevel, Goal, Injury, UserMetrics

# Boolean toggles sent by the sign-up and settings forms
INJURY_TOGGLES = {
	"kneeInjury": Injury.KNEE_INJURY,
	"shoulderInjury": Injury.SHOULDER_INJURY,
	"lowerBackPain": Injury.LOWER_BACK_PAIN,
	"asthma": Injury.ASTHMA,
	"arthritis": Injury.ARTHRITIS,
}


class ProfileError(Exception):
	status_code = 400

	def __init__(self, message: str):
		super().__init__(message)
		self.message = message


def user_path(uid: str) -> str:
	return f"users/{uid}"


def split_height(height_in_inches: int) -> Tuple[int, int]:
	return height_in_inches // 12, height_in_inches % 12


def _parse_int(value: Any) -> Optional[int]:
	if isinstance(value, bool):
		return None
	if isinstance(value, int):
		return value
	if isinstance(value, str) and value.strip().isdigit():
		return int(value.strip())
	return None


def _parse_float(value: Any) -> Optional[float]:
	if isinstance(value, bool):
		return None
	if isinstance(value, (int, float)):
		return float(value)
	if isinstance(value, str):
		try:
			return float(value.strip())
		except ValueError:
			return None
	return None


def parse_metrics_form(payload: Dict[str, Any]) -> UserMetrics:
	"""Validate the sign-up/settings form and build ``UserMetrics``.

	Height arrives as feet and inches, weight in pounds. Injuries may be a list
	of stored values or the individual boolean toggles.
	"""
	feet = _parse_int(payload.get("heightFeet"))
	inches = _parse_int(payload.get("heightInches"))
	weight = _parse_float(payload.get("weight"))
	if feet is None or inches is None or weight is None or weight <= 0:
		raise ProfileError("Please enter valid height and weight values.")

	goal = Goal.from_value(payload.get("goal"), Goal.TONE_UP)
	equipment = Equipment.from_value(payload.get("equipment"), Equipment.HOME_GYM_FULL)
	experience = ExperienceLevel.from_value(payload.get("experienceLevel"), ExperienceLevel.BEGINNER)

	raw_injuries = payload.get("injuries")
	if isinstance(raw_injuries, list):
		injuries = []
		for raw in raw_injuries:
			injury = Injury.from_value(raw)
			if injury is None:
				raise ProfileError(f"Unknown injury: {raw}")
			if injury not in injuries:
				injuries.append(injury)
	else:
		injuries = [injury for key, injury in INJURY_TOGGLES.items() if payload.get(key) is True]

	return UserMetrics(
		goal=goal,
		height_in_inches=feet * 12 + inches,
		weight=weight,
		equipment=equipment,
		injuries=injuries,
		experience=experience,
	)


class ProfileStore:
	def __init__(self, store: DocumentStore):
		self.store = store

	def create_profile(self, uid: str, first_name: str, last_name: str, email: str, metrics: UserMetrics) -> None:
		data = {"firstName": first_name, "lastName": last_name, "email": email}
		data.update(metrics.to_dict())
		self.store.set(user_path(uid), data)
		print(f"[INFO] Profile created for user {uid}")

	def load_profile(self, uid: str) -> Optional[Dict[str, Any]]:
		return self.store.get(user_path(uid))

	def load_metrics(self, uid: str) -> Optional[UserMetrics]:
		data = self.load_profile(uid)
		if data is None:
			print(f"[WARNING] No profile document for user {uid}")
			return None
		return UserMetrics.from_dict(data)

	def update_metrics(self, uid: str, metrics: UserMetrics) -> None:
		self.store.update(user_path(uid), metrics.to_dict())
		print(f"[INFO] Profile metrics updated for user {uid}")

	def profile_response(self, uid: str) -> Optional[Dict[str, Any]]:
		"""Profile in the shape the settings form edits."""
		data = self.load_profile(uid)
		if data is None:
			return None
		metrics = UserMetrics.from_dict(data)
		feet, inches = split_height(metrics.height_in_inches)
		response = {
			"firstName": data.get("firstName", ""),
			"lastName": data.get("lastName", ""),
			"email": data.get("email", ""),
			"heightFeet": feet,
			"heightInches": inches,
			"avatarId": data.get("avatarId"),
		}
		response.update(metrics.to_dict())
		return response
