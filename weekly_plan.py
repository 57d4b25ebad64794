"""Weekly workout plan: week generation, reconciliation with the stored
document, module assignment, exercise completion and reward claims.

A week lives at ``users/<uid>/weeklyWorkoutPlans/<week id>`` as
``{"dayPlans": [...7 day entries...]}``. The week id is derived from the
Monday of the ISO week (``week-2025-05-05``), so every device computes the
same key for the same week.

Rules enforced here:

- a week document is generated only when none can be read, never on top of
  an existing one;
- exercises can be checked off only on the current calendar day;
- ``rewardClaimed`` only ever goes from false to true;
- a day whose reward was claimed today can no longer be reassigned or cleared.

Day edits are read-modify-write on the stored document: the matching day
entry is decoded, changed and written back into the raw list, so fields this
service does not know about survive the round trip.
"""
from __future__ import annotations

import traceback
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from document_store import DocumentStore
from models import DayPlan, parse_day
from workout_library import WorkoutLibrary

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

RewardHook = Callable[[str], Optional[str]]


# ========== ERRORS ==========

class PlanError(Exception):
	status_code = 400

	def __init__(self, message: str):
		super().__init__(message)
		self.message = message


class DayNotFoundError(PlanError):
	status_code = 404


class WorkoutModuleNotFound(PlanError):
	status_code = 404


class ExerciseNotFoundError(PlanError):
	status_code = 404


class NoModuleAssignedError(PlanError):
	status_code = 409


class NotTodayError(PlanError):
	status_code = 403


class RewardLockedError(PlanError):
	status_code = 403


class RewardNotEarnedError(PlanError):
	status_code = 409


# ========== WEEK HELPERS ==========

def week_start(day: date) -> date:
	"""Monday of the ISO week containing ``day``."""
	return day - timedelta(days=day.weekday())


def week_id(day: date) -> str:
	return f"week-{week_start(day).isoformat()}"


def generate_week(today: date) -> List[DayPlan]:
	start = week_start(today)
	return [DayPlan(day_name=DAY_NAMES[offset], date=start + timedelta(days=offset)) for offset in range(7)]


def _medium_date(day: date) -> str:
	return f"{day:%b} {day.day}, {day.year}"


def week_date_range(day_plans: List[DayPlan]) -> str:
	"""e.g. ``Apr 28, 2025 – May 4, 2025``."""
	if not day_plans:
		return ""
	return f"{_medium_date(day_plans[0].date)} – {_medium_date(day_plans[-1].date)}"


def day_progress(day_plan: DayPlan) -> float:
	module = day_plan.assigned_module
	if module is None or not module.exercises:
		return 0.0
	done = sum(1 for ex in module.exercises if ex.is_completed)
	return done / len(module.exercises)


def is_locked(day_plan: DayPlan, today: date) -> bool:
	return day_plan.date == today and day_plan.reward_claimed


@dataclass
class WeekView:
	week_id: str
	day_plans: List[DayPlan]
	generated: bool = False

	def to_dict(self, today: date) -> Dict[str, Any]:
		days = []
		for plan in self.day_plans:
			entry = plan.to_dict()
			entry["isToday"] = plan.date == today
			entry["locked"] = is_locked(plan, today)
			entry["progress"] = day_progress(plan)
			days.append(entry)
		return {
			"weekId": self.week_id,
			"dateRange": week_date_range(self.day_plans),
			"generated": self.generated,
			"dayPlans": days,
		}


@dataclass
class ClaimResult:
	day_plan: DayPlan
	newly_claimed: bool
	unlocked_asset: Optional[str] = None


# ========== SERVICE ==========

class WeeklyPlanService:
	def __init__(self, store: DocumentStore, library: WorkoutLibrary, reward_hook: Optional[RewardHook] = None):
		self.store = store
		self.library = library
		self.reward_hook = reward_hook

	@staticmethod
	def week_path(uid: str, wid: str) -> str:
		return f"users/{uid}/weeklyWorkoutPlans/{wid}"

	@staticmethod
	def sync_path(uid: str) -> str:
		return f"users/{uid}/syncState/weeklyPlan"

	def _read_raw_week(self, uid: str, wid: str) -> Optional[Dict[str, Any]]:
		data = self.store.get(self.week_path(uid, wid))
		if not isinstance(data, dict) or not isinstance(data.get("dayPlans"), list):
			return None
		return data

	def load_week(self, uid: str, wid: str, today: Optional[date] = None) -> Optional[List[DayPlan]]:
		"""Decoded day plans, or None when the week has no readable document."""
		data = self._read_raw_week(uid, wid)
		if data is None:
			return None
		return [DayPlan.from_dict(entry, today) for entry in data["dayPlans"] if isinstance(entry, dict)]

	def save_week(self, uid: str, wid: str, day_plans: List[DayPlan]) -> None:
		self.store.set(self.week_path(uid, wid), {"dayPlans": [plan.to_dict() for plan in day_plans]})
		print(f"[INFO] Weekly plan {wid} saved for user {uid}")

	def _load_or_generate(self, uid: str, today: date) -> Tuple[str, List[DayPlan], bool]:
		wid = week_id(today)
		plans = self.load_week(uid, wid, today)
		if plans is not None:
			return wid, plans, False
		print(f"[INFO] No week data for {wid}, generating new week for user {uid}")
		plans = generate_week(today)
		self.save_week(uid, wid, plans)
		return wid, plans, True

	def sync_week(self, uid: str, today: date) -> WeekView:
		"""Reconcile the current week with the store, generating it if needed."""
		current = week_id(today)
		marker = self.store.get(self.sync_path(uid)) or {}
		last_synced = marker.get("lastSyncedWeekID")
		wid, plans, generated = self._load_or_generate(uid, today)
		if current != last_synced:
			print(f"[INFO] User {uid} moved from week {last_synced or '-'} to {current}")
			self.store.set(self.sync_path(uid), {"lastSyncedWeekID": current})
		return WeekView(week_id=wid, day_plans=plans, generated=generated)

	def _modify_day(
		self,
		uid: str,
		wid: str,
		today: date,
		locate: Callable[[int, Optional[date]], bool],
		mutate: Callable[[DayPlan], bool],
	) -> Tuple[DayPlan, bool]:
		"""Apply ``mutate`` to the first day ``locate`` accepts and write it back.

		``locate`` sees the entry's index and its stored date (None when the
		date is missing or unreadable). ``mutate`` returns whether it changed
		anything; unchanged days are not written.
		"""
		path = self.week_path(uid, wid)
		data = self._read_raw_week(uid, wid)
		if data is None:
			raise DayNotFoundError(f"No plan stored for {wid}.")
		entries = data["dayPlans"]
		for index, entry in enumerate(entries):
			if not isinstance(entry, dict):
				continue
			stored_day = parse_day(entry.get("date"))
			if not locate(index, stored_day):
				continue
			plan = DayPlan.from_dict(entry, today)
			if not mutate(plan):
				return plan, False
			merged = dict(entry)
			merged.update(plan.to_dict())
			if stored_day is None:
				# never persist the fallback date
				if "date" in entry:
					merged["date"] = entry["date"]
				else:
					merged.pop("date", None)
			if plan.assigned_module is None:
				merged.pop("assignedModule", None)
			entries[index] = merged
			self.store.set(path, data)
			return plan, True
		raise DayNotFoundError("Day not found in this week's plan.")

	def assign_module(self, uid: str, day_index: int, module_id: str, today: date) -> DayPlan:
		wid, plans, _ = self._load_or_generate(uid, today)
		if not 0 <= day_index < len(plans):
			raise DayNotFoundError(f"Day index {day_index} is outside this week.")
		saved = self.library.get_module(uid, module_id)
		if saved is None:
			raise WorkoutModuleNotFound("Workout module not found.")

		def mutate(plan: DayPlan) -> bool:
			if is_locked(plan, today):
				print(f"[WARNING] Assignment rejected for {plan.date}: reward already claimed")
				raise RewardLockedError("Reward already claimed for today.")
			plan.assigned_module = saved.as_module().fresh_copy()
			return True

		plan, _ = self._modify_day(uid, wid, today, lambda index, _day: index == day_index, mutate)
		print(f"[INFO] Assigned '{saved.title}' to {plan.day_name} {plan.date} for user {uid}")
		return plan

	def clear_day(self, uid: str, day_index: int, today: date, remove_from_library: bool = False) -> DayPlan:
		wid, plans, _ = self._load_or_generate(uid, today)
		if not 0 <= day_index < len(plans):
			raise DayNotFoundError(f"Day index {day_index} is outside this week.")
		removed: List[str] = []

		def mutate(plan: DayPlan) -> bool:
			if plan.assigned_module is None:
				raise NoModuleAssignedError("No workout assigned to this day.")
			if is_locked(plan, today):
				raise RewardLockedError("Reward already claimed for today.")
			removed.append(plan.assigned_module.title)
			plan.assigned_module = None
			return True

		plan, _ = self._modify_day(uid, wid, today, lambda index, _day: index == day_index, mutate)
		if remove_from_library and removed:
			self.library.delete_by_title(uid, removed[0])
		return plan

	def set_exercise_completed(self, uid: str, day: date, exercise_index: int, completed: bool, today: date) -> DayPlan:
		if day != today:
			raise NotTodayError("You can only check off exercises on today's workout.")

		def mutate(plan: DayPlan) -> bool:
			if plan.reward_claimed:
				raise RewardLockedError("Reward already claimed for today.")
			module = plan.assigned_module
			if module is None:
				raise NoModuleAssignedError("No workout assigned to this day.")
			if not 0 <= exercise_index < len(module.exercises):
				raise ExerciseNotFoundError(f"Exercise {exercise_index} not found.")
			exercise = module.exercises[exercise_index]
			if exercise.is_completed == completed:
				return False
			exercise.is_completed = completed
			return True

		plan, changed = self._modify_day(uid, week_id(day), today, lambda _index, stored_day: stored_day == day, mutate)
		if changed:
			print(f"[INFO] Progress saved for {day} ({day_progress(plan):.0%}) for user {uid}")
		return plan

	def claim_reward(self, uid: str, day: date, today: date) -> ClaimResult:
		if day != today:
			raise NotTodayError("Rewards can only be claimed on the day of the workout.")

		def mutate(plan: DayPlan) -> bool:
			if plan.reward_claimed:
				return False
			module = plan.assigned_module
			if module is None or not module.exercises or not module.is_complete:
				raise RewardNotEarnedError("Complete every exercise before claiming the reward.")
			plan.reward_claimed = True
			return True

		plan, newly_claimed = self._modify_day(uid, week_id(day), today, lambda _index, stored_day: stored_day == day, mutate)
		result = ClaimResult(day_plan=plan, newly_claimed=newly_claimed)
		if not newly_claimed:
			print(f"[INFO] Reward for {day} already claimed by user {uid}")
			return result
		print(f"[INFO] Reward claimed for {day} by user {uid}")
		if self.reward_hook is not None:
			try:
				result.unlocked_asset = self.reward_hook(uid)
			except Exception as e:
				# The claim is already stored; a failed unlock does not undo it
				print(f"[ERROR] Reward hook failed for user {uid}: {e}")
				traceback.print_exc()
		return result

	def reward_status(self, uid: str, day: date) -> bool:
		data = self._read_raw_week(uid, week_id(day)) or {"dayPlans": []}
		for entry in data["dayPlans"]:
			if isinstance(entry, dict) and parse_day(entry.get("date")) == day:
				return DayPlan.from_dict(entry).reward_claimed
		return False


def parse_day_param(value: Any) -> date:
	"""Parse a ``YYYY-MM-DD`` path or body parameter."""
	day = parse_day(value) if isinstance(value, str) and len(value) == 10 else None
	if day is None:
		raise PlanError(f"Invalid date: {value!r}")
	return day
