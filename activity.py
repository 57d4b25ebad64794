"""Daily activity totals (steps, distance, active calories).

The phone reads the numbers from HealthKit and pushes one document per day to
``users/<uid>/activity/<YYYY-MM-DD>``; this module stores them and builds the
today/last-7-days views shown on the activity screen.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, List

from document_store import DocumentStore

METRICS = ("steps", "distance", "calories")


class ActivityError(Exception):
	status_code = 400

	def __init__(self, message: str):
		super().__init__(message)
		self.message = message


def activity_path(uid: str, day: date) -> str:
	return f"users/{uid}/activity/{day.isoformat()}"


def format_count(value: float) -> str:
	"""e.g. ``12,345`` (no decimals)."""
	return f"{round(value):,}"


def _number(value: Any, name: str) -> float:
	if isinstance(value, bool) or not isinstance(value, (int, float)):
		raise ActivityError(f"{name} must be a number")
	if value < 0:
		raise ActivityError(f"{name} cannot be negative")
	return float(value)


class ActivityStore:
	def __init__(self, store: DocumentStore):
		self.store = store

	def record_day(self, uid: str, day: date, steps: Any, distance: Any, calories: Any) -> Dict[str, float]:
		totals = {
			"steps": _number(steps, "steps"),
			"distance": _number(distance, "distance"),
			"calories": _number(calories, "calories"),
		}
		self.store.set(activity_path(uid, day), totals)
		print(f"[INFO] Activity for {day} recorded for user {uid}: {format_count(totals['steps'])} steps")
		return totals

	def day_totals(self, uid: str, day: date) -> Dict[str, float]:
		data = self.store.get(activity_path(uid, day)) or {}
		totals = {}
		for metric in METRICS:
			value = data.get(metric)
			totals[metric] = float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else 0.0
		return totals

	def today_summary(self, uid: str, today: date) -> Dict[str, Any]:
		totals = self.day_totals(uid, today)
		return {
			"date": today.isoformat(),
			"steps": totals["steps"],
			"distance": totals["distance"],
			"calories": totals["calories"],
			"display": {
				"steps": format_count(totals["steps"]),
				"distance": f"{format_count(totals['distance'])} m",
				"calories": f"{format_count(totals['calories'])} kcal",
			},
		}

	def weekly_series(self, uid: str, today: date) -> Dict[str, List[Any]]:
		"""Per-metric values for today-6 .. today, zero-filled."""
		days = [today - timedelta(days=offset) for offset in range(6, -1, -1)]
		series: Dict[str, List[Any]] = {"dates": [day.isoformat() for day in days]}
		for metric in METRICS:
			series[metric] = []
		for day in days:
			totals = self.day_totals(uid, day)
			for metric in METRICS:
				series[metric].append(totals[metric])
		return series
