"""The user's library of saved workout modules (``users/<uid>/workoutModules``)."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

from document_store import DocumentStore
from models import SavedModule, WorkoutModule


def modules_collection(uid: str) -> str:
	return f"users/{uid}/workoutModules"


def _decode(doc_id: str, data: Dict[str, Any]) -> Optional[SavedModule]:
	if not isinstance(data.get("title"), str) or not isinstance(data.get("exercises"), list):
		print(f"[WARNING] Skipping malformed workout module {doc_id}")
		return None
	module = WorkoutModule.from_dict(data).fresh_copy()
	return SavedModule(title=module.title, exercises=module.exercises, notes=module.notes, id=doc_id)


class WorkoutLibrary:
	def __init__(self, store: DocumentStore):
		self.store = store

	def list_modules(self, uid: str) -> List[SavedModule]:
		"""Saved modules; documents without a title or an exercises list are skipped."""
		modules = []
		for doc_id, data in self.store.list(modules_collection(uid)):
			module = _decode(doc_id, data)
			if module is not None:
				modules.append(module)
		return modules

	def get_module(self, uid: str, module_id: str) -> Optional[SavedModule]:
		if not module_id or "/" in module_id:
			return None
		data = self.store.get(f"{modules_collection(uid)}/{module_id}")
		return _decode(module_id, data) if data is not None else None

	def save_module(self, uid: str, module: WorkoutModule) -> SavedModule:
		fresh = module.fresh_copy()
		saved = SavedModule(title=fresh.title, exercises=fresh.exercises, notes=fresh.notes)
		self.store.set(f"{modules_collection(uid)}/{saved.id}", saved.to_library_dict())
		print(f"[INFO] Workout module '{saved.title}' saved for user {uid}")
		return saved

	def delete_module(self, uid: str, module_id: str) -> bool:
		if not module_id or "/" in module_id:
			return False
		path = f"{modules_collection(uid)}/{module_id}"
		if not self.store.exists(path):
			return False
		self.store.delete(path)
		print(f"[INFO] Workout module {module_id} deleted for user {uid}")
		return True

	def delete_by_title(self, uid: str, title: str) -> int:
		matches = self.store.where(modules_collection(uid), "title", title)
		for doc_id, _ in matches:
			self.store.delete(f"{modules_collection(uid)}/{doc_id}")
		if matches:
			print(f"[INFO] Deleted {len(matches)} workout module(s) titled '{title}' for user {uid}")
		return len(matches)

	def saved_titles(self, uid: str) -> Set[str]:
		return {module.title for module in self.list_modules(uid)}
