"""Path-addressed JSON document store.

Documents live at slash-separated paths such as
``users/<uid>/weeklyWorkoutPlans/week-2025-05-05``: an even number of
segments names a document, an odd number names a collection. Writes are whole
document overwrites (``set``) or shallow merges (``update``); there is no
transaction support, the last writer wins.
"""
from __future__ import annotations

import json
import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from supabase import Client, create_client

import config


class DocumentNotFound(Exception):
	"""Raised by ``update`` when the target document does not exist."""

	def __init__(self, path: str):
		super().__init__(f"Document not found: {path}")
		self.path = path


def _segments(path: str) -> List[str]:
	parts = (path or "").split("/")
	if not parts or any(not part.strip() for part in parts):
		raise ValueError(f"Invalid document path: {path!r}")
	return parts


def split_document_path(path: str) -> Tuple[str, str]:
	"""Return ``(collection, doc_id)`` for a document path."""
	parts = _segments(path)
	if len(parts) % 2 != 0:
		raise ValueError(f"Not a document path: {path!r}")
	return "/".join(parts[:-1]), parts[-1]


def check_collection_path(path: str) -> str:
	parts = _segments(path)
	if len(parts) % 2 != 1:
		raise ValueError(f"Not a collection path: {path!r}")
	return path


class DocumentStore:
	"""Interface shared by the SQLite and Supabase backends."""

	def get(self, path: str) -> Optional[Dict[str, Any]]:
		raise NotImplementedError

	def set(self, path: str, data: Dict[str, Any]) -> None:
		raise NotImplementedError

	def delete(self, path: str) -> None:
		raise NotImplementedError

	def list(self, collection: str) -> List[Tuple[str, Dict[str, Any]]]:
		raise NotImplementedError

	def exists(self, path: str) -> bool:
		return self.get(path) is not None

	def update(self, path: str, fields: Dict[str, Any]) -> None:
		current = self.get(path)
		if current is None:
			raise DocumentNotFound(path)
		current.update(fields)
		self.set(path, current)

	def where(self, collection: str, field: str, value: Any) -> List[Tuple[str, Dict[str, Any]]]:
		return [(doc_id, data) for doc_id, data in self.list(collection) if data.get(field) == value]


class SqliteDocumentStore(DocumentStore):
	"""Documents as JSON text rows in a local SQLite file."""

	def __init__(self, db_path: Path):
		self.db_path = Path(db_path)
		self.init_db()

	def init_db(self) -> None:
		with closing(sqlite3.connect(str(self.db_path))) as conn:
			conn.execute("""
				CREATE TABLE IF NOT EXISTS documents (
					path TEXT PRIMARY KEY,
					collection TEXT NOT NULL,
					doc_id TEXT NOT NULL,
					data TEXT NOT NULL,
					updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
				)
			""")
			conn.execute("CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents (collection)")
			conn.commit()

	def get_connection(self) -> sqlite3.Connection:
		conn = sqlite3.connect(str(self.db_path))
		conn.row_factory = sqlite3.Row
		return conn

	def get(self, path: str) -> Optional[Dict[str, Any]]:
		split_document_path(path)
		with closing(self.get_connection()) as conn:
			row = conn.execute("SELECT data FROM documents WHERE path = ?", (path,)).fetchone()
		return json.loads(row["data"]) if row else None

	def set(self, path: str, data: Dict[str, Any]) -> None:
		collection, doc_id = split_document_path(path)
		payload = json.dumps(data)
		with closing(self.get_connection()) as conn:
			conn.execute(
				"INSERT OR REPLACE INTO documents (path, collection, doc_id, data, updated_at) VALUES (?, ?, ?, ?, ?)",
				(path, collection, doc_id, payload, datetime.now(timezone.utc).isoformat())
			)
			conn.commit()

	def delete(self, path: str) -> None:
		split_document_path(path)
		with closing(self.get_connection()) as conn:
			conn.execute("DELETE FROM documents WHERE path = ?", (path,))
			conn.commit()

	def list(self, collection: str) -> List[Tuple[str, Dict[str, Any]]]:
		check_collection_path(collection)
		with closing(self.get_connection()) as conn:
			rows = conn.execute(
				"SELECT doc_id, data FROM documents WHERE collection = ? ORDER BY updated_at, doc_id", (collection,)
			).fetchall()
		return [(row["doc_id"], json.loads(row["data"])) for row in rows]


class SupabaseDocumentStore(DocumentStore):
	"""Documents as ``jsonb`` rows in a Supabase table.

	Expected table::

		create table documents (
			path text primary key,
			collection text not null,
			doc_id text not null,
			data jsonb not null,
			updated_at timestamptz default now()
		);
	"""

	def __init__(self, client: Client, table: str = "documents"):
		self.client = client
		self.table = table

	def get(self, path: str) -> Optional[Dict[str, Any]]:
		split_document_path(path)
		response = self.client.table(self.table).select("data").eq("path", path).limit(1).execute()
		rows = response.data or []
		return rows[0]["data"] if rows else None

	def set(self, path: str, data: Dict[str, Any]) -> None:
		collection, doc_id = split_document_path(path)
		self.client.table(self.table).upsert({
			"path": path,
			"collection": collection,
			"doc_id": doc_id,
			"data": data,
			"updated_at": datetime.now(timezone.utc).isoformat(),
		}).execute()

	def delete(self, path: str) -> None:
		split_document_path(path)
		self.client.table(self.table).delete().eq("path", path).execute()

	def list(self, collection: str) -> List[Tuple[str, Dict[str, Any]]]:
		check_collection_path(collection)
		response = self.client.table(self.table).select("doc_id, data").eq("collection", collection).order("updated_at").execute()
		return [(row["doc_id"], row["data"]) for row in (response.data or [])]

	def where(self, collection: str, field: str, value: Any) -> List[Tuple[str, Dict[str, Any]]]:
		check_collection_path(collection)
		if not isinstance(value, str):
			return super().where(collection, field, value)
		response = (
			self.client.table(self.table)
			.select("doc_id, data")
			.eq("collection", collection)
			.eq(f"data->>{field}", value)
			.execute()
		)
		return [(row["doc_id"], row["data"]) for row in (response.data or [])]


def open_document_store() -> DocumentStore:
	"""Supabase when credentials are configured, otherwise local SQLite."""
	supabase_key = config.SUPABASE_SERVICE_ROLE_KEY or config.SUPABASE_ANON_KEY
	if config.SUPABASE_URL and supabase_key:
		print(f"[INFO] Using Supabase document store (table '{config.SUPABASE_DOCUMENTS_TABLE}')")
		return SupabaseDocumentStore(create_client(config.SUPABASE_URL, supabase_key), config.SUPABASE_DOCUMENTS_TABLE)
	print(f"[INFO] Using SQLite document store at {config.DOCUMENT_DB_PATH}")
	return SqliteDocumentStore(config.DOCUMENT_DB_PATH)
