"""3D avatar support for the Ready Player Me avatar creator.

Covers the creator URL the app opens in its web view, remembering the avatar
exported from it, a file cache of rendered PNGs and unlocking outfits as
workout rewards.
"""
from __future__ import annotations

import random
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlencode, urlparse

import requests

import config
from document_store import DocumentStore

RENDER_BASE_URL = "https://models.readyplayer.me"
ASSETS_API_URL = "https://api.readyplayer.me/v1/assets"
RENDER_SIZE = 1024
POSES = ["power-stance", "relaxed", "standing", "thumbs-up"]
# Outfits handed out when a day's reward is claimed
OUTFIT_ASSET_IDS = ["55255882", "107519403", "38134006", "120366131", "120728151", "29273765"]

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
_AVATAR_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class AvatarError(Exception):
	def __init__(self, message: str, status_code: int = 400):
		super().__init__(message)
		self.message = message
		self.status_code = status_code


class Language(str, Enum):
	DEFAULT = ""
	CHINESE = "ch"
	GERMAN = "de"
	ENGLISH_IRELAND = "en-IE"
	ENGLISH = "en"
	SPANISH_MEXICO = "es-MX"
	SPANISH = "es"
	FRENCH = "fr"
	ITALIAN = "it"
	JAPANESE = "jp"
	KOREAN = "kr"
	PORTUGAL_BRAZIL = "pt-BR"
	PORTUGESE = "pt"
	TURKISH = "tr"


class BodyType(str, Enum):
	SELECTABLE = ""
	FULLBODY = "fullbody"
	HALFBODY = "halfbody"


class Gender(str, Enum):
	NONE = ""
	MALE = "male"
	FEMALE = "female"


@dataclass
class AvatarCreatorConfig:
	subdomain: str = "fitgenius"
	clear_cache: bool = False
	quick_start: bool = False
	gender: Gender = Gender.MALE
	body_type: BodyType = BodyType.SELECTABLE
	login_token: str = ""
	language: Language = Language.DEFAULT


def creator_url(cfg: AvatarCreatorConfig) -> str:
	"""URL of the avatar creator page embedded in the app's web view."""
	url = f"https://{cfg.subdomain}.readyplayer.me/"
	if cfg.language != Language.DEFAULT:
		url += f"{cfg.language.value}/"
	url += "avatar?frameApi&source=ios-swift-avatar-creator"
	if cfg.clear_cache:
		url += "&clearCache"
	if cfg.login_token:
		url += f"&token={cfg.login_token}"
	if cfg.quick_start:
		url += "&quickStart"
	else:
		if cfg.gender != Gender.NONE:
			url += f"&gender={cfg.gender.value}"
		if cfg.body_type == BodyType.SELECTABLE:
			url += "&selectBodyType"
		else:
			url += f"&bodyType={cfg.body_type.value}"
	return url


def config_from_args(args: Dict[str, Any]) -> AvatarCreatorConfig:
	"""Creator config from query-string style arguments."""
	try:
		return AvatarCreatorConfig(
			subdomain=config.AVATAR_SUBDOMAIN,
			clear_cache=str(args.get("clearCache", "")).lower() in ("1", "true", "on"),
			quick_start=str(args.get("quickStart", "")).lower() in ("1", "true", "on"),
			gender=Gender(args.get("gender", Gender.MALE.value)),
			body_type=BodyType(args.get("bodyType", BodyType.SELECTABLE.value)),
			login_token=args.get("token", ""),
			language=Language(args.get("language", Language.DEFAULT.value)),
		)
	except ValueError as e:
		raise AvatarError(f"Invalid avatar creator option: {e}")


def avatar_id_from_url(url: str) -> Optional[str]:
	"""``https://models.readyplayer.me/64f1a2.glb`` -> ``64f1a2``."""
	if not url:
		return None
	name = urlparse(url).path.rsplit("/", 1)[-1]
	avatar_id = name.rsplit(".", 1)[0] if "." in name else name
	return avatar_id if avatar_id and _AVATAR_ID_RE.match(avatar_id) else None


def render_url(avatar_id: str, pose: Optional[str] = None) -> str:
	pose = pose or random.choice(POSES)
	query = urlencode({"pose": pose, "camera": "fullbody", "quality": "100", "size": str(RENDER_SIZE)})
	return f"{RENDER_BASE_URL}/{avatar_id}.png?{query}"


def save_avatar(store: DocumentStore, uid: str, url: str, avatar_user_id: Optional[str] = None) -> str:
	"""Remember the avatar exported from the creator on the user document."""
	avatar_id = avatar_id_from_url(url)
	if avatar_id is None:
		raise AvatarError("Invalid avatar URL")
	path = f"users/{uid}"
	data = store.get(path) or {}
	data["avatarId"] = avatar_id
	data["avatarUrl"] = url
	if avatar_user_id:
		data["avatarUserId"] = avatar_user_id
	store.set(path, data)
	print(f"[INFO] Avatar {avatar_id} saved for user {uid}")
	return avatar_id


class AvatarCache:
	"""Rendered avatar PNGs cached as ``<cache_dir>/<avatar id>.png``."""

	def __init__(self, cache_dir: Path, session: Optional[requests.Session] = None, timeout: int = 30):
		self.cache_dir = Path(cache_dir)
		self.session = session or requests.Session()
		self.timeout = timeout

	def path_for(self, avatar_id: str) -> Path:
		if not avatar_id or not _AVATAR_ID_RE.match(avatar_id):
			raise AvatarError("Invalid avatar ID")
		return self.cache_dir / f"{avatar_id}.png"

	def load(self, avatar_id: str, pose: Optional[str] = None) -> Path:
		"""Cached render, downloading it first when missing or unreadable."""
		cache_path = self.path_for(avatar_id)
		self.cache_dir.mkdir(parents=True, exist_ok=True)
		if cache_path.exists():
			if cache_path.read_bytes()[:len(PNG_SIGNATURE)] == PNG_SIGNATURE:
				return cache_path
			print(f"[WARNING] Invalid cached image for avatar {avatar_id}, downloading again")
			cache_path.unlink()
		return self._download(avatar_id, cache_path, pose)

	def _download(self, avatar_id: str, cache_path: Path, pose: Optional[str]) -> Path:
		url = render_url(avatar_id, pose)
		print(f"[INFO] Downloading avatar render: {url}")
		try:
			response = self.session.get(url, timeout=self.timeout)
			response.raise_for_status()
		except requests.RequestException as e:
			raise AvatarError(f"Download failed: {e}", 502)
		if not response.content.startswith(PNG_SIGNATURE):
			raise AvatarError("Downloaded avatar is not a PNG image", 502)
		cache_path.write_bytes(response.content)
		print(f"[INFO] Avatar image saved to cache: {cache_path}")
		return cache_path

	def clear(self, avatar_id: str) -> bool:
		cache_path = self.path_for(avatar_id)
		if not cache_path.exists():
			return False
		cache_path.unlink()
		return True


def unlock_outfit(asset_id: str, user_id: str, api_key: str, session: Optional[requests.Session] = None) -> bool:
	"""Unlock an outfit asset for an avatar-service user."""
	http = session or requests
	response = http.put(
		f"{ASSETS_API_URL}/{asset_id}/unlock",
		json={"data": {"userId": user_id}},
		headers={"x-api-key": api_key, "Content-Type": "application/json"},
		timeout=30,
	)
	if response.status_code == 204:
		print(f"[INFO] Asset {asset_id} unlocked for user {user_id}")
		return True
	if response.status_code == 400:
		print("[WARNING] Unlock rejected: check the asset and user IDs")
	elif response.status_code == 401:
		print("[WARNING] Unlock unauthorized: check RPM_API_KEY")
	elif response.status_code == 404:
		print("[WARNING] Unlock failed: asset or user not found")
	else:
		print(f"[WARNING] Unexpected unlock status code: {response.status_code}")
	return False


def unlock_random_outfit(user_id: Optional[str], api_key: Optional[str] = None, session: Optional[requests.Session] = None) -> Optional[str]:
	"""Unlock one random reward outfit; returns the asset id when it worked."""
	api_key = api_key if api_key is not None else config.RPM_API_KEY
	if not api_key or not user_id:
		print("[INFO] Outfit unlock skipped (no avatar API key or avatar user)")
		return None
	asset_id = random.choice(OUTFIT_ASSET_IDS)
	return asset_id if unlock_outfit(asset_id, user_id, api_key, session) else None
