from __future__ import annotations

import sqlite3
from datetime import date, datetime
from functools import wraps
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from flask import Flask, g, jsonify, request, send_file
from flask_cors import CORS
from flask_login import LoginManager, UserMixin, current_user, login_required, login_user, logout_user
from supabase import create_client
from werkzeug.security import check_password_hash, generate_password_hash

import avatar
import config
from activity import ActivityError, ActivityStore
from chat_assistant import ChatAssistant, ChatError
from document_store import DocumentNotFound, DocumentStore, open_document_store
from models import WorkoutModule
from user_profile import ProfileError, ProfileStore, parse_metrics_form
from weekly_plan import PlanError, WeeklyPlanService, parse_day_param
from workout_library import WorkoutLibrary

app = Flask(__name__)
app.secret_key = config.SECRET_KEY
app.config["DATABASE_PATH"] = config.DATABASE_PATH
app.config["AVATAR_CACHE_DIR"] = config.AVATAR_CACHE_DIR

# Enable CORS for all routes (the mobile client calls from its own origin)
CORS(app, resources={
	r"/*": {"origins": "*", "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"], "allow_headers": ["Content-Type", "Authorization"]}
})

# Flask-Login setup
login_manager = LoginManager()
login_manager.init_app(app)


# ========== SERVICES ==========

class Services:
	"""Everything the routes need, built on one document store."""

	def __init__(self, store: DocumentStore):
		self.store = store
		self.library = WorkoutLibrary(store)
		self.profiles = ProfileStore(store)
		self.activity = ActivityStore(store)
		self.plans = WeeklyPlanService(store, self.library, reward_hook=self.unlock_reward)

	def unlock_reward(self, uid: str) -> Optional[str]:
		profile = self.profiles.load_profile(uid) or {}
		return avatar.unlock_random_outfit(profile.get("avatarUserId"))


services: Optional[Services] = None


def get_services() -> Services:
	global services
	if services is None:
		services = Services(open_document_store())
	return services


def get_chat_assistant() -> ChatAssistant:
	return ChatAssistant.from_config()


def today() -> date:
	"""Current calendar day in the configured time zone."""
	return datetime.now(ZoneInfo(config.TIMEZONE)).date()


# ========== AUTHENTICATION ==========

class User(UserMixin):
	"""User model for Flask-Login."""
	def __init__(self, user_id: int, email: str):
		self.id = user_id
		self.email = email

	def get_id(self):
		return str(self.id)


def init_db():
	"""Initialize the database with users table."""
	conn = sqlite3.connect(str(app.config["DATABASE_PATH"]))
	cursor = conn.cursor()
	cursor.execute("""
		CREATE TABLE IF NOT EXISTS users (
			id INTEGER PRIMARY KEY AUTOINCREMENT,
			email TEXT UNIQUE NOT NULL,
			password_hash TEXT NOT NULL,
			created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
		)
	""")
	conn.commit()
	conn.close()
	print("[INFO] Database initialized")


def get_db_connection():
	"""Get database connection."""
	conn = sqlite3.connect(str(app.config["DATABASE_PATH"]))
	conn.row_factory = sqlite3.Row
	return conn


@login_manager.user_loader
def load_user(user_id: str):
	"""Load user from database for Flask-Login."""
	conn = get_db_connection()
	user = conn.execute(
		"SELECT id, email FROM users WHERE id = ?", (user_id,)
	).fetchone()
	conn.close()
	if user:
		return User(user["id"], user["email"])
	return None


def verify_supabase_token(access_token: str) -> Optional[Dict[str, Any]]:
	"""Resolve a Supabase access token to its user, or None."""
	if not config.SUPABASE_URL or not config.SUPABASE_ANON_KEY:
		print("[WARNING] Bearer token received but Supabase is not configured")
		return None
	try:
		supabase_client = create_client(config.SUPABASE_URL, config.SUPABASE_ANON_KEY)
		user_response = supabase_client.auth.get_user(access_token)
	except Exception as e:
		print(f"[ERROR] Error verifying user: {e}")
		return None
	if not user_response or not user_response.user:
		return None
	return {
		"id": user_response.user.id,
		"email": user_response.user.email,
		"user_metadata": user_response.user.user_metadata or {},
	}


def authenticated_uid() -> Optional[str]:
	"""Session user, or the Supabase user behind a bearer token."""
	auth_header = request.headers.get("Authorization", "")
	if auth_header.startswith("Bearer "):
		access_token = auth_header.replace("Bearer ", "", 1).strip()
		user = verify_supabase_token(access_token) if access_token else None
		return user["id"] if user else None
	if current_user.is_authenticated:
		return str(current_user.id)
	return None


def auth_required(view):
	@wraps(view)
	def wrapper(*args, **kwargs):
		uid = authenticated_uid()
		if not uid:
			return jsonify({"error": "Authentication required"}), 401
		g.uid = uid
		return view(*args, **kwargs)
	return wrapper


# ========== ERROR HANDLERS ==========

@app.errorhandler(PlanError)
@app.errorhandler(ProfileError)
@app.errorhandler(ActivityError)
@app.errorhandler(ChatError)
@app.errorhandler(avatar.AvatarError)
def handle_domain_error(e):
	return jsonify({"error": e.message}), e.status_code


@app.errorhandler(DocumentNotFound)
def handle_document_not_found(e):
	return jsonify({"error": "Profile not found"}), 404


# ========== AUTHENTICATION ROUTES ==========

@app.route("/register", methods=["POST"])
def register():
	"""Create an account and its profile document, then log in."""
	data = request.get_json(silent=True) or {}
	email = str(data.get("email", "")).strip().lower()
	password = str(data.get("password", ""))
	first_name = str(data.get("firstName", "")).strip()
	last_name = str(data.get("lastName", "")).strip()

	if not email or not password:
		return jsonify({"error": "Email and password are required"}), 400

	if len(password) < 6:
		return jsonify({"error": "Password must be at least 6 characters"}), 400

	metrics = parse_metrics_form(data)

	conn = get_db_connection()
	try:
		cursor = conn.execute(
			"INSERT INTO users (email, password_hash) VALUES (?, ?)",
			(email, generate_password_hash(password))
		)
		conn.commit()
		user_id = cursor.lastrowid
	except sqlite3.IntegrityError:
		return jsonify({"error": "Email already exists"}), 400
	finally:
		conn.close()

	get_services().profiles.create_profile(str(user_id), first_name, last_name, email, metrics)
	login_user(User(user_id, email), remember=True)
	print(f"[INFO] Account created for {email}")
	return jsonify({"success": True, "user_id": str(user_id)})


@app.route("/login", methods=["POST"])
def login():
	"""Login handler."""
	data = request.get_json(silent=True) or {}
	email = str(data.get("email", "")).strip().lower()
	password = str(data.get("password", ""))

	if not email or not password:
		return jsonify({"error": "Email and password are required"}), 400

	conn = get_db_connection()
	user = conn.execute(
		"SELECT id, email, password_hash FROM users WHERE email = ?", (email,)
	).fetchone()
	conn.close()

	if user and check_password_hash(user["password_hash"], password):
		login_user(User(user["id"], user["email"]), remember=True)
		return jsonify({"success": True, "message": "Logged in successfully"})
	return jsonify({"error": "Invalid email or password"}), 401


@app.route("/logout", methods=["POST"])
@login_required
def logout():
	"""Logout handler."""
	logout_user()
	return jsonify({"success": True, "message": "Logged out successfully"})


@login_manager.unauthorized_handler
def unauthorized():
	return jsonify({"error": "Authentication required"}), 401


@app.route("/check-auth", methods=["GET"])
def check_auth():
	"""Check if user is authenticated."""
	if current_user.is_authenticated:
		return jsonify({
			"authenticated": True,
			"user_id": str(current_user.id),
			"email": current_user.email
		})
	return jsonify({"authenticated": False})


@app.route("/user", methods=["GET"])
def get_user():
	"""Get current user from Supabase JWT token."""
	auth_header = request.headers.get("Authorization")
	if not auth_header or not auth_header.startswith("Bearer "):
		return jsonify({"error": "Missing or invalid Authorization header"}), 401

	access_token = auth_header.replace("Bearer ", "", 1).strip()
	if not access_token:
		return jsonify({"error": "Missing access token"}), 401

	if not config.SUPABASE_URL or not config.SUPABASE_ANON_KEY:
		return jsonify({"error": "Supabase configuration missing. Set SUPABASE_URL and SUPABASE_ANON_KEY environment variables."}), 500

	user = verify_supabase_token(access_token)
	if not user:
		return jsonify({"error": "Invalid token"}), 401
	user["authenticated"] = True
	return jsonify(user)


# ========== PROFILE ==========

@app.route("/profile", methods=["GET"])
@auth_required
def get_profile():
	profile = get_services().profiles.profile_response(g.uid)
	if profile is None:
		return jsonify({"error": "Failed to load profile."}), 404
	return jsonify(profile)


@app.route("/profile", methods=["PUT"])
@auth_required
def update_profile():
	data = request.get_json(silent=True) or {}
	metrics = parse_metrics_form(data)
	get_services().profiles.update_metrics(g.uid, metrics)
	return jsonify({"success": True, "message": "Profile updated!", "metrics": metrics.to_dict()})


# ========== ACTIVITY ==========

@app.route("/activity", methods=["GET"])
@auth_required
def get_activity():
	day = today()
	activity = get_services().activity
	return jsonify({
		"today": activity.today_summary(g.uid, day),
		"week": activity.weekly_series(g.uid, day),
	})


@app.route("/activity", methods=["POST"])
@auth_required
def record_activity():
	data = request.get_json(silent=True) or {}
	day = parse_day_param(data["date"]) if data.get("date") else today()
	totals = get_services().activity.record_day(
		g.uid, day, data.get("steps", 0), data.get("distance", 0), data.get("calories", 0)
	)
	return jsonify({"success": True, "date": day.isoformat(), **totals})


# ========== WORKOUT MODULES ==========

@app.route("/modules", methods=["GET"])
@auth_required
def list_modules():
	modules = get_services().library.list_modules(g.uid)
	return jsonify({"modules": [module.to_api_dict() for module in modules]})


@app.route("/modules", methods=["POST"])
@auth_required
def save_module():
	data = request.get_json(silent=True) or {}
	try:
		module = WorkoutModule.parse(data.get("module", data))
	except ValueError as e:
		return jsonify({"error": f"Invalid workout module: {e}"}), 400
	saved = get_services().library.save_module(g.uid, module)
	return jsonify({"success": True, "module": saved.to_api_dict()}), 201


@app.route("/modules/<module_id>", methods=["DELETE"])
@auth_required
def delete_module(module_id: str):
	if not get_services().library.delete_module(g.uid, module_id):
		return jsonify({"error": "Workout module not found."}), 404
	return jsonify({"success": True})


# ========== WEEKLY PLAN ==========

@app.route("/week", methods=["GET"])
@auth_required
def get_week():
	"""Current week, generated and stored on first visit."""
	day = today()
	week = get_services().plans.sync_week(g.uid, day)
	return jsonify(week.to_dict(day))


@app.route("/week/days/<int:day_index>/module", methods=["PUT"])
@auth_required
def assign_module(day_index: int):
	data = request.get_json(silent=True) or {}
	module_id = data.get("moduleId")
	if not isinstance(module_id, str) or not module_id:
		return jsonify({"error": "moduleId is required"}), 400
	plan = get_services().plans.assign_module(g.uid, day_index, module_id, today())
	return jsonify({"success": True, "dayPlan": plan.to_dict()})


@app.route("/week/days/<int:day_index>/module", methods=["DELETE"])
@auth_required
def clear_day(day_index: int):
	remove_from_library = request.args.get("removeFromLibrary", "").lower() in ("1", "true", "on")
	plan = get_services().plans.clear_day(g.uid, day_index, today(), remove_from_library=remove_from_library)
	return jsonify({"success": True, "dayPlan": plan.to_dict()})


@app.route("/week/days/<day>/exercises/<int:exercise_index>", methods=["PUT"])
@auth_required
def set_exercise_completed(day: str, exercise_index: int):
	data = request.get_json(silent=True) or {}
	completed = data.get("completed")
	if not isinstance(completed, bool):
		return jsonify({"error": "completed must be true or false"}), 400
	plan = get_services().plans.set_exercise_completed(g.uid, parse_day_param(day), exercise_index, completed, today())
	return jsonify({"success": True, "dayPlan": plan.to_dict()})


@app.route("/week/days/<day>/reward", methods=["GET"])
@auth_required
def reward_status(day: str):
	claimed = get_services().plans.reward_status(g.uid, parse_day_param(day))
	return jsonify({"date": day, "rewardClaimed": claimed})


@app.route("/week/days/<day>/reward", methods=["POST"])
@auth_required
def claim_reward(day: str):
	result = get_services().plans.claim_reward(g.uid, parse_day_param(day), today())
	return jsonify({
		"success": True,
		"newlyClaimed": result.newly_claimed,
		"unlockedAsset": result.unlocked_asset,
		"dayPlan": result.day_plan.to_dict(),
	})


# ========== CHAT ==========

@app.route("/chat", methods=["POST"])
@auth_required
def chat():
	"""Fitness/nutrition assistant; replies may carry workout modules."""
	data = request.get_json(silent=True) or {}
	message = data.get("message", "")
	if not isinstance(message, str) or not message.strip():
		return jsonify({"error": "Message is required"}), 400

	svc = get_services()
	assistant = get_chat_assistant()
	metrics = svc.profiles.load_metrics(g.uid)
	reply = assistant.reply(data.get("history"), message, metrics)
	if not reply.ok:
		return jsonify({"error": reply.text, "reply": reply.text}), 502

	saved_titles = svc.library.saved_titles(g.uid) if reply.modules else set()
	modules = []
	for module in reply.modules:
		entry = module.to_dict()
		entry["added"] = module.title in saved_titles
		modules.append(entry)
	return jsonify({"reply": reply.text, "modules": modules})


# ========== AVATAR ==========

@app.route("/avatar/creator-url", methods=["GET"])
def avatar_creator_url():
	cfg = avatar.config_from_args(request.args)
	return jsonify({"url": avatar.creator_url(cfg)})


@app.route("/avatar", methods=["POST"])
@auth_required
def save_avatar():
	"""Store the avatar exported from the creator web view."""
	data = request.get_json(silent=True) or {}
	avatar_id = avatar.save_avatar(get_services().store, g.uid, str(data.get("url", "")), data.get("userId"))
	return jsonify({"success": True, "avatarId": avatar_id})


@app.route("/avatar/image", methods=["GET"])
@auth_required
def avatar_image():
	profile = get_services().profiles.load_profile(g.uid) or {}
	avatar_id = profile.get("avatarId")
	if not avatar_id:
		return jsonify({"error": "No avatar ID configured"}), 404
	cache = avatar.AvatarCache(app.config["AVATAR_CACHE_DIR"])
	if request.args.get("refresh", "").lower() in ("1", "true", "on"):
		cache.clear(avatar_id)
	path = cache.load(avatar_id, request.args.get("pose"))
	return send_file(str(path), mimetype="image/png")


@app.route("/health", methods=["GET"])
def health():
	"""Health check endpoint to test if backend is working."""
	return jsonify({
		"status": "ok",
		"document_store": type(get_services().store).__name__,
		"chat_provider": config.CHAT_PROVIDER,
	}), 200


if __name__ == "__main__":
	init_db()
	app.run(host="0.0.0.0", port=config.PORT, debug=False)
