"""Fitness and nutrition chat assistant backed by a hosted LLM.

The model is held to fitness/nutrition topics by the system prompt and asked
to end every routine with a machine-readable block::

	--- RAW MODULE DATA (do not edit) ---
	[{"title": "Chest Day", "exercises": [{"name": ..., "sets": 3, "reps": "12"}], "notes": "..."}]

The text before the marker is shown to the user; the JSON after it becomes
workout modules the user can add to their library.
"""
from __future__ import annotations

import json
import traceback
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from groq import Groq
from openai import OpenAI

import config
from models import UserMetrics, WorkoutModule
from user_profile import split_height

MODULE_MARKER = "RAW MODULE DATA"
FALLBACK_REPLY = "Sorry, I couldn't generate a response."
NO_PROFILE_MESSAGE = "No user profile available."

SYSTEM_PROMPT = """Read this entire prompt before answering.
You are a knowledgeable, supportive assistant for fitness and nutrition. Only discuss workouts, physical exercise, healthy eating, meal planning and fitness lifestyle advice. If asked about anything else, reply: "I can only assist with fitness and nutrition topics."

NUTRITION
- If the user lists ingredients, suggest healthy meals they can make with them.
- For meal prep, give 2-3 simple balanced recipes or a daily meal plan.
- Scale advice to the user's goal (high protein for muscle building, lower calorie for weight loss) and mention portions, macros or substitutions when useful.
- Never give medical or therapeutic diet advice.

ROUTINES
Before any routine you receive the user's profile once:
Goal, Equipment, Experience Level, Injuries, Weight (lbs), Height.
Tailor exercise selection, intensity and volume to all of it:
- Goal: Tone up -> light strength, bodyweight, moderate cardio. Lose weight -> high-rep circuits, HIIT, low-to-moderate impact cardio. Build Muscle -> progressive overload, hypertrophy (8-12 reps). Strength Training -> low reps, heavy load if equipment allows. Improved Endurance -> long-duration cardio, light resistance.
- Equipment: No Equipment -> bodyweight only. At Home Gym (Yoga Mat) -> add yoga, core, mobility, stretching. At Home Gym (Dumbells and Yoga Mat) -> dumbbell strength and HIIT circuits. Gym Access -> machines, barbells, cables, cardio machines.
- Injuries: Knee Injury -> no jumps, deep squats or lunges. Shoulder Injury -> no overhead presses or planks. Lower Back Pain -> no deadlifts, minimal bending. Asthma/Respiratory Conditions -> short intervals with rest. Arthritis/Joint Pain -> low impact strength and mobility. Remind the user to consult a healthcare professional for serious injuries.
- Experience: Beginner -> 15-30 min, simple movements. Intermediate -> 30-45 min, supersets or circuits. Advanced -> splits, progressive overload, higher intensity.

CONVERSATION
1. Greet with: "Hello! How can I help you with your fitness and nutrition journey today?"
2. Briefly acknowledge the profile and offer to update it.
3. Ask which muscle group to target unless the user already said.
4. Routine title is always "<MuscleGroup> Day" with at least five exercises.
5. When the user asks for tweaks, update the existing routine.

OUTPUT FOR ROUTINES
First a readable bullet list, e.g.
 • Push-ups — 3×12
 • Plank — 0×45 sec
Then on its own line exactly:
--- RAW MODULE DATA (do not edit) ---
followed immediately by a pure JSON array of modules:
[{"title": "Chest Day", "exercises": [{"name": "Push-ups", "sets": 3, "reps": "12"}, {"name": "Plank", "sets": 0, "reps": "45 sec"}], "notes": "Use controlled form"}]
No markdown fences and no text after the array."""


class ChatError(Exception):
	def __init__(self, message: str, status_code: int = 400):
		super().__init__(message)
		self.message = message
		self.status_code = status_code


@dataclass
class ChatReply:
	text: str
	modules: List[WorkoutModule] = field(default_factory=list)
	ok: bool = True


def build_profile_message(metrics: Optional[UserMetrics]) -> str:
	if metrics is None:
		return NO_PROFILE_MESSAGE
	injuries = ", ".join(injury.value for injury in metrics.injuries) if metrics.injuries else "None"
	feet, inches = split_height(metrics.height_in_inches)
	return "\n".join([
		f"Goal: {metrics.goal.value}",
		f"Equipment: {metrics.equipment.value}",
		f"Experience Level: {metrics.experience.value}",
		f"Injuries: {injuries}",
		f"Weight: {int(metrics.weight)} lbs",
		f"Height: {feet} ft {inches} in",
		"",
		"Use this profile to personalize all upcoming routines.",
	])


def clean_history(history: Any) -> List[Dict[str, str]]:
	"""Keep only well-formed user/assistant turns sent back by the client."""
	if not isinstance(history, list):
		return []
	cleaned = []
	for turn in history:
		if not isinstance(turn, dict):
			continue
		role, content = turn.get("role"), turn.get("content")
		if role in ("user", "assistant") and isinstance(content, str) and content.strip():
			cleaned.append({"role": role, "content": content})
	return cleaned


def build_conversation(history: Any, message: str, metrics: Optional[UserMetrics]) -> List[Dict[str, str]]:
	"""System prompt, the profile (once), the prior turns, then the new message."""
	return (
		[{"role": "system", "content": SYSTEM_PROMPT}, {"role": "user", "content": build_profile_message(metrics)}]
		+ clean_history(history)
		+ [{"role": "user", "content": message}]
	)


def _strip_separators(text: str) -> str:
	lines = [line for line in text.splitlines() if line.strip() != "---"]
	return "\n".join(lines).strip()


def split_reply(reply: str) -> str:
	"""Text to show the user: everything before the module marker."""
	marker = reply.find(MODULE_MARKER)
	if marker != -1:
		reply = reply[:marker]
	return _strip_separators(reply)


def parse_workout_modules(reply: str) -> Optional[List[WorkoutModule]]:
	"""Modules from the JSON array after the marker, or None."""
	marker = reply.find(MODULE_MARKER)
	if marker == -1:
		print("[DEBUG] Module marker not found in reply")
		return None
	portion = reply[marker + len(MODULE_MARKER):]
	start, end = portion.find("["), portion.rfind("]")
	if start == -1 or end <= start:
		print("[ERROR] Failed to extract module JSON")
		return None
	try:
		raw = json.loads(portion[start:end + 1])
		if not isinstance(raw, list):
			raise ValueError("module data is not a list")
		return [WorkoutModule.parse(item) for item in raw]
	except (json.JSONDecodeError, ValueError) as e:
		print(f"[ERROR] Failed to decode module JSON: {e}")
		return None


class ChatAssistant:
	def __init__(self, client: Any, model: str, max_tokens: int = 600):
		self.client = client
		self.model = model
		self.max_tokens = max_tokens

	@classmethod
	def from_config(cls) -> "ChatAssistant":
		if config.CHAT_PROVIDER == "groq":
			if not config.GROQ_API_KEY:
				raise ChatError("Groq API key not configured. Set GROQ_API_KEY environment variable.", 500)
			return cls(Groq(api_key=config.GROQ_API_KEY), config.GROQ_MODEL, config.CHAT_MAX_TOKENS)
		if not config.OPENAI_API_KEY:
			raise ChatError("OpenAI API key not configured. Set OPENAI_API_KEY environment variable.", 500)
		return cls(OpenAI(api_key=config.OPENAI_API_KEY), config.OPENAI_MODEL, config.CHAT_MAX_TOKENS)

	def complete(self, conversation: List[Dict[str, str]]) -> Optional[str]:
		response = self.client.chat.completions.create(
			model=self.model,
			messages=conversation,
			max_tokens=self.max_tokens,
		)
		if not response.choices:
			return None
		content = response.choices[0].message.content
		return content.strip() if content else None

	def reply(self, history: Any, message: str, metrics: Optional[UserMetrics]) -> ChatReply:
		message = (message or "").strip()
		if not message:
			raise ChatError("Message is required")
		conversation = build_conversation(history, message, metrics)
		print(f"[INFO] Sending conversation with {len(conversation)} messages to {self.model}")
		try:
			full_reply = self.complete(conversation)
		except Exception as e:
			print(f"[ERROR] Chat API error: {e}")
			traceback.print_exc()
			return ChatReply(text=FALLBACK_REPLY, ok=False)
		if not full_reply:
			print("[ERROR] Chat API returned empty response")
			return ChatReply(text=FALLBACK_REPLY, ok=False)
		modules = parse_workout_modules(full_reply) or []
		if modules:
			print(f"[INFO] Reply contained {len(modules)} workout module(s)")
		return ChatReply(text=split_reply(full_reply), modules=modules)
