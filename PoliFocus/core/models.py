"""Plain data shared by the engine, the controller and the repos."""

from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from typing import Dict, List, Optional


class TimerMode(str, Enum):
	FOCUS = "focus"
	SHORT_BREAK = "shortBreak"
	LONG_BREAK = "longBreak"

	@classmethod
	def parse(cls, value):
		"""Return the matching mode, or None for anything unknown."""
		if isinstance(value, cls):
			return value
		try:
			return cls(value)
		except ValueError:
			return None

	@property
	def is_break(self) -> bool:
		return self is not TimerMode.FOCUS


class ControllerStatus(str, Enum):
	IDLE = "idle"
	FOCUSING = "focusing"
	AWAITING_CONFIRMATION = "awaiting_confirmation"
	ON_BREAK = "on_break"


TASK_STATUSES = ("pending", "in_progress", "completed", "cancelled")
TASK_PRIORITIES = ("low", "medium", "high")

DEFAULT_LONG_BREAK_INTERVAL = 4


def default_durations() -> Dict[TimerMode, int]:
	return {
		TimerMode.FOCUS: 15 * 60,
		TimerMode.SHORT_BREAK: 5 * 60,
		TimerMode.LONG_BREAK: 15 * 60,
	}


@dataclass
class EngineState:
	time_left: int = 15 * 60
	mode: TimerMode = TimerMode.FOCUS
	total_elapsed: int = 0
	cycles_completed: int = 0
	running: bool = False
	task_duration_seconds: int = 0
	durations: Dict[TimerMode, int] = field(default_factory=default_durations)
	long_break_interval: int = DEFAULT_LONG_BREAK_INTERVAL

	def copy(self) -> "EngineState":
		return replace(self, durations=dict(self.durations))


@dataclass(frozen=True)
class PendingTransition:
	next_mode: TimerMode
	next_time_left: int
	message: str


@dataclass
class AppConfig:
	focus_time: int = 15  # minutes
	short_break: int = 5
	long_break: int = 15
	alert_times: List[int] = field(default_factory=lambda: [15, 5])
	long_break_interval: int = DEFAULT_LONG_BREAK_INTERVAL
	notifications_enabled: bool = True
	sound_enabled: bool = True
	vibration_enabled: bool = True

	def durations(self) -> Dict[TimerMode, int]:
		return {
			TimerMode.FOCUS: self.focus_time * 60,
			TimerMode.SHORT_BREAK: self.short_break * 60,
			TimerMode.LONG_BREAK: self.long_break * 60,
		}

	def to_dict(self) -> dict:
		return asdict(self)

	@classmethod
	def from_dict(cls, data) -> "AppConfig":
		known = {f.name for f in fields(cls)}
		return cls(**{k: v for k, v in (data or {}).items() if k in known})

	def merged(self, updates) -> "AppConfig":
		"""Return a copy with updates applied; raises ValueError on bad input."""
		known = {f.name for f in fields(self)}
		unknown = set(updates) - known
		if unknown:
			raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
		cfg = replace(self, **updates)
		for name in ("focus_time", "short_break", "long_break", "long_break_interval"):
			value = getattr(cfg, name)
			if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
				raise ValueError(f"{name} must be a positive whole number.")
		if any((not isinstance(m, int)) or m < 0 for m in cfg.alert_times):
			raise ValueError("alert_times must be non-negative minutes.")
		return cfg


@dataclass
class Task:
	id: int
	title: str
	description: str = ""
	status: str = "pending"
	priority: str = "medium"
	scheduled_start: str = ""  # ISO string
	duration: int = 25  # minutes
	recurrence: dict = field(default_factory=lambda: {"type": "none"})
	tags: List[str] = field(default_factory=list)
	created_at: str = ""
	updated_at: str = ""
	completed_at: Optional[str] = None
	actual_duration: Optional[int] = None  # minutes

	def to_dict(self) -> dict:
		return asdict(self)

	@classmethod
	def from_dict(cls, data) -> "Task":
		data = dict(data)
		# older stores used startDate
		if "startDate" in data and not data.get("scheduled_start"):
			data["scheduled_start"] = data.pop("startDate")
		known = {f.name for f in fields(cls)}
		return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class PomodoroSession:
	task_id: int
	type: TimerMode
	start_time: str
	end_time: Optional[str] = None
	completed: bool = False
	interrupted: bool = False
	cycle_number: int = 0
	id: Optional[int] = None


@dataclass(frozen=True)
class Efficiency:
	badge: str  # excellent | good | warning | poor
	icon: str
	difference: int
	percentage: str
