import logging
import math

from PySide6.QtCore import QObject, Signal, Slot

from PoliFocus.core.clock import fmt_mmss, utc_now_iso
from PoliFocus.core.models import AppConfig, ControllerStatus, EngineState, PendingTransition, PomodoroSession, TimerMode
from PoliFocus.core.timer_engine import PAUSE, RESET, SET_STATE, START

logger = logging.getLogger(__name__)

PROGRESS_EVERY_SEC = 300

MODE_TITLES = {
	TimerMode.FOCUS: "Focus",
	TimerMode.SHORT_BREAK: "Short break",
	TimerMode.LONG_BREAK: "Long break",
}

ENDING_EVENTS = ("completed", "cancelled", "deleted")


class TimerController(QObject):
	"""
	Orchestrates:
	- which task is active and how long its focus segments are
	- the confirmation gate between a finished focus segment and its break
	- user intents (start/pause/resume/skip/complete) -> engine commands
	- session logging, notifications and the background grant (best effort)

	The engine is only reached through the `command` signal; `timer_state`
	mirrors it and is refreshed from engine events alone.
	"""

	command = Signal(str, object)

	timer_updated = Signal(object)  # EngineState copy
	status_changed = Signal(object)  # ControllerStatus
	confirmation_required = Signal(object)  # PendingTransition
	task_time_exhausted = Signal(str)
	task_completed = Signal(object, object)  # Task, Efficiency
	config_changed = Signal(object)  # AppConfig
	advisory = Signal(str)

	def __init__(self, engine, task_service, storage, notifications, background=None, parent=None):
		super().__init__(parent)
		self.task_service = task_service
		self.storage = storage
		self.notifications = notifications
		self.background = background

		self.config = self._safely("load settings", self.storage.get_config) or AppConfig()
		durations = self.config.durations()
		self.timer_state = EngineState(
			time_left=durations[TimerMode.FOCUS],
			durations=durations,
			long_break_interval=self.config.long_break_interval,
		)
		self.active_task = None
		self.pending = None
		self.status = ControllerStatus.IDLE

		self._boundary_elapsed = 0
		self._focused_seconds = 0
		self._segment_start = None
		self._backgrounded = False
		self._holding_grant = False

		self.command.connect(engine.handle_command)
		engine.tick.connect(self._on_tick)
		engine.mode_changed.connect(self._on_mode_changed)
		engine.task_finished.connect(self._on_task_finished)
		engine.state_update.connect(self._on_state_update)
		task_service.task_event.connect(self._on_task_event)

		self._safely("apply notification settings", self.notifications.apply_config, self.config)
		self._send(SET_STATE, {
			"durations": durations,
			"long_break_interval": self.config.long_break_interval,
			"mode": TimerMode.FOCUS,
			"time_left": durations[TimerMode.FOCUS],
		})

	# ----- Read side -----
	@property
	def focus_seconds(self) -> int:
		return self.config.focus_time * 60

	@property
	def task_time_remaining(self):
		"""Seconds left on the active task's budget, or None when untracked."""
		total = self.timer_state.task_duration_seconds
		if total <= 0:
			return None
		return max(0, total - self.timer_state.total_elapsed)

	@property
	def is_running(self) -> bool:
		return self.timer_state.running

	# ----- User intents -----
	def select_task(self, task):
		if self.active_task is not None:
			self._close_segment(self.timer_state.mode, completed=False)
		self.pending = None
		self.active_task = task
		self._focused_seconds = 0
		task_seconds = max(0, int(task.duration) * 60)
		time_left = min(task_seconds, self.focus_seconds) if task_seconds else self.focus_seconds
		self._set_status(ControllerStatus.FOCUSING)
		self._send(SET_STATE, {
			"mode": TimerMode.FOCUS,
			"time_left": time_left,
			"total_elapsed": 0,
			"cycles_completed": 0,
			"task_duration_seconds": task_seconds,
			"running": False,
		})
		self._stop_side_effects()
		logger.info("Selected task %s (%s min, first focus %ss)", task.id, task.duration, time_left)
		if task.status == "pending":
			updated = self._safely("mark the task in progress", self.task_service.update_task, task.id, {"status": "in_progress"})
			if updated is not None and self.active_task is task:
				self.active_task = updated

	def start_for_task(self, task):
		if self.active_task is not None and self.active_task.id == task.id:
			self.resume()
			return
		self.select_task(task)
		self._start()

	def pause(self):
		if not self.timer_state.running:
			return
		self._send(PAUSE)
		self._stop_side_effects()

	def resume(self):
		if self.active_task is None or self.status == ControllerStatus.AWAITING_CONFIRMATION:
			return
		if self.timer_state.running or self.task_time_remaining == 0:
			return
		self._start()

	def skip_break(self):
		if self.active_task is None or not self.timer_state.mode.is_break:
			return
		remaining = self.task_time_remaining
		next_focus = self.focus_seconds if remaining is None else min(remaining, self.focus_seconds)
		if self.status == ControllerStatus.ON_BREAK:
			self._close_segment(self.timer_state.mode, completed=False)
		payload = {"mode": TimerMode.FOCUS, "time_left": next_focus}
		if self.pending is not None:
			payload["total_elapsed"] = self._boundary_elapsed
		self.pending = None
		self._set_status(ControllerStatus.FOCUSING)
		self._send(SET_STATE, payload)
		self._start()

	def proceed_to_break(self):
		pending = self.pending
		if pending is None:
			return
		self.pending = None
		self._set_status(ControllerStatus.ON_BREAK)
		self._send(SET_STATE, {
			"mode": pending.next_mode,
			"time_left": pending.next_time_left,
			"total_elapsed": self._boundary_elapsed,
		})
		self._start()

	def confirm_task_completion(self):
		"""Complete the active task now. Returns its Efficiency, or None if nothing was stored."""
		task = self.active_task
		if task is None:
			return None
		actual = max(1, math.ceil(self.timer_state.total_elapsed / 60))
		self._close_segment(self.timer_state.mode, completed=self.timer_state.mode is TimerMode.FOCUS)
		self.pending = None
		updated = self._safely("save the completed task", self.task_service.complete_task, task.id, utc_now_iso(), actual)
		# the completion event normally resets us already
		if self.active_task is not None:
			self._reset_timer()
		if updated is None:
			return None
		efficiency = self.task_service.calculate_efficiency(task.duration, actual)
		logger.info("Task %s completed in %s min (%s)", task.id, actual, efficiency.badge)
		self.task_completed.emit(updated, efficiency)
		return efficiency

	def reset(self):
		self._reset_timer()

	def update_config(self, updates):
		"""Apply settings changes; raises ValueError for unknown keys or bad values."""
		new = self.config.merged(updates)
		self.config = new
		self._safely("save settings", self.storage.save_config, new)
		self._safely("apply notification settings", self.notifications.apply_config, new)
		durations = new.durations()
		payload = {"durations": durations, "long_break_interval": new.long_break_interval}
		if self.active_task is None:
			payload["mode"] = TimerMode.FOCUS
			payload["time_left"] = durations[TimerMode.FOCUS]
		self._send(SET_STATE, payload)
		self.config_changed.emit(new)
		return new

	# ----- Host lifecycle -----
	def app_backgrounded(self):
		self._backgrounded = True
		if self.timer_state.running:
			self._acquire_background()

	def app_foregrounded(self):
		self._backgrounded = False
		self._release_background()

	# ----- Engine events -----
	@Slot(object)
	def _on_tick(self, payload):
		# ticks racing the confirmation gate or a reset are stale
		if self.status in (ControllerStatus.IDLE, ControllerStatus.AWAITING_CONFIRMATION):
			return
		mode = payload["mode"]
		self._merge(time_left=payload["time_left"], total_elapsed=payload["total_elapsed"], mode=mode, running=True)
		title = self.active_task.title if self.active_task else MODE_TITLES[mode]
		self._safely("update the timer notification", self.notifications.show_timer_notification, title, fmt_mmss(payload["time_left"]), mode)
		if mode is TimerMode.FOCUS:
			self._focused_seconds += 1
			if self._focused_seconds % PROGRESS_EVERY_SEC == 0:
				self._safely("show a progress notification", self.notifications.show_progress_notification, f"{self._focused_seconds // 60} minutes focused", title)
		self.timer_updated.emit(self.timer_state.copy())

	@Slot(object)
	def _on_mode_changed(self, payload):
		# queued before a reset or completion
		if self.active_task is None:
			return
		mode = payload["mode"]
		if payload["previous_mode"] is TimerMode.FOCUS:
			self._focused_seconds += 1
		self._close_segment(payload["previous_mode"], completed=True, cycle_number=payload["cycles_completed"])
		self._merge(mode=mode, total_elapsed=payload["total_elapsed"], cycles_completed=payload["cycles_completed"])

		if mode.is_break:
			# hold the engine's auto-continue until the user answers
			self.pending = PendingTransition(mode, payload["time_left"], payload["message"])
			self._boundary_elapsed = payload["total_elapsed"]
			self._set_status(ControllerStatus.AWAITING_CONFIRMATION)
			self._send(PAUSE)
			self._hold_boundary()
			self._stop_side_effects()
			self._safely("show a progress notification", self.notifications.show_progress_notification, payload["message"], "Focus segment complete")
			logger.info("Focus segment %s done, waiting for confirmation", payload["cycles_completed"])
			self.confirmation_required.emit(self.pending)
		else:
			remaining = self.task_time_remaining
			time_left = payload["time_left"] if remaining is None else min(remaining, payload["time_left"])
			self._set_status(ControllerStatus.FOCUSING)
			self._send(SET_STATE, {"time_left": time_left})
			self._start()
			self._merge(time_left=time_left, running=True)
			self._safely("show a progress notification", self.notifications.show_progress_notification, payload["message"], "Break over")
		self.timer_updated.emit(self.timer_state.copy())

	@Slot(object)
	def _on_task_finished(self, payload):
		if self.active_task is None:
			return
		self._close_segment(self.timer_state.mode, completed=True)
		self.pending = None
		self._send(PAUSE)
		self._merge(time_left=0, total_elapsed=payload["total_elapsed"], running=False)
		self._stop_side_effects()
		self._safely("show a progress notification", self.notifications.show_progress_notification, payload["message"], self.active_task.title)
		logger.info("Task time exhausted after %ss", payload["total_elapsed"])
		self.task_time_exhausted.emit(payload["message"])
		self.timer_updated.emit(self.timer_state.copy())

	@Slot(object)
	def _on_state_update(self, snapshot):
		self.timer_state = snapshot
		if self.status == ControllerStatus.AWAITING_CONFIRMATION:
			self._hold_boundary()
		self.timer_updated.emit(self.timer_state.copy())

	@Slot(str, object)
	def _on_task_event(self, kind, task):
		if self.active_task is None or task.id != self.active_task.id:
			return
		if kind in ENDING_EVENTS:
			logger.info("Active task %s was %s, resetting timer", task.id, kind)
			self._reset_timer()
		elif kind == "updated":
			self.active_task = task

	# ----- Internals -----
	def _send(self, name, payload=None):
		self.command.emit(name, payload if payload is not None else {})

	def _start(self):
		if self._segment_start is None:
			self._segment_start = utc_now_iso()
		self._send(START)
		if self._backgrounded:
			self._acquire_background()

	def _reset_timer(self):
		self._close_segment(self.timer_state.mode, completed=False)
		self.active_task = None
		self.pending = None
		self._focused_seconds = 0
		self._set_status(ControllerStatus.IDLE)
		self._send(RESET)
		self._stop_side_effects()

	def _hold_boundary(self):
		# the engine may tick a few times past the boundary before PAUSE lands
		if self.pending is None:
			return
		self._merge(
			mode=self.pending.next_mode,
			time_left=self.pending.next_time_left,
			total_elapsed=self._boundary_elapsed,
			running=False,
		)

	def _merge(self, **fields):
		for key, value in fields.items():
			setattr(self.timer_state, key, value)

	def _set_status(self, status):
		if status == self.status:
			return
		logger.debug("Timer status %s -> %s", self.status.value, status.value)
		self.status = status
		self.status_changed.emit(status)

	def _close_segment(self, mode, completed, cycle_number=None):
		start, self._segment_start = self._segment_start, None
		if start is None or self.active_task is None:
			return
		session = PomodoroSession(
			task_id=self.active_task.id,
			type=mode,
			start_time=start,
			end_time=utc_now_iso(),
			completed=completed,
			interrupted=not completed,
			cycle_number=self.timer_state.cycles_completed if cycle_number is None else cycle_number,
		)
		self._safely("save the session", self.storage.add_session, session)

	def _stop_side_effects(self):
		self._safely("clear the timer notification", self.notifications.cancel_timer_notification)
		self._release_background()

	def _acquire_background(self):
		if self.background is None or self._holding_grant:
			return
		try:
			self.background.acquire()
		except Exception as e:
			logger.warning("Background execution not granted: %s", e)
			self.advisory.emit("The timer may pause while the app is in the background.")
			return
		self._holding_grant = True

	def _release_background(self):
		if self.background is None or not self._holding_grant:
			return
		self._holding_grant = False
		self._safely("release background execution", self.background.release)

	def _safely(self, what, fn, *args):
		"""Run a collaborator call; failures are logged and surfaced as an advisory."""
		try:
			return fn(*args)
		except Exception as e:
			logger.warning("Could not %s: %s", what, e)
			self.advisory.emit(f"Could not {what}.")
			return None
