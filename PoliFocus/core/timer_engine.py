import logging

from PySide6.QtCore import QObject, QTimer, Signal, Slot

from PoliFocus.core.models import DEFAULT_LONG_BREAK_INTERVAL, EngineState, TimerMode

logger = logging.getLogger(__name__)

START = "START"
PAUSE = "PAUSE"
RESET = "RESET"
SET_STATE = "SET_STATE"

TICK_INTERVAL_MS = 1000

LONG_BREAK_MESSAGE = "Long break time. You earned it!"
SHORT_BREAK_MESSAGE = "Short break. Relax for a moment."
BACK_TO_FOCUS_MESSAGE = "Back to work!"
TASK_FINISHED_MESSAGE = "Time for this task is up!"


class TimerEngine(QObject):
	"""Countdown state machine driven by its own QTimer.

	Commands come in through slots (or handle_command), events go out through
	signals. Meant to live on its own QThread (see EngineWorker); the engine is
	the only writer of its EngineState and only ever hands out copies.
	"""

	tick = Signal(object)  # {time_left, total_elapsed, mode}
	mode_changed = Signal(object)  # {mode, previous_mode, time_left, message, cycles_completed, total_elapsed}
	task_finished = Signal(object)  # {message, time_left, total_elapsed}
	state_update = Signal(object)  # EngineState copy

	def __init__(self, durations=None, long_break_interval=DEFAULT_LONG_BREAK_INTERVAL, interval_ms=TICK_INTERVAL_MS, parent=None):
		super().__init__(parent)
		self.state = EngineState(long_break_interval=max(1, int(long_break_interval)))
		if durations:
			self.state.durations.update(self._clean_durations(durations))
		self.state.time_left = self.state.durations[TimerMode.FOCUS]
		# child of the engine so it follows moveToThread
		self._timer = QTimer(self)
		self._timer.setInterval(int(interval_ms))
		self._timer.timeout.connect(self.advance)

	def snapshot(self) -> EngineState:
		return self.state.copy()

	# ----- Commands -----
	@Slot(str, object)
	def handle_command(self, name, payload=None):
		if name == START:
			self.start()
		elif name == PAUSE:
			self.pause()
		elif name == RESET:
			self.reset()
		elif name == SET_STATE:
			self.set_state(payload or {})
		else:
			logger.warning("Ignoring unknown timer command %r", name)

	@Slot()
	def start(self):
		st = self.state
		if st.running:
			return
		if st.task_duration_seconds > 0 and st.total_elapsed >= st.task_duration_seconds:
			self._finish_task()
			return
		if st.time_left <= 0:
			self._complete_mode()
			return
		self._run()
		self.state_update.emit(self.snapshot())

	@Slot()
	def pause(self):
		if not self.state.running:
			return
		self._halt()
		self.state_update.emit(self.snapshot())

	@Slot()
	def reset(self):
		self._halt()
		st = self.state
		st.total_elapsed = 0
		st.task_duration_seconds = 0
		st.cycles_completed = 0
		st.mode = TimerMode.FOCUS
		st.time_left = st.durations[TimerMode.FOCUS]
		self.state_update.emit(self.snapshot())

	@Slot(object)
	def set_state(self, partial):
		st = self.state
		durations_changed = False
		if "durations" in partial:
			cleaned = self._clean_durations(partial["durations"])
			durations_changed = any(st.durations.get(m) != v for m, v in cleaned.items())
			st.durations.update(cleaned)
		if "mode" in partial:
			mode = TimerMode.parse(partial["mode"])
			if mode is None:
				logger.warning("Ignoring unknown timer mode %r", partial["mode"])
			else:
				st.mode = mode
		if "long_break_interval" in partial:
			st.long_break_interval = max(1, self._clamp(partial["long_break_interval"], "long_break_interval"))
		for key in ("time_left", "total_elapsed", "task_duration_seconds", "cycles_completed"):
			if key in partial:
				setattr(st, key, self._clamp(partial[key], key))
		unknown = set(partial) - {
			"durations", "mode", "long_break_interval", "running",
			"time_left", "total_elapsed", "task_duration_seconds", "cycles_completed",
		}
		if unknown:
			logger.warning("Ignoring unknown timer fields: %s", ", ".join(sorted(map(str, unknown))))

		if st.task_duration_seconds > 0 and st.total_elapsed > st.task_duration_seconds:
			st.total_elapsed = st.task_duration_seconds
		if durations_changed and not st.running and st.task_duration_seconds == 0 and "time_left" not in partial:
			st.mode = TimerMode.FOCUS
			st.time_left = st.durations[TimerMode.FOCUS]

		if "running" in partial:
			if partial["running"]:
				# start() emits its own snapshot (or a completion event)
				if not st.running:
					self.start()
					return
			else:
				self._halt()
		self.state_update.emit(self.snapshot())

	# ----- Ticking -----
	@Slot()
	def advance(self):
		"""One second of countdown. Emits exactly one event."""
		st = self.state
		if not st.running:
			return
		st.time_left = max(0, st.time_left - 1)
		st.total_elapsed += 1

		if st.task_duration_seconds > 0 and st.total_elapsed >= st.task_duration_seconds:
			self._finish_task()
			return

		if st.time_left <= 0:
			self._complete_mode()
			return

		self.tick.emit({
			"time_left": st.time_left,
			"total_elapsed": st.total_elapsed,
			"mode": st.mode,
		})

	def _complete_mode(self):
		st = self.state
		previous = st.mode
		if previous is TimerMode.FOCUS:
			st.cycles_completed += 1
			if st.cycles_completed % st.long_break_interval == 0:
				next_mode, message = TimerMode.LONG_BREAK, LONG_BREAK_MESSAGE
			else:
				next_mode, message = TimerMode.SHORT_BREAK, SHORT_BREAK_MESSAGE
		else:
			next_mode, message = TimerMode.FOCUS, BACK_TO_FOCUS_MESSAGE
		st.mode = next_mode
		st.time_left = st.durations[next_mode]
		# auto-continue; pausing at a boundary is the controller's call
		self._run()
		logger.debug("Timer %s -> %s after %ss", previous.value, next_mode.value, st.total_elapsed)
		self.mode_changed.emit({
			"mode": next_mode,
			"previous_mode": previous,
			"time_left": st.time_left,
			"message": message,
			"cycles_completed": st.cycles_completed,
			"total_elapsed": st.total_elapsed,
		})

	def _finish_task(self):
		st = self.state
		st.total_elapsed = st.task_duration_seconds
		st.time_left = 0
		self._halt()
		logger.debug("Task bound of %ss reached", st.task_duration_seconds)
		self.task_finished.emit({
			"message": TASK_FINISHED_MESSAGE,
			"time_left": 0,
			"total_elapsed": st.total_elapsed,
		})

	def _run(self):
		self.state.running = True
		if not self._timer.isActive():
			self._timer.start()

	def _halt(self):
		self.state.running = False
		self._timer.stop()

	# ----- Input hygiene -----
	@staticmethod
	def _clamp(value, name):
		try:
			number = int(value)
		except (TypeError, ValueError):
			logger.warning("Timer field %s=%r is not a number, using 0", name, value)
			return 0
		if number < 0:
			logger.warning("Timer field %s=%r is negative, clamped to 0", name, value)
			return 0
		return number

	@classmethod
	def _clean_durations(cls, durations):
		cleaned = {}
		for key, value in dict(durations).items():
			mode = TimerMode.parse(key)
			if mode is None:
				logger.warning("Ignoring duration for unknown mode %r", key)
				continue
			cleaned[mode] = max(1, cls._clamp(value, f"durations[{mode.value}]"))
		return cleaned
