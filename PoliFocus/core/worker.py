import logging

from PySide6.QtCore import QThread

from PoliFocus.core.models import DEFAULT_LONG_BREAK_INTERVAL
from PoliFocus.core.timer_engine import TICK_INTERVAL_MS, TimerEngine

logger = logging.getLogger(__name__)


class EngineWorker:
	"""Owns one TimerEngine and the QThread it ticks on.

	Build it, hand `engine` to the controller, then start(). Signals between
	the controller and the engine become queued connections once the engine
	lives on the worker thread.
	"""

	def __init__(self, durations=None, long_break_interval=DEFAULT_LONG_BREAK_INTERVAL, interval_ms=TICK_INTERVAL_MS):
		self.engine = TimerEngine(durations, long_break_interval, interval_ms)
		self.thread = QThread()
		self.thread.setObjectName("PoliFocusTimer")
		self.engine.moveToThread(self.thread)
		self.thread.finished.connect(self.engine.deleteLater)

	def start(self):
		if self.thread.isRunning():
			return
		self.thread.start()
		logger.debug("Timer thread started")

	def stop(self, timeout_ms=2000):
		"""Quit the thread's event loop and wait for it. Safe to call twice."""
		if not self.thread.isRunning():
			return
		self.thread.quit()
		if not self.thread.wait(timeout_ms):
			logger.warning("Timer thread did not stop within %sms", timeout_ms)
		else:
			logger.debug("Timer thread stopped")

	def is_running(self) -> bool:
		return self.thread.isRunning()
