import logging
from datetime import datetime, timedelta, timezone

from PySide6.QtCore import QObject, QTimer, Signal
from plyer import notification

from PoliFocus.core.clock import parse_iso

logger = logging.getLogger(__name__)

APP_NAME = "PoliFocus"
# QTimer intervals are signed 32-bit milliseconds
MAX_TIMER_MS = 2**31 - 1


def desktop_notify(title, message):
	notification.notify(title=title, message=message, app_name=APP_NAME, timeout=10)


class NotificationService(QObject):
	"""Task start alerts plus the timer's ongoing and transient notices.

	Alerts are kept as unparented single-shot QTimers keyed by notification id
	(task.id * 10 + n, n = 1 for the first alert time). Delivery failures are
	logged and never raised.
	"""

	timer_notification_changed = Signal(object)  # (title, time_left_str, mode) or None

	def __init__(self, alert_times=(15, 5), enabled=True, notify=None, parent=None):
		super().__init__(parent)
		self.alert_times = list(alert_times)
		self.enabled = enabled
		self._notify = notify or desktop_notify
		self._scheduled = {}
		self.timer_notification = None

	def apply_config(self, config):
		self.enabled = config.notifications_enabled
		self.alert_times = list(config.alert_times)

	# ----- task alerts -----
	def alert_ids(self, task):
		return [task.id * 10 + n for n in range(1, len(self.alert_times) + 1)]

	def schedule_task_notifications(self, task, now=None):
		if not self.enabled or task.status != "pending" or not task.scheduled_start:
			return
		start = parse_iso(task.scheduled_start)
		if start is None:
			logger.warning("Task %s has an unreadable scheduled start %r", task.id, task.scheduled_start)
			return
		now = now or datetime.now(timezone.utc)
		for nid, minutes in zip(self.alert_ids(task), self.alert_times):
			fire_at = start - timedelta(minutes=minutes)
			delay_ms = int((fire_at - now).total_seconds() * 1000)
			if delay_ms <= 0:
				continue
			if delay_ms > MAX_TIMER_MS:
				# armed again by reschedule_all on the next app start
				logger.debug("Alert %s for task %s is too far out to arm now", nid, task.id)
				continue
			self._arm(nid, delay_ms, f"Your task starts soon ({task.title})", f"{minutes} minutes until your task begins.")

	def cancel_task_notifications(self, task):
		for nid in [n for n in self._scheduled if n // 10 == task.id]:
			self._scheduled.pop(nid).stop()

	def reschedule_all(self, tasks):
		for timer in self._scheduled.values():
			timer.stop()
		self._scheduled.clear()
		for task in tasks:
			self.schedule_task_notifications(task)

	def pending_ids(self):
		return sorted(nid for nid, timer in self._scheduled.items() if timer.isActive())

	def _arm(self, nid, delay_ms, title, body):
		old = self._scheduled.pop(nid, None)
		if old is not None:
			old.stop()
		# unparented; _scheduled holds the only reference
		timer = QTimer()
		timer.setSingleShot(True)
		timer.setInterval(delay_ms)
		timer.timeout.connect(lambda: self._fire(nid, title, body))
		timer.start()
		self._scheduled[nid] = timer

	def _fire(self, nid, title, body):
		# the spent timer stays in _scheduled until rearmed or cancelled
		logger.debug("Alert %s fired", nid)
		self._deliver(title, body)

	# ----- timer notices -----
	def show_timer_notification(self, title, time_left_str, mode):
		"""Ongoing notice; presentation layers render it from timer_notification_changed."""
		self.timer_notification = (title, time_left_str, mode)
		self.timer_notification_changed.emit(self.timer_notification)

	def cancel_timer_notification(self):
		if self.timer_notification is None:
			return
		self.timer_notification = None
		self.timer_notification_changed.emit(None)

	def show_progress_notification(self, message, title=APP_NAME):
		if not self.enabled:
			return
		self._deliver(title, message)

	def _deliver(self, title, body):
		try:
			self._notify(title, body)
		except Exception as e:
			logger.warning("Could not show notification %r: %s", title, e)
