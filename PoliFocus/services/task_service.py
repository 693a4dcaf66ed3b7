import logging

from PySide6.QtCore import QObject, Signal

from PoliFocus.core.models import TASK_PRIORITIES, TASK_STATUSES, Efficiency

logger = logging.getLogger(__name__)

ENDING_STATUSES = ("completed", "cancelled")


class TaskService(QObject):
	"""Task CRUD over storage, with alert scheduling and a lifecycle stream.

	task_event(kind, task) fires after every successful change; kind is one of
	added, updated, completed, cancelled, deleted.
	"""

	task_event = Signal(str, object)

	def __init__(self, storage, notifications, parent=None):
		super().__init__(parent)
		self.storage = storage
		self.notifications = notifications

	def list_tasks(self, status=None):
		tasks = self.storage.get_tasks()
		if status:
			tasks = [t for t in tasks if t.status == status]
		return tasks

	def get_task(self, task_id):
		return self.storage.get_task_by_id(task_id)

	def add_task(self, title, duration=25, **fields):
		title = (title or "").strip()
		if not title:
			raise ValueError("Task title cannot be empty.")
		self._check_duration(duration)
		self._check_fields(fields)
		task = self.storage.add_task({"title": title, "duration": int(duration), **fields})
		logger.info("Added task %s (%s min)", task.id, task.duration)
		self.notifications.schedule_task_notifications(task)
		self.task_event.emit("added", task)
		return task

	def update_task(self, task_id, updates):
		updates = dict(updates)
		if "title" in updates:
			updates["title"] = (updates["title"] or "").strip()
			if not updates["title"]:
				raise ValueError("Task title cannot be empty.")
		if "duration" in updates:
			self._check_duration(updates["duration"])
		self._check_fields(updates)
		original = self.storage.get_task_by_id(task_id)
		if original is None:
			raise ValueError("Task not found.")
		self.notifications.cancel_task_notifications(original)
		task = self.storage.update_task(task_id, updates)
		if task is None:
			raise ValueError("Task not found.")
		self.notifications.schedule_task_notifications(task)
		kind = task.status if task.status in ENDING_STATUSES and original.status != task.status else "updated"
		self.task_event.emit(kind, task)
		return task

	def complete_task(self, task_id, completed_at, actual_duration):
		return self.update_task(task_id, {
			"status": "completed",
			"completed_at": completed_at,
			"actual_duration": int(actual_duration),
		})

	def cancel_task(self, task_id):
		return self.update_task(task_id, {"status": "cancelled"})

	def delete_task(self, task_id):
		task = self.storage.get_task_by_id(task_id)
		if task is None:
			return False
		self.notifications.cancel_task_notifications(task)
		if not self.storage.delete_task(task_id):
			return False
		logger.info("Deleted task %s", task_id)
		self.task_event.emit("deleted", task)
		return True

	@staticmethod
	def calculate_efficiency(planned_minutes, actual_minutes):
		difference = actual_minutes - planned_minutes
		if difference <= 0:
			badge, icon = "excellent", "⚡"
		elif difference <= planned_minutes * 0.1:
			badge, icon = "good", "✓"
		elif difference <= planned_minutes * 0.25:
			badge, icon = "warning", "⚠"
		else:
			badge, icon = "poor", "⏱"
		percentage = (difference / planned_minutes) * 100 if planned_minutes else 0.0
		return Efficiency(badge=badge, icon=icon, difference=difference, percentage=f"{percentage:.1f}")

	@staticmethod
	def _check_duration(duration):
		if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
			raise ValueError("Duration must be a positive number of minutes.")

	@staticmethod
	def _check_fields(fields):
		if "status" in fields and fields["status"] not in TASK_STATUSES:
			raise ValueError("Invalid status.")
		if "priority" in fields and fields["priority"] not in TASK_PRIORITIES:
			raise ValueError("Invalid priority. Use low/medium/high.")
