from datetime import datetime, timezone

from PoliFocus.core.models import AppConfig, Task, TimerMode
from PoliFocus.services.notification_service import NotificationService

NOW = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


def make_task(**kw):
	data = {"id": 4, "title": "Exam", "scheduled_start": "2024-05-01T09:00:00Z"}
	data.update(kw)
	return Task(**data)


def test_alerts_are_armed_per_alert_time(notifications):
	task = make_task()
	notifications.schedule_task_notifications(task, now=NOW)
	assert notifications.pending_ids() == [41, 42]
	assert notifications.alert_ids(task) == [41, 42]


def test_past_alerts_are_skipped(notifications):
	notifications.schedule_task_notifications(make_task(), now=datetime(2024, 5, 1, 8, 50, tzinfo=timezone.utc))
	assert notifications.pending_ids() == [42]


def test_only_pending_scheduled_tasks_get_alerts(notifications):
	notifications.schedule_task_notifications(make_task(status="completed"), now=NOW)
	notifications.schedule_task_notifications(make_task(id=5, scheduled_start=""), now=NOW)
	notifications.schedule_task_notifications(make_task(id=6, scheduled_start="next tuesday"), now=NOW)
	assert notifications.pending_ids() == []


def test_disabled_notifications_schedule_nothing(notifications, notifier):
	notifications.apply_config(AppConfig(notifications_enabled=False))
	notifications.schedule_task_notifications(make_task(), now=NOW)
	notifications.show_progress_notification("hi")
	assert notifications.pending_ids() == []
	assert notifier.calls == []


def test_cancel_removes_only_that_task(notifications):
	notifications.schedule_task_notifications(make_task(), now=NOW)
	notifications.schedule_task_notifications(make_task(id=7), now=NOW)

	notifications.cancel_task_notifications(make_task())

	assert notifications.pending_ids() == [71, 72]


def test_fired_alert_is_delivered(notifications, notifier, spin):
	# first alert is 50ms away, the second ten minutes later
	now = datetime(2024, 5, 1, 8, 44, 59, 950000, tzinfo=timezone.utc)
	notifications.schedule_task_notifications(make_task(), now=now)

	spin(500)

	assert notifier.calls == [("Your task starts soon (Exam)", "15 minutes until your task begins.")]
	assert notifications.pending_ids() == [42]


def test_alert_timers_are_unparented(notifications):
	notifications.schedule_task_notifications(make_task(), now=NOW)
	assert all(timer.parent() is None for timer in notifications._scheduled.values())


def test_dropped_alerts_survive_service_teardown(notifier, spin):
	service = NotificationService(notify=notifier)
	service.schedule_task_notifications(make_task(), now=NOW)
	service.schedule_task_notifications(make_task(id=7), now=NOW)
	assert service.pending_ids() == [41, 42, 71, 72]
	service.cancel_task_notifications(make_task(id=7))
	service.reschedule_all([])
	del service

	spin(50)

	assert notifier.calls == []


def test_delivery_failure_is_swallowed():
	def broken(title, message):
		raise RuntimeError("no notification backend")

	service = NotificationService(notify=broken)
	service.show_progress_notification("Back to work!")


def test_timer_notification_signal(notifications):
	seen = []
	notifications.timer_notification_changed.connect(seen.append)

	notifications.show_timer_notification("Exam", "14:59", TimerMode.FOCUS)
	notifications.cancel_timer_notification()
	notifications.cancel_timer_notification()

	assert seen == [("Exam", "14:59", TimerMode.FOCUS), None]
