import argparse
import logging
import os
import signal
import sys

from PySide6.QtCore import QCoreApplication

from PoliFocus.core.clock import fmt_hms, fmt_mmss
from PoliFocus.core.worker import EngineWorker
from PoliFocus.repos.storage_repo import StorageRepo
from PoliFocus.services.notification_service import NotificationService
from PoliFocus.services.task_service import TaskService
from PoliFocus.services.timer_service import TimerController

LOG_LEVEL_ENV = "POLIFOCUS_LOG_LEVEL"

def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="polifocus", description="Pomodoro timer bound to your tasks.")
    parser.add_argument("task_id", nargs="?", type=int, help="run the timer for this task")
    parser.add_argument("--list", action="store_true", help="list stored tasks and exit")
    parser.add_argument("--add", metavar="TITLE", help="add a task and exit")
    parser.add_argument("--duration", type=int, default=25, help="minutes for --add (default 25)")
    parser.add_argument("--auto-break", action="store_true", help="take every break instead of finishing at the first one")
    return parser.parse_args(argv)

def print_tasks(tasks):
    if not tasks:
        print("No tasks yet. Add one with --add TITLE.")
        return
    for t in tasks:
        print(f"{t.id:>4}  {t.status:<12} {t.duration:>4} min  {t.title}")

def build_services(storage):
    """Notification and task services over `storage`, with alerts armed for stored tasks."""
    notifications = NotificationService()
    notifications.apply_config(storage.get_config())
    task_service = TaskService(storage, notifications)
    notifications.reschedule_all(task_service.list_tasks())
    return notifications, task_service

def run_task(app, storage, task_service, notifications, task, auto_break):
    config = storage.get_config()
    worker = EngineWorker(config.durations(), config.long_break_interval)
    controller = TimerController(worker.engine, task_service, storage, notifications)
    app.aboutToQuit.connect(worker.stop)

    def on_update(state):
        sys.stdout.write(f"\r{state.mode.value:<10} {fmt_mmss(state.time_left)}  elapsed {fmt_hms(state.total_elapsed)} ")
        sys.stdout.flush()

    def on_confirmation(pending):
        print(f"\n{pending.message}")
        if auto_break:
            controller.proceed_to_break()
        else:
            controller.confirm_task_completion()

    def on_exhausted(message):
        print(f"\n{message}")
        controller.confirm_task_completion()

    def on_completed(done, efficiency):
        print(f"\n{efficiency.icon} '{done.title}' done in {done.actual_duration} min "
              f"({efficiency.badge}, {efficiency.percentage}% vs plan)")
        app.quit()

    controller.timer_updated.connect(on_update)
    controller.confirmation_required.connect(on_confirmation)
    controller.task_time_exhausted.connect(on_exhausted)
    controller.task_completed.connect(on_completed)
    controller.advisory.connect(lambda msg: print(f"\n! {msg}"))

    worker.start()
    controller.start_for_task(task)
    return app.exec()

def main(argv=None):
    logging.basicConfig(
        level=os.environ.get(LOG_LEVEL_ENV, "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = parse_args(argv)

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    # Ctrl+C ends the run without a traceback
    signal.signal(signal.SIGINT, signal.SIG_DFL)

    storage = StorageRepo()
    notifications, task_service = build_services(storage)

    if args.add:
        try:
            task = task_service.add_task(args.add, args.duration)
        except ValueError as e:
            print(f"✗ {e}")
            return 1
        print(f"✓ Added task {task.id}: {task.title} ({task.duration} min)")
        return 0
    if args.list or args.task_id is None:
        print_tasks(task_service.list_tasks())
        return 0

    task = task_service.get_task(args.task_id)
    if task is None:
        print(f"✗ No task with id {args.task_id}")
        return 1
    if task.status in ("completed", "cancelled"):
        print(f"✗ Task {task.id} is already {task.status}")
        return 1
    return run_task(app, storage, task_service, notifications, task, args.auto_break)

if __name__ == "__main__":
    sys.exit(main())
