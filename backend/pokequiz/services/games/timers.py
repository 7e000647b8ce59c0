import threading
from typing import Callable


class ScheduledTask:
    """Handle to a delayed callback. Cancelling it prevents the callback from running."""

    def __init__(self, label: str = '') -> None:
        self.label = label
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()


class SocketIOScheduler:
    """Run delayed callbacks as Socket.IO background tasks.

    - Sleeps with ``socketio.sleep`` so it cooperates with eventlet/gevent
    - Runs the callback inside an app context
    - Skips the callback when the task was cancelled while sleeping
    """

    def __init__(self, app, socketio) -> None:
        self.app = app
        self.socketio = socketio

    def schedule(self, delay: float, callback: Callable, *args) -> ScheduledTask:
        task = ScheduledTask(label=getattr(callback, '__name__', 'task'))
        self.socketio.start_background_task(self._run, task, delay, callback, args)
        return task

    def _run(self, task: ScheduledTask, delay: float, callback: Callable, args) -> None:
        heartbeat = float(self.app.config.get('TIMER_HEARTBEAT_SEC', 0) or 0)
        if heartbeat > 0:
            slept = 0.0
            while slept < delay and not task.cancelled:
                step = min(heartbeat, delay - slept)
                self.socketio.sleep(step)
                slept += step
                self.app.logger.info(f"[timer-heartbeat] task={task.label} remaining={max(0.0, delay - slept):.1f}s")
        else:
            self.socketio.sleep(delay)

        if task.cancelled:
            self.app.logger.debug(f"[timer-cancelled] task={task.label}")
            return
        with self.app.app_context():
            try:
                callback(*args)
            except Exception:
                self.app.logger.exception(f"[timer-error] task={task.label}")
