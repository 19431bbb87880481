import logging
import threading

logger = logging.getLogger(__name__)


def _log_error(exc):
    logger.error("Scheduled task failed: %s", exc, exc_info=exc)


class TimeoutScheduler:
    """
    Runs one-shot delayed callbacks and in-doubt watches on daemon threads.

    Callbacks must take the per-transaction lock themselves before touching a
    context. Any exception a callback raises is handed to ``error_handler``.
    """

    def __init__(self, error_handler=None):
        self.error_handler = error_handler or _log_error
        self._timers = set()
        self._lock = threading.Lock()
        self._stopped = threading.Event()

    def _run(self, callback, args):
        try:
            return callback(*args)
        except Exception as e:
            self.error_handler(e)
            return False

    def call_later(self, delay, callback, *args):
        """Run callback once after delay seconds"""
        def fire():
            with self._lock:
                self._timers.discard(timer)
            if not self._stopped.is_set():
                self._run(callback, args)

        timer = threading.Timer(delay, fire)
        timer.daemon = True
        with self._lock:
            self._timers.add(timer)
        timer.start()
        return timer

    def watch(self, waiter, interval, on_timeout):
        """
        Call on_timeout every interval seconds until the waiter completes.

        on_timeout returns False to stop watching early.
        """
        def loop():
            while not self._stopped.is_set():
                if waiter.await_or_timeout(interval):
                    return
                if self._stopped.is_set() or not self._run(on_timeout, ()):
                    return

        thread = threading.Thread(target=loop, name="in-doubt-watch", daemon=True)
        thread.start()
        return thread

    def pending(self):
        with self._lock:
            return len(self._timers)

    def shutdown(self):
        self._stopped.set()
        with self._lock:
            timers, self._timers = self._timers, set()
        for timer in timers:
            timer.cancel()
