import threading


class ThreadingScheduler:
    """Programa llamadas diferidas con threading.Timer (cancelables)."""

    def call_later(self, delay, callback, *args):
        timer = threading.Timer(delay, callback, args=args)
        timer.daemon = True
        timer.start()
        return timer
