""" The :class:`Runtime` is the explicit worker pool handed to a
    :class:`dslink.connection.ConnectionManager` and available to link code:
    immediate background calls, one-shot delayed calls, and periodic calls
    at a fixed cadence.
"""

import concurrent.futures
import logging
import threading
import time

logger = logging.getLogger(__name__)


class Scheduled:
    """ Handle for a delayed call. :func:`cancel` prevents the call if it
        has not started yet.
    """

    def __init__(self, runtime, delay, method):

        self.runtime = runtime
        self.delay = delay
        self.method = method
        self.cancelled = threading.Event()

        self.timer = threading.Timer(delay, self._fire)
        self.timer.daemon = True


    def _fire(self):
        if self.cancelled.is_set():
            return
        self.runtime.submit(self.method)


    def cancel(self):
        self.cancelled.set()
        self.timer.cancel()


# end of class Scheduled



class Periodic:
    """ Background thread calling a method on an interval of *period*
        seconds. The cadence is kept regardless of how long each call
        takes: the next wakeup is the previous one plus the interval.
    """

    def __init__(self, method, period):

        self.method = method
        self.interval = float(period)
        self.shutdown = False

        self.alarm = threading.Event()
        self.thread = threading.Thread(target=self.run)
        self.thread.daemon = True
        self.thread.start()


    def period(self, period):
        """ Update the polling interval to *period* seconds, starting a new
            cadence immediately.
        """

        self.interval = float(period)
        self.alarm.set()


    def run(self):

        interval = self.interval
        next = time.time()

        while True:
            begin = time.time()

            if self.shutdown == True:
                break

            if self.alarm.is_set() == True:
                self.alarm.clear()
                interval = self.interval
                next = begin + interval
            else:
                next += interval

            try:
                self.method()
            except Exception:
                logger.exception('periodic call to %r failed', self.method)

            delay = next - time.time()
            if delay > 0:
                self.alarm.wait(delay)


    def cancel(self):
        self.shutdown = True
        self.alarm.set()


# end of class Periodic



class Runtime:
    """ A pool of *workers* background threads. Exceptions raised by work
        submitted here are logged, not propagated.
    """

    def __init__(self, workers=4):

        self.workers = concurrent.futures.ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix='dslink')
        self.periodic_calls = list()
        self.lock = threading.Lock()


    def _run(self, method, *args):
        try:
            return method(*args)
        except Exception:
            logger.exception('background call to %r failed', method)


    def submit(self, method, *args):
        """ Run *method* on a worker thread; returns a
            :class:`concurrent.futures.Future`.
        """

        return self.workers.submit(self._run, method, *args)


    def schedule(self, delay, method):
        """ Run *method* on a worker thread after *delay* seconds. Returns a
            :class:`Scheduled` handle that can be cancelled.
        """

        scheduled = Scheduled(self, delay, method)
        scheduled.timer.start()
        return scheduled


    def periodic(self, method, period):
        """ Call *method* every *period* seconds, on a dedicated thread,
            until the returned :class:`Periodic` handle is cancelled.
        """

        periodic = Periodic(method, period)

        self.lock.acquire()
        self.periodic_calls.append(periodic)
        self.lock.release()

        return periodic


    def shutdown(self, wait=False):

        self.lock.acquire()
        periodic_calls = list(self.periodic_calls)
        self.periodic_calls.clear()
        self.lock.release()

        for periodic in periodic_calls:
            periodic.cancel()

        self.workers.shutdown(wait=wait)


# end of class Runtime


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
