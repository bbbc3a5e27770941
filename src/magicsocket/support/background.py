"""
Runs work on daemon threads so the owning thread never blocks on network operations.
Results are reported back through queued events rather than return values.
"""
import logging
import threading
import time

logger = logging.getLogger(__name__)


class BackgroundLoop:
    """ Continually runs a given function on a background thread until stopped.
        Exceptions are logged and posted to exception_handler().
        The background thread is registered as a daemon.
    """

    def __init__(self, fn=None, args=(), name=None, log=logger):
        """
        :param fn the function to run
        :param args arguments to pass to fn
        """
        self.fn = fn
        self.args = args
        self.name = name
        self.stop_event = threading.Event()
        self.background_thread = None
        self.logger = log

    def start(self):
        """
        Starts the background thread. Calling start() again while the thread exists has no effect.
        """
        if self.background_thread is None:
            t = threading.Thread(target=self._run, name=self.name, daemon=True)
            self.background_thread = t
            t.start()

    def stop(self):
        """ signals the loop to exit. Does not wait for the thread. """
        self.stop_event.set()

    def running(self):
        return not self.stop_event.is_set()

    def exception_handler(self, e):
        self.logger.exception(e)

    def _run(self):
        """ The processing loop for the background thread.
             Invokes loop() for as long as the stop signal is not received.
        """
        self._do(self.startup)
        while self.running():
            self._do(self.loop)
        self._do(self.shutdown)
        self.logger.debug("background thread %s exiting" % self.name)

    def _do(self, callme):
        """ runs a function and captures any exceptions """
        try:
            time.sleep(0)
            callme()
        except Exception as e:
            time.sleep(0)
            self.exception_handler(e)

    def startup(self):
        """ template method called when the thread starts"""
        pass

    def loop(self):
        self.fn(*self.args)

    def shutdown(self):
        """ template method called when the thread exits """
        pass


class BackgroundCall(BackgroundLoop):
    """ Runs the function once on a background thread. """

    def loop(self):
        try:
            super().loop()
        finally:
            self.stop()


def run_in_background(fn, *args, name=None):
    call = BackgroundCall(fn, args, name)
    call.start()
    return call
