import math
import time

from magicsocket.support.mixins import CommonEqualityMixin


class RetryStrategy:
    """ Decides how long to wait before an operation is retried. A result <= 0 means retry now. """
    def __call__(self, current_time=None):
        return 0


class NeverRetryStrategy(RetryStrategy):
    """ An operation that failed is never retried. """
    def __call__(self, current_time=None):
        return math.inf


class PeriodRetryStrategy(RetryStrategy, CommonEqualityMixin):

    def __init__(self, retry_period, last_tried=None):
        """
        :param retry_period: The retry period in seconds.
        :param last_tried: The time the operation was last tried. When None, the first call
            retries immediately.
        """
        self.last_tried = last_tried         # the time last tried
        self.retry_period = retry_period

    def __call__(self, current_time=None, dryRun=False):
        """return the length of time until an operation should be retried
            :param dryRun: when True, the last tried time is not updated
        """
        if current_time is None:
            current_time = time.time()
        result = self._time_to_retry(current_time)
        if not dryRun and result <= 0:
            self.last_tried = current_time
        return result

    def _time_to_retry(self, current_time):
        return 0 if self.last_tried is None else self.retry_period - (current_time - self.last_tried)


def retry_strategy_factory(retry_period):
    """
    Builds a factory for the retry strategy of a single failed operation.
    A period of 0 or less means failures are never retried.

    >>> retry_strategy_factory(0)()(123)
    inf
    """
    if not retry_period or retry_period <= 0:
        return NeverRetryStrategy
    # the first attempt already failed, so the first retry is a whole period away
    return lambda: PeriodRetryStrategy(retry_period, last_tried=time.time())
