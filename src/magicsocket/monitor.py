"""
Runs a supervisor and logs what it does, for manual testing against a real service.

    python -m magicsocket.monitor [service_type] [--url http://host:port]
"""
import argparse
import logging
import time

from magicsocket.config.settings import load_settings
from magicsocket.supervisor import ConnectionObserver, build_supervisor

logger = logging.getLogger(__name__)


class LoggingObserver(ConnectionObserver):
    def __init__(self, log=logger):
        self.logger = log

    def on_event(self, event):
        self.logger.info("%s: %s" % (event.name, event.transport.url))


def monitor(settings, period=0.1, iterations=None, sleep=time.sleep):
    """ runs the supervisor on the calling thread, until interrupted or for the given number of iterations. """
    observer = LoggingObserver()
    supervisor = build_supervisor(settings, observer)
    supervisor.start()
    try:
        count = 0
        while iterations is None or count < iterations:
            supervisor.update()
            sleep(period)
            count += 1
    except KeyboardInterrupt:
        logger.info("interrupted")
    finally:
        supervisor.dispose()
    return supervisor


def main(argv=None):
    parser = argparse.ArgumentParser(description="Discover a service and keep a socket connected to it.")
    parser.add_argument('service_type', nargs='?', help="the DNS-SD service name, without the leading underscore")
    parser.add_argument('--url', dest='override_url', help="connect to this url instead of discovering")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, handlers=[logging.StreamHandler()])
    settings = load_settings(service_type=args.service_type, override_url=args.override_url)
    monitor(settings)


if __name__ == '__main__':
    main()
