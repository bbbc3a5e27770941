import logging
import time
from queue import Queue

from zeroconf import Zeroconf, ServiceBrowser, ServiceListener, Error as ZeroconfError

from magicsocket.discovery.events import BrowseStartedEvent, BrowseStoppedEvent, BrowseFailedEvent, \
    ServiceFoundEvent, ServiceRemovedEvent, ServiceResolvedEvent, ResolveFailedEvent, TXTUpdatedEvent, ServiceEvent
from magicsocket.discovery.records import ServiceRecord, ServiceIdentity, qualify_service_type, instance_name, \
    ipv4_addresses, default_domain
from magicsocket.support.background import run_in_background
from magicsocket.support.events import EventSource
from magicsocket.support.retry_strategy import NeverRetryStrategy

logger = logging.getLogger(__name__)


class ServiceRefreshedEvent(ServiceEvent):
    """ internal: an advertised service was resolved again after zeroconf reported an update. """


class BrowseListener(ServiceListener):
    """
    Receives zeroconf browser callbacks for one browse session, on the zeroconf thread.
    Nothing here touches watcher state; work is handed to background resolution and queued events.
    """
    def __init__(self, watcher, session):
        self.watcher = watcher
        self.session = session

    def add_service(self, zc, type_, name):
        watcher = self.watcher
        watcher.logger.info("service available: %s" % name)
        watcher._post(ServiceFoundEvent(watcher, watcher.identity(name), watcher.unresolved_record(name)),
                      self.session)
        watcher._resolve_in_background(self.session, zc, type_, name)

    def remove_service(self, zc, type_, name):
        watcher = self.watcher
        watcher.logger.info("service unavailable: %s" % name)
        watcher._post(ServiceRemovedEvent(watcher, watcher.identity(name)), self.session)

    def update_service(self, zc, type_, name):
        self.watcher._resolve_in_background(self.session, zc, type_, name, refresh=True)


class DiscoveryWatcher:
    """
    Browses for DNS-SD services of one type using zeroconf, and resolves each service found.

    zeroconf calls back on its own threads. Those callbacks only queue events; the
    discovery state in `records` is changed and the events are fired to `listeners` when
    the owning thread calls update().

    Events from a browse session that has been stopped are discarded, so a late resolution
    never reaches the listeners.
    """

    def __init__(self, service_type, protocol='tcp', domain='', resolve_timeout=3000,
                 resolve_retry=NeverRetryStrategy, zeroconf_factory=None, browser_factory=None,
                 log=logger):
        """
        :param service_type  The application-specific service name, without leading underscore, e.g. "http"
        :param protocol      "tcp" or "udp"
        :param domain        The domain to browse. Empty means the local link.
        :param resolve_timeout  How long in milliseconds to wait for a service to resolve.
        :param resolve_retry A callable returning a RetryStrategy for a service that failed to resolve.
        """
        self.service_type = service_type
        self.protocol = protocol
        self.domain = domain or default_domain
        self.qualified_type = qualify_service_type(service_type, protocol, domain)
        self.resolve_timeout = resolve_timeout
        self.listeners = EventSource()
        self.records = {}           # ServiceIdentity -> ServiceRecord
        self.event_queue = Queue()
        self.zeroconf = None
        self.browser = None
        self.logger = log
        self._resolve_retry = resolve_retry
        self._zeroconf_factory = zeroconf_factory or Zeroconf
        self._browser_factory = browser_factory or ServiceBrowser
        self._retries = {}          # ServiceIdentity -> RetryStrategy, for records that failed to resolve
        self._session = 0
        self._running = False

    @property
    def running(self):
        return self._running

    def identity(self, name) -> ServiceIdentity:
        return ServiceIdentity(instance_name(name, self.qualified_type), self.service_type, self.domain)

    def unresolved_record(self, name) -> ServiceRecord:
        return ServiceRecord(instance_name(name, self.qualified_type), self.service_type, self.protocol, self.domain)

    def full_name(self, key: ServiceIdentity):
        return "%s.%s" % (key.name, self.qualified_type)

    def start(self):
        """ begins browsing. Has no effect when already browsing. """
        if self._running:
            return
        self._session += 1
        try:
            self.zeroconf = self._zeroconf_factory()
            self.browser = self._browser_factory(self.zeroconf, self.qualified_type,
                                                 BrowseListener(self, self._session))
        except (OSError, ZeroconfError) as e:
            self.logger.warning("unable to browse for %s: %s" % (self.qualified_type, e))
            self._close()
            self._post(BrowseFailedEvent(self, e))
            return
        self._running = True
        self.logger.info("browsing for zeroconf services of type %s" % self.qualified_type)
        self._post(BrowseStartedEvent(self))

    def stop(self):
        """ cancels browsing. Known records are kept. Has no effect when not browsing. """
        if not self._running:
            return
        self._running = False
        self._session += 1
        self._close()
        self.logger.info("stopped browsing for %s" % self.qualified_type)
        self._post(BrowseStoppedEvent(self))

    def _close(self):
        browser, zeroconf = self.browser, self.zeroconf
        self.browser = self.zeroconf = None
        if browser is not None:
            browser.cancel()
        if zeroconf is not None:
            zeroconf.close()

    def _post(self, event, session=None):
        """ queues an event. Events with a session are dropped if that session has ended by the time of update(). """
        self.event_queue.put((session, event))

    def _resolve_in_background(self, session, zc, type_, name, refresh=False):
        run_in_background(self._resolve, session, zc, type_, name, refresh, name="resolve %s" % name)

    def _resolve(self, session, zc, type_, name, refresh=False):
        """ resolves a service and posts the outcome. Runs on a background thread. """
        key = self.identity(name)
        try:
            info = zc.get_service_info(type_, name, timeout=self.resolve_timeout)
        except (OSError, ZeroconfError) as e:
            info, reason = None, e
        except Exception as e:
            if session != self._session:
                self.logger.debug("resolution of %s ended with its browse: %s" % (name, e))
                return
            raise
        else:
            reason = "no response within %d ms" % self.resolve_timeout
        if info is None or not info.server or info.port is None:
            if session != self._session:
                self.logger.debug("resolution of %s ended with its browse: %s" % (name, reason))
                return
            self.logger.warning("unable to resolve %s: %s" % (name, reason))
            self._post(ResolveFailedEvent(self, key, reason), session)
            return
        record = self.unresolved_record(name).resolved_with(info.server, info.port,
                                                            ipv4_addresses(info.addresses), info.text)
        event_type = ServiceRefreshedEvent if refresh else ServiceResolvedEvent
        self._post(event_type(self, key, record), session)

    def update(self, current_time=None):
        """
        Applies the queued discovery events to the records and fires them to the listeners.
        Also restarts resolution of failed services whose retry is due.
        Must be called on the owning thread.
        """
        self._retry_failed(time.time() if current_time is None else current_time)
        events = []
        queue = self.event_queue
        while not queue.empty():
            session, event = queue.get()
            if session is not None and session != self._session:
                self.logger.debug("discarding event from ended browse: %s" % (event,))
                continue
            events.extend(self._apply(event))
        if events:
            self.listeners.fire_all(events)

    def _apply(self, event):
        """ updates the records for an event, returning the events to fire. """
        records = self.records
        key = getattr(event, 'key', None)
        if type(event) is ServiceFoundEvent:
            if key in records:
                return []
            records[key] = event.record
        elif type(event) is ServiceRemovedEvent:
            records.pop(key, None)
            self._retries.pop(key, None)
        elif type(event) is ServiceResolvedEvent:
            if key not in records:
                self.logger.debug("discarding resolution of removed service %s" % key.name)
                return []
            records[key] = event.record
            self._retries.pop(key, None)
            self.logger.info("resolved %s to %s:%s %s" % (key.name, event.record.hostname, event.record.port,
                                                         event.record.addresses))
        elif type(event) is ResolveFailedEvent:
            if key in records and key not in self._retries:
                self._retries[key] = self._resolve_retry()
        elif type(event) is TXTUpdatedEvent:
            if key in records:
                records[key].txt_record = event.txt_record
        elif type(event) is ServiceRefreshedEvent:
            return self._apply_refresh(event)
        return [event]

    def _apply_refresh(self, event):
        previous = self.records.get(event.key)
        if previous is None:
            return []
        record = event.record
        events = []
        if previous.endpoint != record.endpoint or previous.addresses != record.addresses:
            events += self._apply(ServiceResolvedEvent(self, event.key, record))
        elif previous.txt_record != record.txt_record:
            events += self._apply(TXTUpdatedEvent(self, event.key, record.txt_record))
        return events

    def _retry_failed(self, current_time):
        if not self._running:
            return
        for key, strategy in list(self._retries.items()):
            if strategy(current_time) <= 0:
                self.logger.info("retrying resolution of %s" % key.name)
                self._resolve_in_background(self._session, self.zeroconf, self.qualified_type, self.full_name(key))
