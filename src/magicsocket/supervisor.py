"""
Keeps a single transport connected to a service found by discovery.

The supervisor listens to a DiscoveryWatcher. When a service resolves to a url other than
the one currently connected, the transport is rebuilt against it. Discovery is suspended
while the transport is connected, and resumed when the transport reports an error.
A manual override url bypasses discovery until it is cleared.
"""
import logging
import weakref
from abc import ABCMeta, abstractmethod
from enum import Enum

from magicsocket.discovery.events import ServiceResolvedEvent, BrowseFailedEvent, ResolveFailedEvent
from magicsocket.discovery.records import candidate_url
from magicsocket.discovery.watcher import DiscoveryWatcher
from magicsocket.support.mixins import CommonEqualityMixin
from magicsocket.transport.base import Transport, TransportConfig, ConfigurationError, parse_url, ConnectEvent, \
    ReconnectEvent, ErrorEvent
from magicsocket.transport.socketio_transport import SocketIOTransport

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    UNCONNECTED = 'unconnected'
    DISCOVERING = 'discovering'
    CONNECTED = 'connected'


class ConnectionTarget(CommonEqualityMixin):
    """ The url the supervisor connects to, and whether it was given manually rather than discovered. """

    def __init__(self, url, is_override=False):
        self.url = url
        self.is_override = is_override


class ConnectionObserver(metaclass=ABCMeta):
    """ Notified of transport lifecycle events by a ConnectionSupervisor. """

    @abstractmethod
    def on_event(self, event):
        """
        :param event: the TransportEvent. event.name is one of
            connect, reconnect, reconnectAttempt, ping, pong, error
        """
        raise NotImplementedError


class ConnectionSupervisor:
    """
    Owns the discovery watcher and at most one live transport.

    All methods, and the event handlers run by update(), must be called on the owning thread.

    :param watcher: the DiscoveryWatcher providing candidate services
    :param transport_factory: a callable (url, TransportConfig) -> Transport. It may raise ConfigurationError.
    :param scheme: the url scheme used for discovered services
    :param transport_config: the configuration passed to each transport built
    :param observer: the ConnectionObserver to notify. Only a weak reference is kept; the
        observer's owner manages its lifetime.
    """

    def __init__(self, watcher: DiscoveryWatcher, transport_factory=SocketIOTransport, scheme='http',
                 transport_config: TransportConfig=None, observer: ConnectionObserver=None, log=logger):
        self.watcher = watcher
        self.transport_factory = transport_factory
        self.scheme = scheme
        self.transport_config = transport_config or TransportConfig(logging_enabled=True, compression_enabled=True)
        self.logger = log
        self._state = ConnectionState.UNCONNECTED
        self._override_url = None
        self._discovered_url = None
        self._transport = None
        self._observer = None
        self.observer = observer
        watcher.listeners.add(self._discovery_event)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def observer(self):
        return self._observer() if self._observer is not None else None

    @observer.setter
    def observer(self, observer):
        self._observer = weakref.ref(observer) if observer is not None else None

    @property
    def override_url(self):
        return self._override_url

    @property
    def target(self):
        """ the authoritative ConnectionTarget, or None """
        if self._override_url is not None:
            return ConnectionTarget(self._override_url, True)
        if self._discovered_url is not None:
            return ConnectionTarget(self._discovered_url)
        return None

    @property
    def url(self):
        """ the override url if set, otherwise the last url derived from discovery """
        target = self.target
        return target.url if target else None

    @url.setter
    def url(self, url):
        if url is None:
            self.clear_override()
        else:
            self.set_override(url)

    def start(self):
        """ starts discovery, unless an override is set. """
        if self._override_url is not None:
            self.logger.debug("override %s is active, not discovering" % self._override_url)
            return
        self.watcher.start()
        self._set_state(ConnectionState.DISCOVERING)

    def set_override(self, url):
        """
        Connects to the given url, abandoning discovery until clear_override() is called.
        Raises ConfigurationError if the url is malformed, leaving the current connection as it was.
        If the transport cannot be built for a valid url, the error is raised after the
        previous connection was torn down, and the supervisor is left unconnected.
        """
        url = parse_url(url)
        self.watcher.stop()
        self._teardown_transport()
        try:
            self._build_transport(url)
        except ConfigurationError:
            self._set_state(ConnectionState.UNCONNECTED)
            raise
        self._override_url = url
        self.logger.info("connecting to override %s" % url)

    def clear_override(self):
        """ removes the override. Call start() to resume discovery. """
        self._override_url = None

    def disconnect(self):
        """ stops discovery and closes the transport. Calling it again has no further effect. """
        self.watcher.stop()
        self._teardown_transport()
        self._set_state(ConnectionState.UNCONNECTED)

    def dispose(self):
        """ disconnects and unregisters from the watcher and the observer. """
        self.disconnect()
        self.watcher.listeners.remove(self._discovery_event)
        self.observer = None

    def update(self):
        """ fires queued discovery events, then queued events from the live transport. """
        self.watcher.update()
        if self._transport is not None:
            self._transport.events.publish()

    def _discovery_event(self, event):
        if type(event) is ServiceResolvedEvent:
            self._service_resolved(event.record)
        elif type(event) is BrowseFailedEvent:
            self.logger.warning("discovery failed: %s" % event.reason)
        elif type(event) is ResolveFailedEvent:
            self.logger.warning("could not resolve %s: %s" % (event.key.name, event.reason))

    def _service_resolved(self, record):
        if self._override_url is not None:
            self.logger.debug("ignoring %s while override %s is set" % (record.name, self._override_url))
            return
        url = candidate_url(record, self.scheme)
        if self._transport is not None and self._transport.url == url:
            self.logger.debug("already connected to %s" % url)
            return
        self._discovered_url = url
        self._teardown_transport()
        try:
            self._build_transport(url)
        except ConfigurationError as e:
            self.logger.error("unable to connect to discovered service %s: %s" % (record.name, e))
            self._set_state(ConnectionState.DISCOVERING)
            return
        self.logger.info("connecting to discovered service %s at %s" % (record.name, url))

    def _build_transport(self, url):
        transport = self.transport_factory(url, self.transport_config)
        transport.events.add(self._transport_event)
        self._transport = transport
        self._set_state(ConnectionState.CONNECTED)
        transport.connect()

    def _teardown_transport(self):
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.events.remove(self._transport_event)
            transport.disconnect()

    def _transport_event(self, event):
        if event.transport is not self._transport:
            self.logger.debug("discarding %s from closed transport %s" % (event.name, event.transport.url))
            return
        self.logger.info("%s %s" % (event.name, self._transport.url))
        if type(event) in (ConnectEvent, ReconnectEvent):
            self.watcher.stop()
            self._set_state(ConnectionState.CONNECTED)
        elif type(event) is ErrorEvent:
            # with an override set discovery stays suspended; the state only tells observers the link is down
            if self._override_url is None:
                self.watcher.start()
            self._set_state(ConnectionState.DISCOVERING)
        self._notify(event)

    def _notify(self, event):
        observer = self.observer
        if observer is not None:
            observer.on_event(event)

    def _set_state(self, state):
        if state is not self._state:
            self.logger.debug("%s -> %s" % (self._state.value, state.value))
            self._state = state


def build_supervisor(settings, observer=None, transport_factory=SocketIOTransport, **watcher_args):
    """
    Builds a supervisor for the service described by the settings.
    :param settings: a SupervisorSettings instance
    """
    watcher = DiscoveryWatcher(settings.service_type, settings.protocol, settings.domain,
                               resolve_timeout=settings.resolve_timeout,
                               resolve_retry=settings.resolve_retry_factory(), **watcher_args)
    config = TransportConfig(logging_enabled=settings.logging_enabled,
                             compression_enabled=settings.compression_enabled,
                             reconnection_delay=settings.reconnection_delay)
    supervisor = ConnectionSupervisor(watcher, transport_factory, settings.scheme, config, observer)
    if settings.override_url:
        supervisor.set_override(settings.override_url)
    return supervisor
