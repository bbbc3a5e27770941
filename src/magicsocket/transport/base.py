"""
The realtime transport abstraction: a bidirectional connection to a URL that reports
its lifecycle through six events. The payloads exchanged once connected are not modelled here.
"""
import logging
from abc import abstractmethod
from urllib.parse import urlsplit

from magicsocket.support.events import QueuedEventSource
from magicsocket.support.mixins import CommonEqualityMixin

logger = logging.getLogger(__name__)


class MagicSocketError(Exception):
    """ Base class for errors raised by this package. """


class DiscoveryError(MagicSocketError):
    """ Service discovery could not be started. """


class TransportError(MagicSocketError):
    """ Indicates an error condition with a transport connection. """


class ConfigurationError(MagicSocketError):
    """ A transport could not be built, such as for a malformed URL. Recoverable. """


supported_schemes = ('http', 'https', 'ws', 'wss')


def parse_url(url):
    """
    Validates a transport URL, returning it as a string.
    Raises ConfigurationError when the url is not an absolute http(s) or ws(s) URL with a host.

    >>> parse_url("http://host:80")
    'http://host:80'
    """
    if not isinstance(url, str) or not url.strip():
        raise ConfigurationError("no url given: %r" % (url,))
    url = url.strip()
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as e:
        raise ConfigurationError("malformed url %s: %s" % (url, e)) from e
    if parts.scheme not in supported_schemes:
        raise ConfigurationError("unsupported scheme in url %s" % url)
    if not parts.hostname:
        raise ConfigurationError("no host in url %s" % url)
    if port == 0:
        raise ConfigurationError("invalid port in url %s" % url)
    return url


class TransportConfig(CommonEqualityMixin):
    """
    :param logging_enabled: when True, the transport library logs its own traffic
    :param compression_enabled: when True, the transport compresses messages where the library supports it
    :param reconnection_delay: seconds to wait between the transport's own reconnection attempts
    """
    def __init__(self, logging_enabled=True, compression_enabled=True, reconnection_delay=1.0):
        self.logging_enabled = logging_enabled
        self.compression_enabled = compression_enabled
        self.reconnection_delay = reconnection_delay


class TransportEvent(CommonEqualityMixin):
    """ base class for transport lifecycle events. """
    name = None

    def __init__(self, transport, data=None):
        """
        :param transport: the Transport that posted this event
        :param data: details supplied by the transport library, if any
        """
        self.transport = transport
        self.data = data


class ConnectEvent(TransportEvent):
    """ The transport established its first connection. """
    name = 'connect'


class ReconnectEvent(TransportEvent):
    """ The transport re-established a connection that was lost. """
    name = 'reconnect'


class ReconnectAttemptEvent(TransportEvent):
    """ The transport lost its connection, or failed to make one, and will retry. """
    name = 'reconnectAttempt'


class PingEvent(TransportEvent):
    name = 'ping'


class PongEvent(TransportEvent):
    name = 'pong'


class ErrorEvent(TransportEvent):
    """ The transport failed. """
    name = 'error'


lifecycle_events = (ConnectEvent, ReconnectEvent, ReconnectAttemptEvent, PingEvent, PongEvent, ErrorEvent)


class Transport:
    """
    A realtime bidirectional connection to a url.
    connect() and disconnect() never block the caller; the outcome is reported by
    posting TransportEvent instances to `events`, which are fired when the owner calls events.publish().
    """

    def __init__(self, url, config: TransportConfig=None):
        self._url = parse_url(url)
        self.config = config or TransportConfig()
        self.events = QueuedEventSource()

    @property
    def url(self):
        return self._url

    @property
    @abstractmethod
    def connected(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def connect(self):
        """ starts connecting. Calling connect() on a connected transport has no effect. """
        raise NotImplementedError

    @abstractmethod
    def disconnect(self):
        """ closes the connection and stops any retries. Safe to call repeatedly. """
        raise NotImplementedError

    def _post(self, event_type, data=None):
        event = event_type(self, data)
        logger.debug("%s: %s %s" % (self._url, event.name, data if data is not None else ''))
        self.events.post(event)
