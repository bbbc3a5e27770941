import logging

import socketio
from socketio.exceptions import ConnectionError as SocketIOConnectionError

from magicsocket.support.background import BackgroundLoop
from magicsocket.transport.base import Transport, TransportConfig, ConfigurationError, ConnectEvent, \
    ReconnectEvent, ReconnectAttemptEvent, ErrorEvent

logger = logging.getLogger(__name__)


class SocketIOTransport(Transport):
    """
    A transport backed by a python-socketio client.

    The blocking connect runs on a background loop. Once connected, the client retries lost
    connections itself; the loop only takes over when the client gives up, or when the
    initial connect fails.

    Client callbacks map to lifecycle events as follows:
        connect         -> connect the first time, reconnect afterwards
        disconnect      -> reconnectAttempt, unless disconnect() was called
        connect_error   -> error
    The socket.io client does not expose heartbeats, so ping and pong are never posted.
    The client has no compression switch; compression_enabled is kept in the config only.
    """

    def __init__(self, url, config: TransportConfig=None, client_factory=socketio.Client, log=logger):
        super().__init__(url, config)
        self.logger = log
        try:
            self._client = client_factory(reconnection=True,
                                          reconnection_delay=self.config.reconnection_delay,
                                          logger=self.config.logging_enabled,
                                          engineio_logger=self.config.logging_enabled,
                                          handle_sigint=False)
        except (TypeError, ValueError) as e:
            raise ConfigurationError("unable to build socket.io client for %s: %s" % (self.url, e)) from e
        self._client.on('connect', self._on_connect)
        self._client.on('disconnect', self._on_disconnect)
        self._client.on('connect_error', self._on_connect_error)
        self._has_connected = False
        self._error_posted = False
        self._closing = False
        self._loop = None

    @property
    def client(self):
        return self._client

    @property
    def connected(self):
        return self._client.connected

    def connect(self):
        if self._loop is not None or self._closing:
            return
        self._loop = SocketIOConnectLoop(self)
        self._loop.start()

    def disconnect(self):
        if self._closing:
            return
        self._closing = True
        if self._loop is not None:
            self._loop.stop()
        self._client.disconnect()
        self.logger.info("disconnected from %s" % self.url)

    @property
    def closing(self):
        return self._closing

    def _on_connect(self, *args):
        if self._has_connected:
            self._post(ReconnectEvent)
        else:
            self._has_connected = True
            self._post(ConnectEvent)

    def _on_disconnect(self, *args):
        if not self._closing:
            self._post(ReconnectAttemptEvent, args[0] if args else None)

    def _on_connect_error(self, data=None):
        self._error_posted = True
        self._post(ErrorEvent, data)

    def _attempt(self):
        """ makes one blocking connect attempt. Returns True if the client connected. """
        self._error_posted = False
        try:
            self._client.connect(self.url)
            return True
        except SocketIOConnectionError as e:
            self.logger.debug("connect to %s failed: %s" % (self.url, e))
            if not self._error_posted:
                self._post(ErrorEvent, str(e))
            return False


class SocketIOConnectLoop(BackgroundLoop):
    """ connects the transport's client, and reconnects it whenever the client stops retrying by itself. """

    def __init__(self, transport: SocketIOTransport):
        super().__init__(name="socketio-connect %s" % transport.url, log=transport.logger)
        self.transport = transport

    def loop(self):
        transport = self.transport
        delay = transport.config.reconnection_delay
        was_connected = transport._attempt()
        if was_connected:
            if not self.running():
                # disconnect() raced with the connect; drop the late connection
                transport.client.disconnect()
                return
            # returns once the client has stopped retrying; the disconnect callback already reported it
            transport.client.wait()
        if self.running():
            self.stop_event.wait(delay)
        if self.running() and not was_connected:
            transport._post(ReconnectAttemptEvent)
