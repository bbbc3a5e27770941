from magicsocket.transport.base import Transport, TransportConfig, TransportEvent, ConnectEvent, ReconnectEvent, \
    ReconnectAttemptEvent, PingEvent, PongEvent, ErrorEvent, MagicSocketError, TransportError, ConfigurationError, \
    DiscoveryError, parse_url

__all__ = ['Transport', 'TransportConfig', 'TransportEvent', 'ConnectEvent', 'ReconnectEvent',
           'ReconnectAttemptEvent', 'PingEvent', 'PongEvent', 'ErrorEvent', 'MagicSocketError', 'TransportError',
           'ConfigurationError', 'DiscoveryError', 'parse_url']
