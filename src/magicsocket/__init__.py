"""
Discovers a service on the local network and keeps one realtime socket connected to it.

- DiscoveryWatcher: browses DNS-SD for a service type with zeroconf, resolves each service
  found and fires discovery events (found, removed, resolved, resolve failed, TXT updated).
- Transport: a realtime bidirectional connection to a url, reporting six lifecycle events
  (connect, reconnect, reconnectAttempt, ping, pong, error). SocketIOTransport is backed by python-socketio.
- ConnectionSupervisor: connects a transport to each newly resolved url, suspends discovery while
  connected and resumes it when the transport fails. A manual override url bypasses discovery.
- ConnectionObserver: receives the lifecycle events, e.g. for a status display.

## Threading

zeroconf and the socket.io client call back on their own threads. Those callbacks only queue events.
The owning thread calls ConnectionSupervisor.update() regularly; queued events are fired and all
state changes happen there, so no locking is needed.
"""
from magicsocket.supervisor import ConnectionSupervisor, ConnectionState, ConnectionTarget, ConnectionObserver, \
    build_supervisor

__all__ = ['ConnectionSupervisor', 'ConnectionState', 'ConnectionTarget', 'ConnectionObserver', 'build_supervisor']
