"""
    Events fired by a DiscoveryWatcher. Browse events describe the watcher itself,
    service events describe a single advertised service, identified by its ServiceIdentity.
"""
from magicsocket.support.mixins import CommonEqualityMixin


class DiscoveryEvent(CommonEqualityMixin):
    """ Notification from a DiscoveryWatcher. """
    def __init__(self, source):
        self.source = source


class BrowseStartedEvent(DiscoveryEvent):
    """ Browsing has begun. """


class BrowseStoppedEvent(DiscoveryEvent):
    """ Browsing was stopped. Known records are kept. """


class BrowseFailedEvent(DiscoveryEvent):
    """ Browsing could not begin. The watcher is stopped and start() may be retried. """
    def __init__(self, source, reason):
        super().__init__(source)
        self.reason = reason


class ServiceEvent(DiscoveryEvent):
    def __init__(self, source, key, record=None):
        """
        :param source   The DiscoveryWatcher that posted this event
        :param key      The ServiceIdentity of the service
        :param record   The ServiceRecord, when the event carries one.
        """
        super().__init__(source)
        self.key = key
        self.record = record


class ServiceFoundEvent(ServiceEvent):
    """ A service is advertised and is being resolved. """


class ServiceRemovedEvent(ServiceEvent):
    """ A service is no longer advertised. """


class ServiceResolvedEvent(ServiceEvent):
    """ The hostname, port and addresses of a service are known. """


class ResolveFailedEvent(ServiceEvent):
    """ Resolution failed. The record stays unresolved. """
    def __init__(self, source, key, reason):
        super().__init__(source, key)
        self.reason = reason


class TXTUpdatedEvent(ServiceEvent):
    """ The TXT metadata of a service changed. """
    def __init__(self, source, key, txt_record):
        super().__init__(source, key)
        self.txt_record = txt_record
