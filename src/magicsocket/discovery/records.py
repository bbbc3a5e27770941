import socket
from collections import namedtuple

from magicsocket.support.mixins import CommonEqualityMixin

ServiceIdentity = namedtuple('ServiceIdentity', ['name', 'service_type', 'domain'])

default_domain = 'local.'


def qualify_service_type(service_type, protocol='tcp', domain=''):
    """
    Builds the DNS-SD service type browsed for. An empty domain means the local link.

    >>> qualify_service_type("abc")
    '_abc._tcp.local.'
    >>> qualify_service_type("abc", "udp", "local")
    '_abc._udp.local.'
    """
    domain = domain or default_domain
    if not domain.endswith('.'):
        domain += '.'
    return "_%s._%s.%s" % (service_type, protocol, domain)


def instance_name(full_name, qualified_type):
    """
    Strips the service type from a fully qualified service instance name.

    >>> instance_name("Lab Display._abc._tcp.local.", "_abc._tcp.local.")
    'Lab Display'
    >>> instance_name("odd", "_abc._tcp.local.")
    'odd'
    """
    suffix = '.' + qualified_type
    return full_name[:-len(suffix)] if full_name.endswith(suffix) else full_name


def strip_hostname(hostname):
    """
    Removes trailing separators from a resolved hostname.

    >>> strip_hostname("host.local.")
    'host.local'
    """
    return hostname.rstrip('.') if hostname else hostname


def ipv4_addresses(packed_addresses):
    """
    Converts packed network addresses to dotted-decimal strings, keeping their order.
    Anything that is not a 4 byte IPv4 address is skipped.

    >>> ipv4_addresses([bytes([192, 168, 1, 5]), bytes(16)])
    ['192.168.1.5']
    """
    return [socket.inet_ntoa(bytes(a)) for a in packed_addresses or () if len(a) == 4]


class ServiceRecord(CommonEqualityMixin):
    """
    A service seen on the network. Until it is resolved, hostname and port are None
    and addresses is empty.
    """
    def __init__(self, name, service_type, protocol_name, domain, hostname=None, port=None, addresses=(),
                 txt_record=None):
        self.name = name
        self.service_type = service_type
        self.protocol_name = protocol_name
        self.domain = domain
        self.hostname = hostname
        self.port = port
        self.addresses = list(addresses)
        self.txt_record = txt_record

    @property
    def identity(self) -> ServiceIdentity:
        return ServiceIdentity(self.name, self.service_type, self.domain)

    @property
    def resolved(self):
        return self.hostname is not None

    @property
    def endpoint(self):
        """ the (hostname, port) pair, or None when unresolved. """
        return (self.hostname, self.port) if self.resolved else None

    def resolved_with(self, hostname, port, addresses, txt_record=None):
        """ a copy of this record with the resolved details. """
        return ServiceRecord(self.name, self.service_type, self.protocol_name, self.domain,
                             strip_hostname(hostname), port, addresses, txt_record)


def candidate_url(record: ServiceRecord, scheme='http'):
    """
    The transport url for a resolved service.

    >>> candidate_url(ServiceRecord("n", "abc", "tcp", "local.", "host.", 80))
    'http://host:80'
    """
    return "%s://%s:%d" % (scheme, strip_hostname(record.hostname), record.port)
