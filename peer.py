import ipaddress
from typing import Union

from exceptions import MalformedPayload, TruncatedInput
from serialisation import byte_reader, write_u16_be, write_u64_le

NET_ADDR_SIZE = 8 + 16 + 2


class ip_addr:
    def __init__(self, ipv6: Union[str, ipaddress.IPv6Address] = None):
        if ipv6 is None:
            self.ipv6 = ipaddress.IPv6Address(0)
        elif isinstance(ipv6, str):
            self.ipv6 = ipaddress.IPv6Address(ipv6)
        else:
            self.ipv6 = ipv6
        assert isinstance(self.ipv6, ipaddress.IPv6Address)

    @classmethod
    def from_string(cls, ipstr: str):
        assert isinstance(ipstr, str)
        a = ipaddress.ip_address(ipstr)
        if a.version == 4:
            ipstr = '::ffff:' + str(a)
        ipv6 = ipaddress.IPv6Address(ipstr)
        return ip_addr(ipv6)

    @classmethod
    def parse(cls, data: bytes):
        if len(data) != 16:
            raise MalformedPayload('ip address must be 16 bytes, got %d' % len(data))
        return ip_addr(ipaddress.IPv6Address(data))

    def serialise(self) -> bytes:
        return self.ipv6.packed

    def is_ipv4(self) -> bool:
        return self.ipv6.ipv4_mapped is not None

    def __str__(self):
        if self.ipv6.ipv4_mapped is not None:
            return '::ffff:' + str(self.ipv6.ipv4_mapped)
        return str(self.ipv6)

    def __repr__(self):
        return 'ip_addr(%s)' % str(self)

    def __eq__(self, other):
        if not isinstance(other, ip_addr):
            return False
        return self.ipv6 == other.ipv6

    def __hash__(self):
        return hash(self.ipv6)


# The address record carried inside a version message: the legacy form without
# the leading timestamp, and with the port in network byte order.
class net_addr:
    def __init__(self, services: int = 0, ip: ip_addr = None, port: int = 0):
        self.services = services
        self.ip = ip if ip is not None else ip_addr()
        self.port = port
        assert isinstance(self.ip, ip_addr)

    @classmethod
    def from_endpoint(cls, addr: str, port: int, services: int = 0):
        return net_addr(services, ip_addr.from_string(addr), port)

    def serialise(self) -> bytes:
        data = write_u64_le(self.services)
        data += self.ip.serialise()
        data += write_u16_be(self.port)
        return data

    @classmethod
    def read(cls, reader: byte_reader):
        services = reader.read_u64_le()
        ip = ip_addr.parse(reader.read(16))
        port = reader.read_u16_be()
        return net_addr(services, ip, port)

    @classmethod
    def parse(cls, data: bytes):
        if len(data) < NET_ADDR_SIZE:
            raise TruncatedInput('network address needs %d bytes, have %d' % (NET_ADDR_SIZE, len(data)))
        if len(data) > NET_ADDR_SIZE:
            raise MalformedPayload('network address has %d trailing bytes' % (len(data) - NET_ADDR_SIZE))
        return net_addr.read(byte_reader(data))

    def __str__(self):
        return '[%s]:%s (services: 0x%x)' % (str(self.ip), self.port, self.services)

    def __eq__(self, other):
        if not isinstance(other, net_addr):
            return False
        return self.services == other.services and self.ip == other.ip and self.port == other.port

    def __hash__(self):
        return hash((self.services, self.ip, self.port))
