import ipaddress
import random
import socket
import time

import dns.exception
import dns.resolver

from _logger import get_logger, VERBOSE
from common import hexlify
from exceptions import ConnectionClosed, InvalidEndpoint, Timeout, TransportError


logger = get_logger()


def read_socket(sock: socket.socket, byte_count: int, deadline: float = None) -> bytes:
    """Read exactly byte_count bytes from sock.

    deadline is an absolute time.monotonic() value; when given, no single recv
    may wait past it, so a peer trickling bytes cannot stretch the read.
    """
    data = bytearray()
    timeout = sock.gettimeout()
    try:
        while len(data) < byte_count:
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise Timeout('deadline passed, got %d of %d bytes' % (len(data), byte_count))
                sock.settimeout(remaining if timeout is None else min(timeout, remaining))
            try:
                chunk = sock.recv(byte_count - len(data))
            except socket.timeout:
                raise Timeout('no data within %ss, got %d of %d bytes' % (sock.gettimeout(), len(data), byte_count))
            except OSError as e:
                logger.log(VERBOSE, f"Error while reading {byte_count} bytes", exc_info=True)
                raise TransportError('read failed: %s' % e) from e

            if len(chunk) == 0:
                raise ConnectionClosed('read_socket: got %d of %d bytes, data=%s' % (len(data), byte_count, hexlify(bytes(data))))
            data.extend(chunk)
    finally:
        if deadline is not None:
            sock.settimeout(timeout)

    return bytes(data)


class socket_transport:
    def __init__(self, sock: socket.socket, timeout: float = None, deadline: float = None):
        self.sock = sock
        # absolute time.monotonic() value bounding every read, or None
        self.deadline = deadline
        if timeout is not None:
            self.sock.settimeout(timeout)

    def recv_exact(self, byte_count: int) -> bytes:
        return read_socket(self.sock, byte_count, self.deadline)

    def send(self, data: bytes) -> None:
        try:
            self.sock.sendall(data)
        except socket.timeout:
            raise Timeout('write of %d bytes timed out' % len(data))
        except OSError as e:
            raise TransportError('write failed: %s' % e) from e

    def peer_endpoint(self) -> tuple[str, int]:
        addr = self.sock.getpeername()
        return addr[0], addr[1]

    def close(self) -> None:
        self.sock.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


def resolve_host(host: str) -> list[str]:
    """Return the addresses of host as IPv6 strings, IPv4 ones mapped to ::ffff:."""
    try:
        literal = ipaddress.ip_address(host)
    except ValueError:
        literal = None
    if literal is not None:
        return [host] if literal.version == 6 else ['::ffff:' + host]

    try:
        infos = socket.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    except (OSError, UnicodeError) as e:
        raise TransportError('cannot resolve %s: %s' % (host, e)) from e

    addresses = []
    for family, _, _, _, sockaddr in infos:
        if family == socket.AF_INET:
            address = '::ffff:' + sockaddr[0]
        elif family == socket.AF_INET6:
            address = sockaddr[0]
        else:
            continue
        if address not in addresses:
            addresses.append(address)

    if not addresses:
        raise TransportError('no address found for %s' % host)
    return addresses


def connect_address(addr: str, port: int, timeout: float) -> socket.socket:
    try:
        s = socket.socket(socket.AF_INET6, socket.SOCK_STREAM)
    except OSError as e:
        raise TransportError('cannot create an IPv6 socket: %s' % e) from e
    s.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
    s.settimeout(timeout)
    try:
        s.connect((addr, port))
    except socket.timeout:
        s.close()
        raise Timeout('connect to %s:%s timed out' % (addr, port))
    except OSError as e:
        s.close()
        raise TransportError('connect to %s:%s failed: %s' % (addr, port, e)) from e
    return s


# hostnames are resolved first and each address is tried in turn
def get_connected_socket_endpoint(addr: str, port: int, timeout: float = 3) -> socket.socket:
    error = None
    for address in resolve_host(addr):
        try:
            return connect_address(address, port, timeout)
        except (Timeout, TransportError) as e:
            logger.debug("Connect to %s via %s failed: %s" % (addr, address, e))
            error = e
    raise error


def parse_port(string: str, endpoint: str) -> int:
    if not (string.isascii() and string.isdigit()) or int(string) > 65535:
        raise InvalidEndpoint('invalid port %r in endpoint %r' % (string, endpoint))
    return int(string)


def parse_endpoint(string: str, default_port: int = None) -> tuple[str, int]:
    if not string:
        raise InvalidEndpoint('empty endpoint')

    # IPv6 with port
    if string[0] == '[':
        ip_end_index = string.find(']')
        if ip_end_index < 0:
            raise InvalidEndpoint('missing ] in endpoint %r' % string)
        ip_address = string[1:ip_end_index]
        tail = string[ip_end_index + 1:]
        if tail and not tail.startswith(':'):
            raise InvalidEndpoint('unexpected %r after ] in endpoint %r' % (tail, string))
        port = parse_port(tail[1:], string) if tail else default_port

    # IPv6 without port
    elif string.count(':') > 1:
        ip_address = string
        port = default_port

    # IPv4 or domain name
    else:
        details = string.split(':')
        ip_address = details[0]
        if not ip_address:
            raise InvalidEndpoint('missing address in endpoint %r' % string)

        # only digits and dots means an IPv4 literal
        if not non_digits_in_ip(ip_address):
            ip_address = '::ffff:' + ip_address

        port = parse_port(details[1], string) if len(details) > 1 else default_port

    if not ip_address:
        raise InvalidEndpoint('missing address in endpoint %r' % string)
    return ip_address, port


def non_digits_in_ip(string: str) -> bool:
    for s in string:
        if s == '.':
            continue
        elif not s.isdigit():
            return True
    return False


# return a list of ipv4 mapped ipv6 strings
def get_all_dns_addresses(seed: str) -> list[str]:
    result = dns.resolver.resolve(seed, 'A')
    return ['::ffff:' + x.to_text() for x in result]


def get_random_seed_peer(ctx: dict, rng: random.Random = None) -> tuple[str, int]:
    rng = rng if rng is not None else random.SystemRandom()
    seeds = list(ctx['dns_seeds'])
    rng.shuffle(seeds)
    for seed in seeds:
        try:
            addresses = get_all_dns_addresses(seed)
        except dns.exception.DNSException as e:
            logger.info("DNS seed %s failed: %s" % (seed, e))
            continue
        if addresses:
            return rng.choice(addresses), ctx['peerport']
    raise TransportError('no address could be resolved from the %s DNS seeds' % ctx['name'])
