from __future__ import annotations

import binascii
from typing import Union

from _logger import get_logger, log_frame
from common import checksum, hexlify, CHECKSUM_SIZE
from exceptions import *
from msg_verack import parse_acknowledgement
from msg_version import version_payload, parse_greeting
from serialisation import read_u32_le, write_u32_le

logger = get_logger()


MAGIC_SIZE = 4
COMMAND_SIZE = 12
HEADER_SIZE = MAGIC_SIZE + COMMAND_SIZE + 4 + CHECKSUM_SIZE
MAX_PAYLOAD_SIZE = 4 * 1000 * 1000


class command_enum:
    version = 'version'
    verack = 'verack'


class network_magic:
    def __init__(self, raw: Union[bytes, str]):
        if isinstance(raw, str):
            raw = binascii.unhexlify(raw)
        if len(raw) != MAGIC_SIZE:
            raise ValueError('network magic must be %d bytes' % MAGIC_SIZE)
        self.raw = bytes(raw)

    def __str__(self):
        return hexlify(self.raw)

    def __eq__(self, other):
        if not isinstance(other, network_magic):
            return False
        return self.raw == other.raw

    def __hash__(self):
        return hash(self.raw)


def encode_command(command: str) -> bytes:
    raw = command.encode('ascii')
    if len(raw) > COMMAND_SIZE:
        raise ValueError('command %r is longer than %d bytes' % (command, COMMAND_SIZE))
    return raw.ljust(COMMAND_SIZE, b'\x00')


def decode_command(raw: bytes) -> str:
    assert len(raw) == COMMAND_SIZE
    name = raw.rstrip(b'\x00')
    # printable ascii only, no zero bytes before the padding
    if any(c < 0x20 or c > 0x7e for c in name):
        raise MalformedPayload('invalid command field %s' % hexlify(raw))
    return name.decode('ascii')


class message_header:
    def __init__(self, magic: network_magic, command: str, length: int, chksum: bytes):
        assert isinstance(magic, network_magic)
        assert len(chksum) == CHECKSUM_SIZE
        self.magic = magic
        self.command = command
        self.length = length
        self.checksum = chksum

    @classmethod
    def for_payload(cls, magic: network_magic, command: str, payload: bytes) -> message_header:
        return message_header(magic, command, len(payload), checksum(payload))

    def serialise_header(self) -> bytes:
        data = self.magic.raw
        data += encode_command(self.command)
        data += write_u32_le(self.length)
        data += self.checksum
        return data

    @classmethod
    def parse_header(cls, data: bytes) -> message_header:
        if len(data) != HEADER_SIZE:
            raise TruncatedInput('header needs %d bytes, got %d' % (HEADER_SIZE, len(data)))
        magic = network_magic(data[0:4])
        command = decode_command(data[4:16])
        length = read_u32_le(data[16:20])
        chksum = data[20:24]
        return message_header(magic, command, length, chksum)

    def __eq__(self, other):
        if not isinstance(other, message_header):
            return False
        return self.serialise_header() == other.serialise_header()

    def __str__(self):
        string = "Magic: %s, " % self.magic
        string += "Command: %s, " % self.command
        string += "Length: %d, " % self.length
        string += "Checksum: %s" % hexlify(self.checksum)
        return string


def as_magic(magic: Union[network_magic, bytes]) -> network_magic:
    if isinstance(magic, network_magic):
        return magic
    return network_magic(magic)


def encode_frame(command: str, payload: bytes, magic: Union[network_magic, bytes]) -> bytes:
    hdr = message_header.for_payload(as_magic(magic), command, payload)
    return hdr.serialise_header() + payload


# The three shapes a decoded frame can take. decode_next_frame returns exactly
# one of these and the handshake matches on them.
class version_message:
    command = command_enum.version

    def __init__(self, payload: version_payload):
        self.payload = payload

    def __str__(self):
        return 'version:\n%s' % self.payload


class verack_message:
    command = command_enum.verack

    def __str__(self):
        return 'verack'


class unknown_message:
    def __init__(self, command: str, payload: bytes):
        self.command = command
        self.payload = payload

    def __str__(self):
        return '%s (%d bytes, not decoded)' % (self.command, len(self.payload))


# wait for the next message, parse the header but not the payload
# the header is returned as an object and the payload as raw bytes
def get_next_hdr_payload(reader, magic: Union[network_magic, bytes]) -> tuple[message_header, bytes]:
    expected = as_magic(magic)

    data = reader.recv_exact(HEADER_SIZE)
    if data[0:MAGIC_SIZE] != expected.raw:
        raise WrongNetwork(expected.raw, data[0:MAGIC_SIZE])

    hdr = message_header.parse_header(data)
    if hdr.length > MAX_PAYLOAD_SIZE:
        raise PayloadTooLarge('%s declares %d payload bytes, limit is %d' % (hdr.command, hdr.length, MAX_PAYLOAD_SIZE))

    payload = reader.recv_exact(hdr.length) if hdr.length else b''
    if checksum(payload) != hdr.checksum:
        raise ChecksumMismatch('%s: header checksum %s, payload checksum %s' %
                               (hdr.command, hexlify(hdr.checksum), hexlify(checksum(payload))))
    log_frame(logger, "Received", hdr.command, data + payload)
    return hdr, payload


def decode_next_frame(reader, magic: Union[network_magic, bytes]):
    hdr, payload = get_next_hdr_payload(reader, magic)
    logger.debug("Received %s" % hdr)

    if hdr.command == command_enum.version:
        return version_message(parse_greeting(payload))
    elif hdr.command == command_enum.verack:
        parse_acknowledgement(payload)
        return verack_message()
    return unknown_message(hdr.command, payload)


mainctx = {
    'name': 'main',
    'net_magic': network_magic('f9beb4d9'),
    'peerport': 8333,
    'dns_seeds': [
        'seed.bitcoin.sipa.be',
        'dnsseed.bluematt.me',
        'seed.bitcoinstats.com',
        'seed.bitcoin.jonasschnelli.ch',
        'seed.btc.petertodd.net',
        'seed.bitcoin.sprovoost.nl',
    ],
}


testctx = {
    'name': 'test',
    'net_magic': network_magic('0b110907'),
    'peerport': 18333,
    'dns_seeds': [
        'testnet-seed.bitcoin.jonasschnelli.ch',
        'seed.tbtc.petertodd.net',
        'seed.testnet.bitcoin.sprovoost.nl',
    ],
}


signetctx = {
    'name': 'signet',
    'net_magic': network_magic('0a03cf40'),
    'peerport': 38333,
    'dns_seeds': [
        'seed.signet.bitcoin.sprovoost.nl',
    ],
}


regtestctx = {
    'name': 'regtest',
    'net_magic': network_magic('fabfb5da'),
    'peerport': 18444,
    'dns_seeds': [],
}
