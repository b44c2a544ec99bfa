"""Fixed-width and variable-length primitives of the peer wire format.

Integers are little-endian unless the function name says otherwise. The
variable-length integer is the "compact size" encoding:

    value < 0xFD           1 byte
    value <= 0xFFFF        0xFD + u16
    value <= 0xFFFFFFFF    0xFE + u32
    otherwise              0xFF + u64
"""

import struct

from exceptions import MalformedVarint, TruncatedInput


VARINT_MARKER_U16 = 0xfd
VARINT_MARKER_U32 = 0xfe
VARINT_MARKER_U64 = 0xff

MAX_U64 = 0xffffffffffffffff


def _pack(fmt: str, value: int) -> bytes:
    try:
        return struct.pack(fmt, value)
    except struct.error as e:
        raise ValueError('%s does not fit %s: %s' % (value, fmt, e))


def _unpack(fmt: str, data: bytes) -> int:
    size = struct.calcsize(fmt)
    if len(data) < size:
        raise TruncatedInput('need %d bytes, have %d' % (size, len(data)))
    return struct.unpack(fmt, data[:size])[0]


def write_u16_le(value: int) -> bytes:
    return _pack('<H', value)


def write_u32_le(value: int) -> bytes:
    return _pack('<I', value)


def write_u64_le(value: int) -> bytes:
    return _pack('<Q', value)


def write_i32_le(value: int) -> bytes:
    return _pack('<i', value)


def write_i64_le(value: int) -> bytes:
    return _pack('<q', value)


def write_u16_be(value: int) -> bytes:
    return _pack('>H', value)


def read_u16_le(data: bytes) -> int:
    return _unpack('<H', data)


def read_u32_le(data: bytes) -> int:
    return _unpack('<I', data)


def read_u64_le(data: bytes) -> int:
    return _unpack('<Q', data)


def read_i32_le(data: bytes) -> int:
    return _unpack('<i', data)


def read_i64_le(data: bytes) -> int:
    return _unpack('<q', data)


def read_u16_be(data: bytes) -> int:
    return _unpack('>H', data)


def write_varint(value: int) -> bytes:
    if value < 0 or value > MAX_U64:
        raise ValueError('varint out of range: %s' % value)
    if value < VARINT_MARKER_U16:
        return struct.pack('<B', value)
    elif value <= 0xffff:
        return struct.pack('<BH', VARINT_MARKER_U16, value)
    elif value <= 0xffffffff:
        return struct.pack('<BI', VARINT_MARKER_U32, value)
    return struct.pack('<BQ', VARINT_MARKER_U64, value)


def varint_size(value: int) -> int:
    if value < VARINT_MARKER_U16:
        return 1
    elif value <= 0xffff:
        return 3
    elif value <= 0xffffffff:
        return 5
    return 9


def read_varint(data: bytes) -> tuple[int, int]:
    """Decode a varint from the start of data, return (value, bytes consumed)."""
    if len(data) == 0:
        raise TruncatedInput('varint: no data')

    marker = data[0]
    if marker == VARINT_MARKER_U16:
        fmt = '<H'
    elif marker == VARINT_MARKER_U32:
        fmt = '<I'
    elif marker == VARINT_MARKER_U64:
        fmt = '<Q'
    else:
        return marker, 1

    size = struct.calcsize(fmt)
    if len(data) < 1 + size:
        raise MalformedVarint('marker 0x%02x needs %d bytes, %d remain' % (marker, size, len(data) - 1))
    return struct.unpack(fmt, data[1:1 + size])[0], 1 + size


def write_varstr(s: bytes) -> bytes:
    return write_varint(len(s)) + s


def read_varstr(data: bytes) -> tuple[bytes, int]:
    """Decode a length prefixed byte string, return (string, bytes consumed)."""
    length, consumed = read_varint(data)
    end = consumed + length
    if len(data) < end:
        raise TruncatedInput('varstr declares %d bytes, %d remain' % (length, len(data) - consumed))
    return bytes(data[consumed:end]), end


class byte_reader:
    """Cursor over a bytes object, the stream form of the read_* functions."""

    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.offset = 0

    def remaining(self) -> int:
        return len(self.data) - self.offset

    def read(self, count: int) -> bytes:
        if count > self.remaining():
            raise TruncatedInput('need %d bytes at offset %d, have %d' % (count, self.offset, self.remaining()))
        chunk = self.data[self.offset:self.offset + count]
        self.offset += count
        return chunk

    def read_rest(self) -> bytes:
        return self.read(self.remaining())

    def _read_fixed(self, reader, size: int) -> int:
        value = reader(self.data[self.offset:])
        self.offset += size
        return value

    def read_u16_le(self) -> int:
        return self._read_fixed(read_u16_le, 2)

    def read_u32_le(self) -> int:
        return self._read_fixed(read_u32_le, 4)

    def read_u64_le(self) -> int:
        return self._read_fixed(read_u64_le, 8)

    def read_i32_le(self) -> int:
        return self._read_fixed(read_i32_le, 4)

    def read_i64_le(self) -> int:
        return self._read_fixed(read_i64_le, 8)

    def read_u16_be(self) -> int:
        return self._read_fixed(read_u16_be, 2)

    def read_varint(self) -> int:
        value, consumed = read_varint(self.data[self.offset:])
        self.offset += consumed
        return value

    def read_varstr(self) -> bytes:
        s, consumed = read_varstr(self.data[self.offset:])
        self.offset += consumed
        return s
