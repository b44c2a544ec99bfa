import binascii
import unittest

from exceptions import *
from msg_verack import build_acknowledgement
from msg_version import parse_greeting
from pybtcnet import *
from test_msg_version import VERSION_PAYLOAD_HEX


VERSION_FRAME_HEX = 'F9BEB4D976657273696F6E0000000000550000002C2F86F3' + VERSION_PAYLOAD_HEX
VERACK_FRAME_HEX = 'F9BEB4D976657261636B000000000000000000005DF6E0E2'


class scripted_transport:
    """In-memory transport: serves a fixed byte string, records what is sent."""

    def __init__(self, incoming: bytes = b''):
        self.incoming = bytearray(incoming)
        self.sent = []

    def recv_exact(self, byte_count: int) -> bytes:
        if len(self.incoming) < byte_count:
            raise ConnectionClosed('scripted peer has %d bytes left, %d wanted' % (len(self.incoming), byte_count))
        data = bytes(self.incoming[:byte_count])
        del self.incoming[:byte_count]
        return data

    def send(self, data: bytes) -> None:
        self.sent.append(data)

    def sent_commands(self) -> list:
        return [message_header.parse_header(frame[:HEADER_SIZE]).command for frame in self.sent]


class TestHeader(unittest.TestCase):
    def test_header_serialisation(self):
        hdr = message_header(mainctx['net_magic'], 'verack', 0, binascii.unhexlify('5DF6E0E2'))
        self.assertEqual(hdr.serialise_header(), binascii.unhexlify(VERACK_FRAME_HEX))

    def test_header_deserialisation(self):
        data = binascii.unhexlify(VERSION_FRAME_HEX)
        hdr = message_header.parse_header(data[:HEADER_SIZE])
        self.assertEqual(hdr.magic, network_magic('f9beb4d9'))
        self.assertEqual(hdr.command, 'version')
        self.assertEqual(hdr.length, 85)
        self.assertEqual(hdr.checksum, binascii.unhexlify('2C2F86F3'))
        self.assertEqual(hdr.serialise_header(), data[:HEADER_SIZE])

    def test_header_wrong_size(self):
        with self.assertRaises(TruncatedInput):
            message_header.parse_header(binascii.unhexlify(VERACK_FRAME_HEX)[:23])

    def test_equality_headers(self):
        h1 = message_header.for_payload(mainctx['net_magic'], 'verack', b'')
        h2 = message_header.for_payload(network_magic(b'\xf9\xbe\xb4\xd9'), 'verack', b'')
        h3 = message_header.for_payload(testctx['net_magic'], 'verack', b'')
        self.assertTrue(h1 == h2)
        self.assertFalse(h1 == h3)

    def test_command_padding(self):
        self.assertEqual(encode_command('verack'), b'verack\x00\x00\x00\x00\x00\x00')
        self.assertEqual(encode_command('sendaddrv2xy'), b'sendaddrv2xy')
        with self.assertRaises(ValueError):
            encode_command('thirteenchars')

    def test_bad_command_field(self):
        with self.assertRaises(MalformedPayload):
            decode_command(b'ver\x00ack\x00\x00\x00\x00\x00')
        with self.assertRaises(MalformedPayload):
            decode_command(b'verack\x07\x00\x00\x00\x00\x00')

    def test_network_magic(self):
        self.assertEqual(str(mainctx['net_magic']), 'F9BEB4D9')
        self.assertEqual(network_magic('0b110907'), testctx['net_magic'])
        self.assertNotEqual(mainctx['net_magic'], signetctx['net_magic'])
        with self.assertRaises(ValueError):
            network_magic(b'\x00\x01')


class TestEncodeFrame(unittest.TestCase):
    def test_version_frame(self):
        payload = binascii.unhexlify(VERSION_PAYLOAD_HEX)
        frame = encode_frame(command_enum.version, payload, mainctx['net_magic'])
        self.assertEqual(frame, binascii.unhexlify(VERSION_FRAME_HEX))

    def test_verack_frame(self):
        frame = encode_frame(command_enum.verack, build_acknowledgement(), b'\xf9\xbe\xb4\xd9')
        self.assertEqual(frame, binascii.unhexlify(VERACK_FRAME_HEX))

    def test_regtest_magic(self):
        frame = encode_frame(command_enum.verack, b'', regtestctx['net_magic'])
        self.assertEqual(frame[:4], b'\xfa\xbf\xb5\xda')
        self.assertEqual(frame[4:], binascii.unhexlify(VERACK_FRAME_HEX)[4:])


class TestDecodeFrame(unittest.TestCase):
    def setUp(self):
        self.version_frame = binascii.unhexlify(VERSION_FRAME_HEX)
        self.verack_frame = binascii.unhexlify(VERACK_FRAME_HEX)
        self.magic = mainctx['net_magic']

    def decode(self, data: bytes):
        return decode_next_frame(scripted_transport(data), self.magic)

    def test_version(self):
        msg = self.decode(self.version_frame)
        self.assertIsInstance(msg, version_message)
        self.assertEqual(msg.payload, parse_greeting(binascii.unhexlify(VERSION_PAYLOAD_HEX)))

    def test_verack(self):
        self.assertIsInstance(self.decode(self.verack_frame), verack_message)

    def test_unknown_command(self):
        frame = encode_frame('sendcmpct', b'\x00' + b'\x01' * 8, self.magic)
        msg = self.decode(frame)
        self.assertIsInstance(msg, unknown_message)
        self.assertEqual(msg.command, 'sendcmpct')
        self.assertEqual(msg.payload, b'\x00' + b'\x01' * 8)

    def test_frames_back_to_back(self):
        transport = scripted_transport(self.verack_frame + self.version_frame + b'\xf9\xbe')
        self.assertIsInstance(decode_next_frame(transport, self.magic), verack_message)
        self.assertIsInstance(decode_next_frame(transport, self.magic), version_message)
        self.assertEqual(bytes(transport.incoming), b'\xf9\xbe')

    def test_get_next_hdr_payload(self):
        hdr, payload = get_next_hdr_payload(scripted_transport(self.version_frame), self.magic)
        self.assertEqual(hdr.command, 'version')
        self.assertEqual(payload, binascii.unhexlify(VERSION_PAYLOAD_HEX))

    def test_corrupt_magic(self):
        for i in range(4):
            data = bytearray(self.version_frame)
            data[i] ^= 0xff
            with self.assertRaises(WrongNetwork):
                self.decode(bytes(data))

    def test_other_network(self):
        frame = encode_frame(command_enum.verack, b'', testctx['net_magic'])
        with self.assertRaises(WrongNetwork) as cm:
            self.decode(frame)
        self.assertEqual(cm.exception.received, b'\x0b\x11\x09\x07')

    def test_corrupt_checksum(self):
        for i in range(20, 24):
            for frame in [self.version_frame, self.verack_frame]:
                data = bytearray(frame)
                data[i] ^= 0x01
                with self.assertRaises(ChecksumMismatch):
                    self.decode(bytes(data))

    def test_corrupt_payload(self):
        data = bytearray(self.version_frame)
        data[HEADER_SIZE + 10] ^= 0x80
        with self.assertRaises(ChecksumMismatch):
            self.decode(bytes(data))

    def test_corrupt_length(self):
        for i in range(16, 20):
            data = bytearray(self.version_frame)
            data[i] ^= 0x01
            with self.assertRaises((ConnectionClosed, ChecksumMismatch, PayloadTooLarge)):
                self.decode(bytes(data))

    def test_length_shorter_than_payload(self):
        data = bytearray(self.version_frame + self.verack_frame)
        data[16] = 84
        with self.assertRaises(ChecksumMismatch):
            self.decode(bytes(data))

    def test_length_longer_than_stream(self):
        data = bytearray(self.version_frame)
        data[16] = 86
        with self.assertRaises(ConnectionClosed):
            self.decode(bytes(data))

    def test_oversized_length(self):
        data = bytearray(self.verack_frame)
        data[16:20] = (MAX_PAYLOAD_SIZE + 1).to_bytes(4, 'little')
        with self.assertRaises(PayloadTooLarge):
            self.decode(bytes(data))

    def test_stream_ends_in_header(self):
        with self.assertRaises(ConnectionClosed):
            self.decode(self.verack_frame[:10])
        with self.assertRaises(ConnectionClosed):
            self.decode(b'')

    def test_verack_with_payload(self):
        with self.assertRaises(MalformedPayload):
            self.decode(encode_frame(command_enum.verack, b'\x00', self.magic))

    def test_malformed_version_payload(self):
        payload = binascii.unhexlify(VERSION_PAYLOAD_HEX)[:50]
        with self.assertRaises(MalformedPayload):
            self.decode(encode_frame(command_enum.version, payload, self.magic))


if __name__ == '__main__':
    unittest.main()
