from __future__ import annotations

import time
from typing import Optional, Union

from common import hexlify
from exceptions import MalformedPayload, MalformedVarint, TruncatedInput
from peer import net_addr
from serialisation import byte_reader, write_i32_le, write_i64_le, write_u64_le, write_varstr


PROTOCOL_VERSION = 70015
NODE_NONE = 0
NODE_NETWORK = (1 << 0)
NODE_WITNESS = (1 << 3)
NODE_NETWORK_LIMITED = (1 << 10)


def make_nonce(rng) -> int:
    return rng.getrandbits(64)


class version_payload:
    def __init__(self,
                 protocol_version: int,
                 services: int,
                 timestamp: int,
                 receiver: net_addr,
                 sender: net_addr,
                 nonce: int,
                 user_agent: bytes,
                 start_height: int,
                 relay: Optional[bool] = None):
        assert isinstance(receiver, net_addr)
        assert isinstance(sender, net_addr)
        assert isinstance(user_agent, bytes)
        self.protocol_version = protocol_version
        self.services = services
        self.timestamp = timestamp
        self.receiver = receiver
        self.sender = sender
        self.nonce = nonce
        self.user_agent = user_agent
        self.start_height = start_height
        # None when the peer left out the trailing relay byte
        self.relay = relay

    def serialise(self) -> bytes:
        data = write_i32_le(self.protocol_version)
        data += write_u64_le(self.services)
        data += write_i64_le(self.timestamp)
        data += self.receiver.serialise()
        data += self.sender.serialise()
        data += write_u64_le(self.nonce)
        data += write_varstr(self.user_agent)
        data += write_i32_le(self.start_height)
        if self.relay is not None:
            data += b'\x01' if self.relay else b'\x00'
        return data

    @classmethod
    def parse(cls, data: bytes) -> version_payload:
        reader = byte_reader(data)
        try:
            protocol_version = reader.read_i32_le()
            services = reader.read_u64_le()
            timestamp = reader.read_i64_le()
            receiver = net_addr.read(reader)
            sender = net_addr.read(reader)
            nonce = reader.read_u64_le()
            user_agent = reader.read_varstr()
            start_height = reader.read_i32_le()
        except (TruncatedInput, MalformedVarint) as e:
            raise MalformedPayload('version payload: %s' % e) from e

        relay = None
        tail = reader.read_rest()
        if len(tail) == 1:
            if tail[0] > 1:
                raise MalformedPayload('version payload: bad relay flag 0x%02x' % tail[0])
            relay = tail[0] == 1
        elif len(tail) > 1:
            raise MalformedPayload('version payload: %d unexpected trailing bytes' % len(tail))

        return version_payload(protocol_version, services, timestamp, receiver, sender,
                               nonce, user_agent, start_height, relay)

    def user_agent_str(self) -> str:
        return self.user_agent.decode('utf-8', errors='replace')

    def __str__(self):
        string = "Protocol Version: %d\n" % self.protocol_version
        string += "Services: 0x%x\n" % self.services
        string += "Timestamp: %d\n" % self.timestamp
        string += "Receiver: %s\n" % self.receiver
        string += "Sender: %s\n" % self.sender
        string += "Nonce: %s\n" % hexlify(self.nonce.to_bytes(8, "big"))
        string += "User Agent: %s\n" % self.user_agent_str()
        string += "Start Height: %d\n" % self.start_height
        string += "Relay: %s" % ('unspecified' if self.relay is None else self.relay)
        return string

    def __eq__(self, other):
        if not isinstance(other, version_payload):
            return False
        return self.__dict__ == other.__dict__


def build_greeting(local_nonce: int,
                   peer_address: net_addr,
                   local_address: net_addr,
                   user_agent: Union[str, bytes],
                   start_height: int,
                   protocol_version: int = PROTOCOL_VERSION,
                   services: int = NODE_NONE,
                   timestamp: int = None,
                   relay: Optional[bool] = False) -> bytes:
    if isinstance(user_agent, str):
        user_agent = user_agent.encode('utf-8')
    if timestamp is None:
        timestamp = int(time.time())
    payload = version_payload(protocol_version, services, timestamp, peer_address, local_address,
                              local_nonce, user_agent, start_height, relay)
    return payload.serialise()


def parse_greeting(data: bytes) -> version_payload:
    return version_payload.parse(data)
