from __future__ import annotations

import random
import threading
import time
from typing import Callable, Optional

from _logger import get_logger, log_frame
from exceptions import Cancelled, IncompatiblePeer, InvalidEndpoint, Timeout
from msg_verack import build_acknowledgement
from msg_version import NODE_NONE, PROTOCOL_VERSION, build_greeting, make_nonce
from peer import ip_addr, net_addr
from pybtcnet import command_enum, decode_next_frame, encode_frame, unknown_message, verack_message, \
    version_message

logger = get_logger()

XBTLIB_VERSION = '0.1.0'
DEFAULT_USER_AGENT = '/xbtlib:%s/' % XBTLIB_VERSION


class handshake_config:
    def __init__(self,
                 protocol_version: int = PROTOCOL_VERSION,
                 services: int = NODE_NONE,
                 user_agent: str = DEFAULT_USER_AGENT,
                 start_height: int = 0,
                 relay: Optional[bool] = False,
                 local_address: str = '::ffff:127.0.0.1',
                 local_port: int = None,
                 read_timeout: float = 10.0,
                 deadline: float = 30.0,
                 min_peer_version: int = 0):
        try:
            ip_addr.from_string(local_address)
        except ValueError as e:
            raise InvalidEndpoint('invalid local address %r: %s' % (local_address, e)) from e
        if local_port is not None and not 0 <= local_port <= 0xffff:
            raise InvalidEndpoint('invalid local port %r' % (local_port,))

        self.protocol_version = protocol_version
        self.services = services
        self.user_agent = user_agent
        self.start_height = start_height
        self.relay = relay
        self.local_address = local_address
        # None means the default port of the network
        self.local_port = local_port
        self.read_timeout = read_timeout
        self.deadline = deadline
        self.min_peer_version = min_peer_version


class handshake_state:
    start = 'start'
    greeting_sent = 'greeting_sent'
    peer_greeting_received = 'peer_greeting_received'
    done = 'done'


class handshake_session:
    """State of one handshake attempt with one peer.

    The peer may send its version and verack in either order, with unrelated
    messages in between, so the two are tracked as independent flags and the
    session is only done once both have arrived. Our verack goes out exactly
    once, as soon as the peer's first version has been accepted.
    """

    def __init__(self, ctx: dict, transport, peer_address: net_addr,
                 config: handshake_config, rng):
        self.ctx = ctx
        self.transport = transport
        self.peer_address = peer_address
        self.config = config
        self.local_nonce = make_nonce(rng)

        self.sent_greeting = False
        self.received_greeting = False
        self.received_acknowledgement = False
        self.sent_acknowledgement = False
        self.peer_version = None

    @property
    def state(self) -> str:
        if self.received_greeting and self.received_acknowledgement:
            return handshake_state.done
        elif self.received_greeting:
            return handshake_state.peer_greeting_received
        elif self.sent_greeting:
            return handshake_state.greeting_sent
        return handshake_state.start

    def is_done(self) -> bool:
        return self.state == handshake_state.done

    def local_address(self) -> net_addr:
        port = self.config.local_port if self.config.local_port is not None else self.ctx['peerport']
        return net_addr.from_endpoint(self.config.local_address, port, self.config.services)

    def send_frame(self, command: str, payload: bytes) -> None:
        frame = encode_frame(command, payload, self.ctx['net_magic'])
        log_frame(logger, "Sending", command, frame)
        self.transport.send(frame)

    def start(self) -> None:
        assert self.state == handshake_state.start
        payload = build_greeting(self.local_nonce,
                                 self.peer_address,
                                 self.local_address(),
                                 self.config.user_agent,
                                 self.config.start_height,
                                 protocol_version=self.config.protocol_version,
                                 services=self.config.services,
                                 relay=self.config.relay)
        self.send_frame(command_enum.version, payload)
        self.sent_greeting = True
        logger.info("Sent version to %s" % self.peer_address)

    def process(self, message) -> None:
        if isinstance(message, version_message):
            self.on_version(message)
        elif isinstance(message, verack_message):
            self.on_verack()
        elif isinstance(message, unknown_message):
            logger.debug("Skipping %s while handshaking" % message)
        else:
            raise TypeError('not a decoded message: %r' % (message,))

    def on_version(self, message: version_message) -> None:
        if self.received_greeting:
            logger.warning("Ignoring duplicate version from %s" % self.peer_address)
            return

        peer_version = message.payload
        logger.info("Received version %d (%s) at height %d" %
                    (peer_version.protocol_version, peer_version.user_agent_str(), peer_version.start_height))
        if self.config.min_peer_version and peer_version.protocol_version < self.config.min_peer_version:
            raise IncompatiblePeer(peer_version.protocol_version, self.config.min_peer_version)

        self.peer_version = peer_version
        self.received_greeting = True

        self.send_frame(command_enum.verack, build_acknowledgement())
        self.sent_acknowledgement = True
        logger.info("Sent verack")

    def on_verack(self) -> None:
        if self.received_acknowledgement:
            logger.debug("Ignoring duplicate verack")
            return
        self.received_acknowledgement = True
        logger.info("Received verack")


def perform_handshake(ctx: dict, transport, peer_address: net_addr,
                      config: handshake_config = None,
                      rng=None,
                      cancel_event: threading.Event = None,
                      clock: Callable[[], float] = time.monotonic):
    """Run one version/verack exchange over an already connected transport.

    Returns the peer's version payload. Any failure raises and nothing more is
    sent to the peer after it; retrying is up to the caller.

    The deadline is checked here between frames only. A transport that must not
    overrun it while a single frame trickles in enforces it itself, see
    socket_transport(deadline=...).
    """
    if config is None:
        config = handshake_config()
    if rng is None:
        rng = random.SystemRandom()

    session = handshake_session(ctx, transport, peer_address, config, rng)
    deadline = clock() + config.deadline

    session.start()
    while not session.is_done():
        if cancel_event is not None and cancel_event.is_set():
            raise Cancelled('handshake cancelled in state %s' % session.state)
        if clock() > deadline:
            raise Timeout('handshake not complete after %ss, state %s' % (config.deadline, session.state))

        message = decode_next_frame(transport, ctx['net_magic'])
        session.process(message)

    logger.info("Handshake with %s complete" % peer_address)
    return session.peer_version
