class XbtLibException(Exception):
    """Base exception class for all project-specific exceptions."""
    pass


class CommsError(XbtLibException):
    pass


class TransportError(CommsError):
    pass


class ConnectionClosed(CommsError):
    pass


class Timeout(CommsError):
    pass


class Cancelled(CommsError):
    pass


class ParseError(XbtLibException):
    pass


class WrongNetwork(ParseError):
    def __init__(self, expected: bytes, received: bytes):
        self.expected = expected
        self.received = received
        super(WrongNetwork, self).__init__('expected magic %s, received %s' % (expected.hex(), received.hex()))


class ChecksumMismatch(ParseError):
    pass


class MalformedVarint(ParseError):
    pass


class TruncatedInput(ParseError):
    pass


class MalformedPayload(ParseError):
    pass


class PayloadTooLarge(MalformedPayload):
    pass


class InvalidEndpoint(ParseError):
    pass


class HandshakeExchangeFail(XbtLibException):
    pass


class IncompatiblePeer(HandshakeExchangeFail):
    def __init__(self, peer_version: int, min_version: int):
        self.peer_version = peer_version
        self.min_version = min_version
        super(IncompatiblePeer, self).__init__(
            'peer protocol version %d is below the minimum %d' % (peer_version, min_version))
