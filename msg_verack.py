from exceptions import MalformedPayload


def build_acknowledgement() -> bytes:
    return b''


def parse_acknowledgement(data: bytes) -> None:
    if len(data) != 0:
        raise MalformedPayload('verack carries a %d byte payload' % len(data))
