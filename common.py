import binascii
import hashlib


CHECKSUM_SIZE = 4


def hexlify(data) -> str:
    if data is None: return 'None'
    return binascii.hexlify(data).decode("utf-8").upper()


def double_sha256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


# the integrity digest carried in every frame header
def checksum(payload: bytes) -> bytes:
    return double_sha256(payload)[:CHECKSUM_SIZE]
