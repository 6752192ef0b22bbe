"""Beacon advertisement decoder.

Advertising data is not parsed as length-prefixed AD structures.  Instead
the payload is probed for the magic byte sequences of each supported
beacon format at a small range of start offsets, which tolerates flags or
vendor records of unknown size in front of the beacon frame.  Eddystone
frames are searched first, then iBeacon and legacy Estimote frames.
"""

import logging
import uuid
from typing import Optional

from .beacon import (
    ESTIMOTE_LEGACY_TX_POWER,
    Beacon,
    EddystoneUIDIdentity,
    EddystoneURLIdentity,
    EstimoteLegacyIdentity,
    IBeaconIdentity,
)

_LOGGER = logging.getLogger(__name__)

# Highest start offset probed for each family (inclusive)
_EDDYSTONE_MAX_OFFSET = 11
_MANUFACTURER_MAX_OFFSET = 5

_EDDYSTONE_UID_MAGIC = b"\xaa\xfe\x00"
_EDDYSTONE_URL_MAGIC = b"\xaa\xfe\x10"
_IBEACON_MAGIC = b"\x4c\x00\x02\x15"       # Apple company id + iBeacon type/len
_ESTIMOTE_LEGACY_MAGIC = b"\x2d\x24\xbf\x16"

# Minimum bytes past the start offset for a complete frame
_EDDYSTONE_UID_LEN = 19
_EDDYSTONE_URL_LEN = 6
_IBEACON_LEN = 25

_URL_SCHEMES = {
    0x00: "http://www.",
    0x01: "https://www.",
    0x02: "http://",
}
_URL_SCHEME_DEFAULT = "https://"

# Eddystone-URL expansion codes 0x00..0x0D
_URL_SUFFIXES = (
    ".com/", ".org/", ".edu/", ".net/", ".info/", ".biz/", ".gov/",
    ".com", ".org", ".edu", ".net", ".info", ".biz", ".gov",
)


def _signed_byte(value: int) -> int:
    return value - 0x100 if value > 0x7F else value


def format_uuid(raw: bytes) -> str:
    """Render 16 raw bytes as a lower-case dashed 8-4-4-4-12 string."""
    return str(uuid.UUID(bytes=bytes(raw)))


def expand_url_bytes(encoded: bytes, expand: bool = False) -> str:
    """Turn encoded Eddystone-URL bytes into text.

    Each byte becomes the character with the same code point.  With
    *expand*, bytes 0x00-0x0D are replaced by their domain suffixes.
    """
    if not expand:
        return bytes(encoded).decode("latin-1")
    parts = []
    for b in encoded:
        if b < len(_URL_SUFFIXES):
            parts.append(_URL_SUFFIXES[b])
        else:
            parts.append(chr(b))
    return "".join(parts)


def _decode_eddystone(data: bytes, offset: int, rssi: int,
                      expand_url: bool) -> Optional[Beacon]:
    magic = data[offset:offset + 3]
    if magic == _EDDYSTONE_UID_MAGIC:
        if len(data) < offset + _EDDYSTONE_UID_LEN:
            _LOGGER.debug("truncated Eddystone-UID frame at offset %d", offset)
            return None
        identity = EddystoneUIDIdentity(
            namespace=data[offset + 4:offset + 13].hex(),
            instance=data[offset + 14:offset + 19].hex(),
        )
        return Beacon(identity, rssi, _signed_byte(data[offset + 3]))

    if magic == _EDDYSTONE_URL_MAGIC:
        if len(data) < offset + _EDDYSTONE_URL_LEN:
            _LOGGER.debug("truncated Eddystone-URL frame at offset %d", offset)
            return None
        prefix = _URL_SCHEMES.get(data[offset + 4], _URL_SCHEME_DEFAULT)
        # The final payload byte is not part of the URL
        body = expand_url_bytes(data[offset + 5:len(data) - 1], expand_url)
        identity = EddystoneURLIdentity(url=prefix + body)
        return Beacon(identity, rssi, _signed_byte(data[offset + 3]))

    return None


def _decode_manufacturer(data: bytes, offset: int,
                         rssi: int) -> Optional[Beacon]:
    magic = data[offset:offset + 4]
    if magic == _IBEACON_MAGIC:
        if len(data) < offset + _IBEACON_LEN:
            _LOGGER.debug("truncated iBeacon frame at offset %d", offset)
            return None
        identity = IBeaconIdentity(
            proximity_uuid=format_uuid(data[offset + 4:offset + 20]),
            major=int.from_bytes(data[offset + 20:offset + 22], "big"),
            minor=int.from_bytes(data[offset + 22:offset + 24], "big"),
        )
        return Beacon(identity, rssi, _signed_byte(data[offset + 24]))

    if magic == _ESTIMOTE_LEGACY_MAGIC:
        return Beacon(EstimoteLegacyIdentity(), rssi, ESTIMOTE_LEGACY_TX_POWER)

    return None


def decode(payload: bytes, rssi: int,
           expand_url: bool = False) -> Optional[Beacon]:
    """Decode raw advertising data into a ``Beacon``.

    Returns ``None`` when no supported beacon frame is found; that is the
    normal result for most BLE traffic and never an error.  Truncated or
    malformed frames are skipped the same way.
    """
    data = bytes(payload)

    for offset in range(_EDDYSTONE_MAX_OFFSET + 1):
        beacon = _decode_eddystone(data, offset, rssi, expand_url)
        if beacon is not None:
            _LOGGER.debug("%s frame at offset %d", beacon.format.value, offset)
            return beacon

    for offset in range(_MANUFACTURER_MAX_OFFSET + 1):
        beacon = _decode_manufacturer(data, offset, rssi)
        if beacon is not None:
            _LOGGER.debug("%s frame at offset %d", beacon.format.value, offset)
            return beacon

    return None
