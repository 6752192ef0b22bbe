"""Feed bleak advertisements into the decoder.

bleak hands detection callbacks an ``AdvertisementData`` whose manufacturer
and service data, and its service UUID list, have already been split out of
the raw advertising packet.  The helpers here rebuild each of those as the
AD structure it was broadcast in so the decoder sees the same bytes a raw
scan record holds.  Legacy Estimote frames are recognised from the
complete 128-bit service UUID list.
"""

import uuid
from typing import Iterator, Optional

from bleak.backends.scanner import AdvertisementData

from .beacon import Beacon
from .decoder import decode

_AD_TYPE_UUID128_COMPLETE = 0x07
_AD_TYPE_SERVICE_DATA_16 = 0x16
_AD_TYPE_MANUFACTURER_DATA = 0xFF

_BLUETOOTH_BASE_UUID_SUFFIX = "-0000-1000-8000-00805f9b34fb"


def _short_uuid(service_uuid: str) -> Optional[int]:
    """Return the 16-bit form of a Bluetooth base UUID, else None."""
    s = service_uuid.lower()
    if len(s) == 36 and s.startswith("0000") and s.endswith(_BLUETOOTH_BASE_UUID_SUFFIX):
        try:
            return int(s[4:8], 16)
        except ValueError:
            return None
    return None


def _ad_structure(ad_type: int, body: bytes) -> bytes:
    # Length octet covers the type byte.  The trailing zero-length octet
    # ends the significant part of the advertising data.
    return bytes([min(len(body) + 1, 0xFF), ad_type]) + body + b"\x00"


def iter_payloads(adv: AdvertisementData) -> Iterator[bytes]:
    """Yield one terminated AD structure per service-data entry, per
    manufacturer-data entry and per 128-bit service UUID, in that order."""
    for service_uuid, data in (adv.service_data or {}).items():
        short = _short_uuid(service_uuid)
        if short is None:
            continue
        yield _ad_structure(_AD_TYPE_SERVICE_DATA_16,
                            short.to_bytes(2, "little") + bytes(data))
    for company_id, data in (adv.manufacturer_data or {}).items():
        yield _ad_structure(_AD_TYPE_MANUFACTURER_DATA,
                            (company_id & 0xFFFF).to_bytes(2, "little") + bytes(data))
    for service_uuid in adv.service_uuids or []:
        if _short_uuid(service_uuid) is not None:
            continue
        try:
            raw = uuid.UUID(service_uuid).bytes
        except ValueError:
            continue
        # UUIDs are broadcast least significant byte first
        yield _ad_structure(_AD_TYPE_UUID128_COMPLETE, raw[::-1])


def decode_advertisement(adv: AdvertisementData,
                         expand_url: bool = False) -> Optional[Beacon]:
    """Decode the first beacon frame carried by a bleak advertisement."""
    for payload in iter_payloads(adv):
        beacon = decode(payload, adv.rssi, expand_url=expand_url)
        if beacon is not None:
            return beacon
    return None
