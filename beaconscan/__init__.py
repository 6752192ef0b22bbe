"""BLE beacon advertisement decoding and distance estimation."""

from .beacon import (
    NIL_UUID,
    Beacon,
    BeaconFormat,
    EddystoneUIDIdentity,
    EddystoneURLIdentity,
    EstimoteLegacyIdentity,
    IBeaconIdentity,
)
from .decoder import decode, expand_url_bytes, format_uuid
from .distance import (
    UNKNOWN_ACCURACY,
    Proximity,
    classify_proximity,
    estimate_accuracy,
)

__version__ = "0.1.0"

__all__ = [
    "Beacon",
    "BeaconFormat",
    "EddystoneUIDIdentity",
    "EddystoneURLIdentity",
    "EstimoteLegacyIdentity",
    "IBeaconIdentity",
    "NIL_UUID",
    "Proximity",
    "UNKNOWN_ACCURACY",
    "classify_proximity",
    "decode",
    "estimate_accuracy",
    "expand_url_bytes",
    "format_uuid",
]
