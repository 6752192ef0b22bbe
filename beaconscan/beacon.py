"""Decoded beacon sightings.

A ``Beacon`` pairs one format-specific identity with the signal envelope
it was received with (RSSI, calibrated TX power and an optional running
average).  Distance and proximity are computed on first access and then
kept for the lifetime of the record.
"""

import enum
import threading
from dataclasses import dataclass
from typing import Optional, Union

from .distance import Proximity, classify_proximity, estimate_accuracy

NIL_UUID = "00000000-0000-0000-0000-000000000000"
ESTIMOTE_LEGACY_TX_POWER = -55


class BeaconFormat(enum.Enum):
    IBEACON = "ibeacon"
    EDDYSTONE_UID = "eddystone_uid"
    EDDYSTONE_URL = "eddystone_url"
    ESTIMOTE_LEGACY = "estimote_legacy"


@dataclass(frozen=True)
class IBeaconIdentity:
    """Apple iBeacon three-part identifier."""

    proximity_uuid: str
    major: int
    minor: int

    format = BeaconFormat.IBEACON


@dataclass(frozen=True)
class EddystoneUIDIdentity:
    namespace: str
    instance: str

    format = BeaconFormat.EDDYSTONE_UID


@dataclass(frozen=True)
class EddystoneURLIdentity:
    url: str

    format = BeaconFormat.EDDYSTONE_URL


@dataclass(frozen=True)
class EstimoteLegacyIdentity:
    """Placeholder identity: the legacy frame is recognised by its
    manufacturer pattern only, so every such beacon looks the same."""

    proximity_uuid: str = NIL_UUID
    major: int = 0
    minor: int = 0

    format = BeaconFormat.ESTIMOTE_LEGACY


Identity = Union[IBeaconIdentity, EddystoneUIDIdentity,
                 EddystoneURLIdentity, EstimoteLegacyIdentity]


class Beacon:
    """A single beacon sighting.

    Two sightings are equal when they carry the same format and identity,
    regardless of their signal readings.  For iBeacons that is the
    ``(major, minor, proximity_uuid)`` triple.
    """

    def __init__(self, identity: Identity, rssi: int, tx_power: int,
                 running_average_rssi: Optional[float] = None):
        self.identity = identity
        self.rssi = rssi
        self.tx_power = tx_power
        # Set by an averaging layer; only read on the first accuracy lookup
        self.running_average_rssi = running_average_rssi
        self._lock = threading.Lock()
        self._accuracy: Optional[float] = None
        self._proximity: Optional[Proximity] = None

    def __getstate__(self):
        # Locks cannot be pickled; snapshot the estimates instead
        with self._lock:
            state = self.__dict__.copy()
        del state["_lock"]
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        self._lock = threading.Lock()

    @property
    def format(self) -> BeaconFormat:
        return self.identity.format

    # ------------------------------------------------------------------
    # Variant fields
    # ------------------------------------------------------------------

    def _identity_field(self, name: str):
        try:
            return getattr(self.identity, name)
        except AttributeError:
            raise AttributeError(
                f"{self.format.value} beacon has no field '{name}'") from None

    @property
    def proximity_uuid(self) -> str:
        return self._identity_field("proximity_uuid")

    @property
    def major(self) -> int:
        return self._identity_field("major")

    @property
    def minor(self) -> int:
        return self._identity_field("minor")

    @property
    def namespace(self) -> str:
        return self._identity_field("namespace")

    @property
    def instance(self) -> str:
        return self._identity_field("instance")

    @property
    def url(self) -> str:
        return self._identity_field("url")

    # ------------------------------------------------------------------
    # Memoized signal estimates
    # ------------------------------------------------------------------

    def _accuracy_locked(self) -> float:
        if self._accuracy is None:
            rssi = (self.running_average_rssi
                    if self.running_average_rssi is not None else self.rssi)
            self._accuracy = estimate_accuracy(self.tx_power, rssi)
        return self._accuracy

    @property
    def accuracy(self) -> float:
        """Estimated distance in meters, or -1.0 when unknown.

        Computed once; later changes to the RSSI fields do not affect it.
        """
        with self._lock:
            return self._accuracy_locked()

    @property
    def proximity(self) -> Proximity:
        with self._lock:
            if self._proximity is None:
                self._proximity = classify_proximity(self._accuracy_locked())
            return self._proximity

    def copy(self) -> "Beacon":
        """Return a new record with the same identity, readings and any
        estimates already computed."""
        other = Beacon(self.identity, self.rssi, self.tx_power,
                       running_average_rssi=self.running_average_rssi)
        with self._lock:
            other._accuracy = self._accuracy
            other._proximity = self._proximity
        return other

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def __eq__(self, other):
        if not isinstance(other, Beacon):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self):
        return hash((self.format, self.identity))

    def __repr__(self):
        return (f"Beacon({self.identity!r}, rssi={self.rssi}, "
                f"tx_power={self.tx_power})")

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    def to_text(self) -> str:
        """One-line display form, e.g.
        ``UUID=E2C56DB5-... Major=1 Minor=2 TxPower=-59``."""
        ident = self.identity
        if isinstance(ident, (IBeaconIdentity, EstimoteLegacyIdentity)):
            fields = (f"UUID={ident.proximity_uuid.upper()} "
                      f"Major={ident.major} Minor={ident.minor}")
        elif isinstance(ident, EddystoneUIDIdentity):
            fields = (f"Namespace={ident.namespace.upper()} "
                      f"Instance={ident.instance.upper()}")
        else:
            fields = f"EddystoneURL={ident.url}"
        return f"{fields} TxPower={self.tx_power}"

    __str__ = to_text

    def to_csv(self) -> str:
        """``<UUID>,<major>,<minor>,<txPower>`` with an upper-case UUID."""
        ident = self.identity
        if not isinstance(ident, (IBeaconIdentity, EstimoteLegacyIdentity)):
            raise ValueError(
                f"CSV form is only defined for iBeacon records, "
                f"not {self.format.value}")
        return (f"{ident.proximity_uuid.upper()},{ident.major},"
                f"{ident.minor},{self.tx_power}")

    def as_dict(self) -> dict:
        """Flat record for JSON output."""
        record = {"format": self.format.value}
        record.update(vars(self.identity))
        record.update({
            "rssi": self.rssi,
            "tx_power": self.tx_power,
            "running_average_rssi": self.running_average_rssi,
            "accuracy": round(self.accuracy, 2),
            "proximity": self.proximity.name.lower(),
        })
        return record
