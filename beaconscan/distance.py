"""Distance estimation from calibrated TX power and a measured RSSI."""

import enum
import logging
import math

_LOGGER = logging.getLogger(__name__)

# Accuracy value meaning "no estimate possible"
UNKNOWN_ACCURACY = -1.0

# Proximity bucket boundaries (metres)
_IMMEDIATE_LIMIT = 0.5   # strictly below -> immediate
_NEAR_LIMIT = 4.0        # at or below -> near

# Far-field power-law fit, used once measured RSSI reaches the 1 m reference
_FAR_COEFFICIENT = 0.89976
_FAR_EXPONENT = 7.7095
_FAR_INTERCEPT = 0.111
_NEAR_EXPONENT = 10


class Proximity(enum.IntEnum):
    """Coarse distance bucket.  Values match the integer codes beacons
    have historically been reported with."""

    UNKNOWN = 0
    IMMEDIATE = 1
    NEAR = 2
    FAR = 3


def estimate_accuracy(tx_power: int, rssi: float) -> float:
    """Estimate the distance to a beacon in meters.

    *tx_power* is the calibrated RSSI the beacon reports for 1 metre and
    *rssi* the measured (or averaged) signal strength.  A zero reading, or a
    beacon with no calibration, yields ``UNKNOWN_ACCURACY``.
    """
    if rssi == 0 or tx_power == 0:
        return UNKNOWN_ACCURACY

    _LOGGER.debug("calculating accuracy based on rssi of %s", rssi)
    ratio = rssi * 1.0 / tx_power
    try:
        if ratio < 1.0:
            return ratio ** _NEAR_EXPONENT
        accuracy = _FAR_COEFFICIENT * ratio ** _FAR_EXPONENT + _FAR_INTERCEPT
    except OverflowError:
        # Out of float range: too far to estimate, still a far reading
        return math.inf
    _LOGGER.debug("avg rssi: %s accuracy: %s", rssi, accuracy)
    return accuracy


def classify_proximity(accuracy: float) -> Proximity:
    """Bucket an accuracy estimate into a ``Proximity`` class."""
    if accuracy < 0:
        return Proximity.UNKNOWN
    if accuracy < _IMMEDIATE_LIMIT:
        return Proximity.IMMEDIATE
    if accuracy <= _NEAR_LIMIT:
        return Proximity.NEAR
    return Proximity.FAR
