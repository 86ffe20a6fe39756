"""
Exception hierarchy for the geomess core.

The HTTP layer maps these to the result envelope:
- NotRegisteredError -> "you are not registered"
- everything else    -> "system error, please try later"
"""


class GeomessError(Exception):
    """Base class for all errors raised by the geomess core."""


class NotRegisteredError(GeomessError):
    """The device token hash has no user record."""


class StoreUnavailableError(GeomessError):
    """Redis could not serve a request (connection, timeout, command failure)."""


class GeohashError(GeomessError):
    """The geohash codec was given or produced an unusable cell."""


class GeohashRangeError(GeohashError):
    """A point lies outside the bounding box of the grid."""


class UnexpectedNeighborCountError(GeohashError):
    """The neighbor computation did not return exactly 16 cells."""
