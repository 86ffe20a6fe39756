"""
Projection of WGS84 (EPSG:4326) coordinates onto a planar Mercator square.

Registration, posting and querying must all go through project() so that
every point lands in the same grid.
"""
import math

# Half side of the square the projected plane is bounded by
MERCATOR_MAX = 20037726.37
MERCATOR_MIN = -20037726.37

LONGITUDE_MAX = 180.0
LONGITUDE_MIN = -180.0
LATITUDE_MAX = 90.0
LATITUDE_MIN = -90.0


def project(longitude: float, latitude: float) -> tuple[float, float]:
    """
    Convert longitude/latitude in degrees to Mercator (x, y).

    Points beyond the Mercator latitude limit (about +/-85.05 degrees) are
    pinned to the edge of the square instead of escaping it.

    Args:
        longitude: Longitude in [-180, 180]
        latitude: Latitude in [-90, 90]

    Returns:
        Tuple of (x, y) inside [MERCATOR_MIN, MERCATOR_MAX]
    """
    x = longitude * MERCATOR_MAX / 180

    # tan() is 0 at the south pole
    tangent = math.tan((90 + latitude) * math.pi / 360)
    if tangent <= 0:
        y = MERCATOR_MIN
    else:
        y = math.log(tangent) / (math.pi / 180)
        y = y * MERCATOR_MAX / 180

    return _clamp(x), _clamp(y)


def _clamp(value: float) -> float:
    return min(max(value, MERCATOR_MIN), MERCATOR_MAX)
