"""Coordinate notation parsing and geodesic distance."""
import math
import re
from typing import Tuple
from pyproj import Geod
from locator.core.errors import MalformedInputError


# Signed decimal degrees with an optional trailing degree sign, "," accepted as decimal mark
DECIMAL_PATTERN = r"[-+]?[0-9]+[.,][0-9]+°?"

# Degrees, minutes, seconds and hemisphere, e.g. 52°31′29.600″N
DMS_LATITUDE_PATTERN = r"[0-9]+°[0-9]+′[0-9]+(?:\.[0-9]+)?″[NS]"
DMS_LONGITUDE_PATTERN = r"[0-9]+°[0-9]+′[0-9]+(?:\.[0-9]+)?″[EW]"

_DMS_PARTS = re.compile(r"^([0-9]+)°([0-9]+)′([0-9]+(?:\.[0-9]+)?)″([NSEW])$")

_GEOD = Geod(ellps="WGS84")


def parse_decimal(text: str) -> float:
    """
    Parse a decimal degree component such as ``52.5``, ``-15,43`` or ``13.36°``.

    Args:
        text: Coordinate component text

    Returns:
        Value in decimal degrees
    """
    cleaned = text.strip().rstrip("°").replace(",", ".")
    try:
        return float(cleaned)
    except ValueError:
        raise MalformedInputError(f"Unparsable decimal coordinate: {text!r}") from None


def dms_to_decimal(text: str) -> float:
    """
    Convert a DMS component (``DD°MM′SS.sss″H``) to signed decimal degrees.

    Southern and western hemispheres give negative values.

    Args:
        text: DMS coordinate component

    Returns:
        Value in decimal degrees
    """
    match = _DMS_PARTS.match(text.strip())
    if not match:
        raise MalformedInputError(f"Unparsable DMS coordinate: {text!r}")

    degrees, minutes, seconds, hemisphere = match.groups()
    if int(minutes) >= 60 or float(seconds) >= 60:
        raise MalformedInputError(f"Minutes and seconds must be below 60: {text!r}")

    value = int(degrees) + int(minutes) / 60 + float(seconds) / 3600
    return -value if hemisphere in ("S", "W") else value


def decimal_to_dms_parts(value: float, is_latitude: bool) -> Tuple[int, int, float, str]:
    """
    Split decimal degrees into degrees, minutes, seconds and hemisphere letter.

    Args:
        value: Signed decimal degrees
        is_latitude: Whether to use N/S (latitude) or E/W (longitude)

    Returns:
        Tuple of (degrees, minutes, seconds rounded to 3 places, hemisphere)
    """
    if is_latitude:
        hemisphere = "N" if value >= 0 else "S"
    else:
        hemisphere = "E" if value >= 0 else "W"

    absolute = abs(value)
    degrees = int(absolute)
    minutes_full = (absolute - degrees) * 60
    minutes = int(minutes_full)
    seconds = round((minutes_full - minutes) * 60, 3)

    # Rounding can push seconds (and then minutes) to 60
    if seconds >= 60:
        seconds -= 60
        minutes += 1
    if minutes >= 60:
        minutes -= 60
        degrees += 1

    return degrees, minutes, seconds, hemisphere


def decimal_to_dms(value: float, is_latitude: bool) -> str:
    """Format decimal degrees as ``DD°MM′SS.sss″H``."""
    degrees, minutes, seconds, hemisphere = decimal_to_dms_parts(value, is_latitude)
    return f"{degrees}°{minutes}′{seconds:.3f}″{hemisphere}"


def parse_component(text: str) -> float:
    """Parse a latitude or longitude component in decimal or DMS notation."""
    text = text.strip()
    if "″" in text:
        return dms_to_decimal(text)
    return parse_decimal(text)


def geodesic_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Distance between two points on the WGS84 ellipsoid.

    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point

    Returns:
        Distance in meters
    """
    _, _, distance = _GEOD.inv(lon1, lat1, lon2, lat2)
    return abs(distance)


def bounding_box(latitude: float, longitude: float, radius_meters: float) -> Tuple[float, float, float, float]:
    """
    Latitude/longitude box that contains the circle of ``radius_meters`` around a point.

    Args:
        latitude: Center latitude
        longitude: Center longitude
        radius_meters: Circle radius

    Returns:
        Tuple of (min_lat, max_lat, min_lon, max_lon); longitudes span the
        full range when the circle reaches a pole or the antimeridian
    """
    # 5% margin so points on the circle are never cut off
    reach = radius_meters * 1.05

    if geodesic_distance_m(latitude, longitude, 90.0, longitude) <= reach:
        _, min_lat, _ = _GEOD.fwd(longitude, latitude, 180, reach)
        return min_lat, 90.0, -180.0, 180.0
    if geodesic_distance_m(latitude, longitude, -90.0, longitude) <= reach:
        _, max_lat, _ = _GEOD.fwd(longitude, latitude, 0, reach)
        return -90.0, max_lat, -180.0, 180.0

    _, max_lat, _ = _GEOD.fwd(longitude, latitude, 0, reach)
    _, min_lat, _ = _GEOD.fwd(longitude, latitude, 180, reach)
    east, _, _ = _GEOD.fwd(longitude, latitude, 90, reach)

    # fwd wraps longitudes into [-180, 180]
    half_width = (east - longitude) % 360.0
    # The circle is widest poleward of its center
    widest = max(abs(min_lat), abs(max_lat))
    half_width *= math.cos(math.radians(latitude)) / math.cos(math.radians(widest))
    if half_width >= 180.0 or longitude - half_width < -180.0 or longitude + half_width > 180.0:
        return min_lat, max_lat, -180.0, 180.0
    return min_lat, max_lat, longitude - half_width, longitude + half_width
