"""Spatial operations on river centerlines and WKT points."""
from typing import Optional
from shapely import wkt
from shapely.errors import ShapelyError
from shapely.geometry import Point
from shapely.ops import nearest_points
from locator.core.coordinates import geodesic_distance_m
from locator.core.models import Coordinate


def load_line(line_wkt: str):
    """
    Load a (multi)linestring from WKT.

    Args:
        line_wkt: WKT text of a river part

    Returns:
        Shapely geometry or None for empty/invalid input
    """
    if not line_wkt:
        return None
    try:
        geometry = wkt.loads(line_wkt)
    except ShapelyError:
        return None
    if geometry.is_empty:
        return None
    return geometry


def closest_point_on_line(line_wkt: str, latitude: float, longitude: float) -> Optional[Coordinate]:
    """
    Find the point on a line nearest to a coordinate.

    Works in lon/lat space, which is accurate enough for the short
    distances places are mapped to rivers over.

    Args:
        line_wkt: WKT text of the line
        latitude: Latitude of the query point
        longitude: Longitude of the query point

    Returns:
        Nearest point on the line or None if the line is unusable
    """
    line = load_line(line_wkt)
    if line is None:
        return None
    nearest, _ = nearest_points(line, Point(longitude, latitude))
    return Coordinate(latitude=nearest.y, longitude=nearest.x)


def distance_to_line_m(line_wkt: str, latitude: float, longitude: float) -> Optional[float]:
    """Geodesic distance in meters from a coordinate to the nearest point on a line."""
    point = closest_point_on_line(line_wkt, latitude, longitude)
    if point is None:
        return None
    return geodesic_distance_m(latitude, longitude, point.latitude, point.longitude)


def parse_point_wkt(point_wkt: str) -> Coordinate:
    """
    Parse ``POINT (lon lat)`` into a Coordinate.

    Raises:
        ValueError: If the text is not a point
    """
    try:
        geometry = wkt.loads(point_wkt)
    except ShapelyError as e:
        raise ValueError(f"Invalid point WKT: {point_wkt!r}") from e
    if geometry.geom_type != "Point" or geometry.is_empty:
        raise ValueError(f"Expected a point, got {geometry.geom_type}")
    return Coordinate(latitude=geometry.y, longitude=geometry.x)
