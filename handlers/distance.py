import math

from geopy.distance import geodesic

# smallest meridian degree length on WGS84, so the box never clips a match
METERS_PER_DEGREE_LAT = 110_574.0
EQUATOR_METERS_PER_DEGREE_LON = 111_320.0


def get_distance_meters(lat1, lng1, lat2, lng2) -> float:
    """Geodesic distance on the WGS84 ellipsoid, in meters."""
    return geodesic((lat1, lng1), (lat2, lng2)).meters


def bounding_box(latitude: float, longitude: float, radius_meters: float):
    """
    Latitude/longitude box containing every point within radius_meters of the
    given point. Used as a cheap SQL prefilter before the exact distance test.

    Returns (min_lat, max_lat, min_lng, max_lng); longitude bounds are None when
    the box would wrap the antimeridian or reach a pole.
    """
    # 1% slack covers the ellipsoid vs. sphere difference
    padded = radius_meters * 1.01
    d_lat = padded / METERS_PER_DEGREE_LAT
    min_lat = max(-90.0, latitude - d_lat)
    max_lat = min(90.0, latitude + d_lat)

    widest_lat = max(abs(min_lat), abs(max_lat))
    if widest_lat >= 89.0:
        return min_lat, max_lat, None, None

    d_lng = padded / (EQUATOR_METERS_PER_DEGREE_LON * math.cos(math.radians(widest_lat)))
    min_lng = longitude - d_lng
    max_lng = longitude + d_lng
    if min_lng < -180.0 or max_lng > 180.0:
        return min_lat, max_lat, None, None
    return min_lat, max_lat, min_lng, max_lng
