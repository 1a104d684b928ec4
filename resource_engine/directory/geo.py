"""
Great-circle distance between coordinates.
"""

import math

EARTH_RADIUS_KM = 6371.0


def haversine_km(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
    radius_km: float = EARTH_RADIUS_KM
) -> float:
    """
    Distance in kilometres between two points given in decimal degrees.

    Args:
        lat1: Latitude of the first point
        lon1: Longitude of the first point
        lat2: Latitude of the second point
        lon2: Longitude of the second point
        radius_km: Sphere radius

    Returns:
        Great-circle distance in km
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return radius_km * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_decay_score(distance_km: float, max_score: float = 20.0, km_per_point: float = 5.0) -> float:
    """Proximity credit: max_score minus one point per km_per_point, floored at 0"""
    return max(0.0, max_score - distance_km / km_per_point)
