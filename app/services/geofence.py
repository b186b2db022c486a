from __future__ import annotations

import math

from app.schemas.registration import GeoPoint

# approx: 1 deg latitude ~ 110.574 km, 1 deg longitude ~ 111.320 km * cos(lat)
KM_PER_DEG_LAT = 110.574
KM_PER_DEG_LNG_AT_EQUATOR = 111.320

DEFAULT_HALF_SIDE_KM = 2.0


def km_to_lat_deg(km: float) -> float:
    return km / KM_PER_DEG_LAT


def km_to_lng_deg(km: float, lat_deg: float) -> float:
    return km / (KM_PER_DEG_LNG_AT_EQUATOR * math.cos(math.radians(lat_deg)))


def wrap_lng(lng: float) -> float:
    """Folds a longitude back into [-180, 180)."""
    if -180 <= lng < 180:
        return lng
    return (lng + 180) % 360 - 180


def compute_square_corners(center: GeoPoint, half_side_km: float = DEFAULT_HALF_SIDE_KM) -> list[GeoPoint]:
    """
    Returns the four corners of the square service area around ``center``,
    ordered clockwise starting north-east: NE, NW, SW, SE.

    Corners that cross the antimeridian are wrapped. Not defined at the
    poles, where the longitude delta diverges.
    """
    d_lat = km_to_lat_deg(half_side_km)
    d_lng = km_to_lng_deg(half_side_km, center.lat)
    east = wrap_lng(center.lng + d_lng)
    west = wrap_lng(center.lng - d_lng)
    return [
        GeoPoint.model_construct(lat=center.lat + d_lat, lng=east),  # NE
        GeoPoint.model_construct(lat=center.lat + d_lat, lng=west),  # NW
        GeoPoint.model_construct(lat=center.lat - d_lat, lng=west),  # SW
        GeoPoint.model_construct(lat=center.lat - d_lat, lng=east),  # SE
    ]
