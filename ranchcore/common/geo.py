"""
Geographic utilities for RanchCore.

This module provides great-circle distance, circle and polygon
containment, bounding boxes and coordinate validation. Every public
function validates its coordinates first and raises InvalidCoordinate
instead of clamping.
"""

import math
from typing import Any, List, Mapping, Sequence, Tuple
from ranchcore.core.errors import InvalidCoordinate, InvalidGeofence, InvalidQuery
from ranchcore.core.models import Coordinate

EARTH_RADIUS_KM = 6371.0
# 구면 위 위도 1도에 해당하는 거리
KM_PER_DEGREE = math.pi * EARTH_RADIUS_KM / 180.0

# (min_lon, min_lat, max_lon, max_lat)
BBox = Tuple[float, float, float, float]

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value)

def validate_coordinates(lat: Any, lon: Any) -> bool:
    """
    좌표가 유효한지 확인합니다.

    Args:
        lat: 위도
        lon: 경도

    Returns:
        좌표가 유효하면 True
    """
    return _is_number(lat) and _is_number(lon) and -90 <= lat <= 90 and -180 <= lon <= 180

def validate_coordinate(coord: Coordinate) -> Coordinate:
    """
    엔진 진입 전 좌표를 검증합니다.

    Raises:
        InvalidCoordinate: 위도/경도 누락, 범위 초과, 음수 정확도
    """
    lat = getattr(coord, "latitude", None)
    lon = getattr(coord, "longitude", None)
    if lat is None or lon is None:
        raise InvalidCoordinate(f"위도/경도 누락: lat={lat}, lon={lon}")
    if not validate_coordinates(lat, lon):
        raise InvalidCoordinate(f"좌표 범위 초과: lat={lat}, lon={lon}")
    accuracy = getattr(coord, "accuracy", None)
    if accuracy is not None and accuracy < 0:
        raise InvalidCoordinate(f"정확도는 음수일 수 없음: accuracy={accuracy}")
    return coord

def coordinate_from_mapping(raw: Mapping[str, Any]) -> Coordinate:
    """
    CRUD 계층의 원시 딕셔너리를 Coordinate로 변환합니다.

    latitude/longitude 또는 lat/lon 키를 허용합니다.
    """
    lat = raw.get("latitude", raw.get("lat"))
    lon = raw.get("longitude", raw.get("lon"))
    if lat is None or lon is None:
        raise InvalidCoordinate(f"위도/경도 필드가 없음: {sorted(raw.keys())}")
    try:
        lat_f = float(lat)
        lon_f = float(lon)
    except (TypeError, ValueError) as e:
        raise InvalidCoordinate(f"위도/경도 숫자 변환 실패: lat={lat!r}, lon={lon!r}") from e
    coord = Coordinate(
        latitude=lat_f,
        longitude=lon_f,
        altitude=raw.get("altitude"),
        accuracy=raw.get("accuracy"),
        captured_at=raw.get("captured_at") or raw.get("timestamp"),
    )
    return validate_coordinate(coord)

def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    두 지점 간의 Haversine 거리를 계산합니다 (킬로미터). 검증하지 않는 저수준 함수입니다.

    Args:
        lat1: 첫 번째 지점의 위도
        lon1: 첫 번째 지점의 경도
        lat2: 두 번째 지점의 위도
        lon2: 두 번째 지점의 경도

    Returns:
        두 지점 간의 거리 (킬로미터)
    """
    # 차이의 절댓값을 쓰면 인자 순서와 무관하게 같은 값이 나온다
    dlat = math.radians(abs(lat2 - lat1))
    dlon = math.radians(abs(lon2 - lon1))
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2)
    c = 2 * math.asin(math.sqrt(min(1.0, a)))

    return c * EARTH_RADIUS_KM

def distance_km(a: Coordinate, b: Coordinate) -> float:
    """두 좌표 간의 대원 거리 (킬로미터)"""
    validate_coordinate(a)
    validate_coordinate(b)
    return haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)

def point_in_circle(point: Coordinate, center: Coordinate, radius_km: float) -> bool:
    """점이 원 안에 있는지 확인합니다 (경계 포함)."""
    if not radius_km >= 0:
        raise InvalidQuery(f"반경은 음수일 수 없음: {radius_km}")
    return distance_km(point, center) <= radius_km

def polygon_ring(ring: Sequence[Coordinate]) -> List[Coordinate]:
    """
    폴리곤 링을 검증하고 닫는 꼭짓점을 제거한 링을 반환합니다.

    Raises:
        InvalidCoordinate: 꼭짓점 좌표가 잘못된 경우
        InvalidGeofence: 서로 다른 꼭짓점이 3개 미만인 경우
    """
    vertices = [validate_coordinate(v) for v in ring]
    if len(vertices) > 1 and vertices[0].same_position(vertices[-1]):
        vertices = vertices[:-1]
    distinct = {(v.latitude, v.longitude) for v in vertices}
    if len(distinct) < 3:
        raise InvalidGeofence(f"폴리곤 꼭짓점 부족: distinct={len(distinct)}")
    return vertices

def _on_segment(x: float, y: float, ax: float, ay: float, bx: float, by: float) -> bool:
    cross = (bx - ax) * (y - ay) - (by - ay) * (x - ax)
    if abs(cross) > 1e-12 * max(abs(bx - ax), abs(by - ay), 1.0):
        return False
    return min(ax, bx) - 1e-12 <= x <= max(ax, bx) + 1e-12 and \
           min(ay, by) - 1e-12 <= y <= max(ay, by) + 1e-12

def ring_contains(x: float, y: float, vertices: Sequence[Coordinate]) -> bool:
    """
    검증된 링에 대해 (경도 x, 위도 y) 점의 포함 여부를 판정합니다.
    경계선이나 꼭짓점 위의 점은 내부로 간주합니다.
    """
    n = len(vertices)

    # 경계 판정 먼저
    for i in range(n):
        a, b = vertices[i], vertices[(i + 1) % n]
        if _on_segment(x, y, a.longitude, a.latitude, b.longitude, b.latitude):
            return True

    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = vertices[i].longitude, vertices[i].latitude
        xj, yj = vertices[j].longitude, vertices[j].latitude
        if (yi > y) != (yj > y):
            xinters = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < xinters:
                inside = not inside
        j = i
    return inside

def point_in_polygon(point: Coordinate, ring: Sequence[Coordinate]) -> bool:
    """
    점이 폴리곤 내부에 있는지 Ray casting 알고리즘으로 확인합니다.

    (경도, 위도) 평면에서 판정하며 링은 암묵적으로 닫힙니다.
    경계선이나 꼭짓점 위의 점은 내부로 간주합니다.

    Args:
        point: 확인할 점
        ring: 폴리곤 꼭짓점 목록

    Returns:
        점이 폴리곤 내부(경계 포함)에 있으면 True
    """
    validate_coordinate(point)
    vertices = polygon_ring(ring)
    return ring_contains(point.longitude, point.latitude, vertices)

def calculate_bounding_box(ring: Sequence[Coordinate]) -> BBox:
    """
    폴리곤의 경계 상자를 계산합니다.

    Returns:
        (min_lon, min_lat, max_lon, max_lat)
    """
    if not ring:
        raise InvalidGeofence("빈 폴리곤의 경계 상자는 정의되지 않음")
    lons = [validate_coordinate(p).longitude for p in ring]
    lats = [p.latitude for p in ring]
    return (min(lons), min(lats), max(lons), max(lats))

def radius_bounding_box(center: Coordinate, radius_km: float) -> BBox:
    """
    원을 완전히 포함하는 보수적인 경계 상자를 계산합니다.

    극점을 포함하거나 날짜변경선을 넘으면 경도 범위 전체를 반환합니다.

    Returns:
        (min_lon, min_lat, max_lon, max_lat)
    """
    validate_coordinate(center)
    if not radius_km >= 0:
        raise InvalidQuery(f"반경은 음수일 수 없음: {radius_km}")

    angular = radius_km / EARTH_RADIUS_KM
    dlat = math.degrees(angular)
    min_lat = center.latitude - dlat
    max_lat = center.latitude + dlat

    if min_lat <= -90 or max_lat >= 90:
        return (-180.0, max(min_lat, -90.0), 180.0, min(max_lat, 90.0))

    ratio = math.sin(angular) / math.cos(math.radians(center.latitude))
    if ratio >= 1:
        return (-180.0, min_lat, 180.0, max_lat)

    dlon = math.degrees(math.asin(ratio))
    min_lon = center.longitude - dlon
    max_lon = center.longitude + dlon
    if min_lon < -180 or max_lon > 180:
        return (-180.0, min_lat, 180.0, max_lat)
    return (min_lon, min_lat, max_lon, max_lat)
