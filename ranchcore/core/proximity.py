"""
Proximity queries for RanchCore.

This module answers "which entities are within R km of a point" and
"which entities are inside a geofence" against a caller-supplied
snapshot. Large snapshots are bucketed once into a lat/lon grid so
that only nearby cells are checked exactly; results always match the
plain linear scan.
"""

import math
from collections import defaultdict
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set

from ranchcore.common.geo import (
    KM_PER_DEGREE,
    BBox,
    calculate_bounding_box,
    haversine_distance,
    polygon_ring,
    radius_bounding_box,
    ring_contains,
    validate_coordinate,
)
from ranchcore.core.errors import InvalidGeofence, InvalidQuery
from ranchcore.core.models import (
    CellKey,
    Coordinate,
    Geofence,
    GeofenceTransition,
    LocatedEntity,
    ProximityHit,
)
from ranchcore.observability.logging_setup import get_logger
from ranchcore.observability.metrics import proximity_query_seconds
from ranchcore.settings import GeoConfig

log = get_logger("ranchcore.proximity")

DEFAULT_CELL_KM = 1.0
INDEX_MIN_ENTITIES = 64

def validate_geofence(fence: Geofence) -> Geofence:
    """
    지오펜스 형상을 검증합니다.

    Raises:
        InvalidGeofence: 중심/반경 누락, 양수가 아닌 반경, 꼭짓점 3개 미만
        InvalidCoordinate: 중심 또는 꼭짓점 좌표가 잘못된 경우
    """
    if fence.shape == "circle":
        if fence.center is None or fence.radius_km is None:
            raise InvalidGeofence(f"원형 지오펜스에 중심/반경 누락: {fence.id}")
        if not fence.radius_km > 0:
            raise InvalidGeofence(f"반경은 양수여야 함: {fence.id} radius_km={fence.radius_km}")
        validate_coordinate(fence.center)
    else:
        polygon_ring(fence.vertices)
    return fence

def _validate_radius(radius_km: float) -> None:
    if not radius_km >= 0:
        raise InvalidQuery(f"반경은 음수일 수 없음: {radius_km}")

def _snapshot(entities: Iterable[LocatedEntity]) -> List[LocatedEntity]:
    snapshot = list(entities)
    for e in snapshot:
        validate_coordinate(e.coordinate)
    return snapshot

def _distance(center: Coordinate, coord: Coordinate) -> float:
    return haversine_distance(center.latitude, center.longitude, coord.latitude, coord.longitude)

def _sorted_hits(hits: List[ProximityHit]) -> List[ProximityHit]:
    # 거리 오름차순, 동률은 개체 ID로
    return sorted(hits, key=lambda h: (h.distance_km, h.entity.id))

class _FenceTest:
    """검증이 끝난 지오펜스의 포함 판정기"""

    def __init__(self, fence: Geofence):
        self.fence = fence
        if fence.shape == "circle":
            self.vertices: Sequence[Coordinate] = ()
            self.bbox: BBox = radius_bounding_box(fence.center, fence.radius_km)
        else:
            self.vertices = polygon_ring(fence.vertices)
            self.bbox = calculate_bounding_box(self.vertices)

    def contains(self, coord: Coordinate) -> bool:
        if self.fence.shape == "circle":
            return _distance(self.fence.center, coord) <= self.fence.radius_km
        return ring_contains(coord.longitude, coord.latitude, self.vertices)

class ProximityIndex:
    """
    스냅샷 위에 만든 격자 인덱스.

    셀 키는 (floor(위도 / 셀 크기), floor(경도 / 셀 크기))이며 셀 크기는
    km를 위도 1도 거리로 나눈 도 단위입니다. 한 번 만들어 같은 스냅샷에 대한
    여러 질의에 재사용합니다.
    """

    def __init__(self, entities: Iterable[LocatedEntity], cell_km: float = DEFAULT_CELL_KM):
        """
        초기화합니다.

        Args:
            entities: 위치를 가진 개체 스냅샷
            cell_km: 격자 셀 크기 (킬로미터)
        """
        if not cell_km > 0:
            raise InvalidQuery(f"셀 크기는 양수여야 함: {cell_km}")
        self.cell_km = cell_km
        self.cell_deg = cell_km / KM_PER_DEGREE
        self._entities = _snapshot(entities)
        self._buckets: Dict[CellKey, List[LocatedEntity]] = defaultdict(list)
        for e in self._entities:
            self._buckets[self.cell_of(e.coordinate)].append(e)

        log.debug(f"근접 인덱스 생성 entities:{len(self._entities)} cells:{len(self._buckets)} cell_km:{cell_km}")

    def __len__(self) -> int:
        return len(self._entities)

    def cell_of(self, coord: Coordinate) -> CellKey:
        """좌표가 속한 셀 키를 반환합니다."""
        return (math.floor(coord.latitude / self.cell_deg), math.floor(coord.longitude / self.cell_deg))

    def _candidates(self, bbox: BBox) -> Iterator[LocatedEntity]:
        min_lon, min_lat, max_lon, max_lat = bbox
        # 부동소수 경계 오차를 피하기 위해 한 칸씩 여유를 둔다
        r0 = math.floor(min_lat / self.cell_deg) - 1
        r1 = math.floor(max_lat / self.cell_deg) + 1
        c0 = math.floor(min_lon / self.cell_deg) - 1
        c1 = math.floor(max_lon / self.cell_deg) + 1

        span = (r1 - r0 + 1) * (c1 - c0 + 1)
        if span > len(self._buckets):
            for (r, c), bucket in self._buckets.items():
                if r0 <= r <= r1 and c0 <= c <= c1:
                    yield from bucket
            return

        for r in range(r0, r1 + 1):
            for c in range(c0, c1 + 1):
                bucket = self._buckets.get((r, c))
                if bucket:
                    yield from bucket

    def within_radius(self, center: Coordinate, radius_km: float, *,
                      active_only: bool = False) -> List[ProximityHit]:
        """
        중심에서 반경 이내의 개체를 거리 오름차순으로 반환합니다.

        Args:
            center: 중심 좌표
            radius_km: 반경 (킬로미터, 경계 포함)
            active_only: 활성 개체만 포함할지 여부

        Returns:
            (개체, 거리) 목록
        """
        validate_coordinate(center)
        _validate_radius(radius_km)

        hits = []
        for e in self._candidates(radius_bounding_box(center, radius_km)):
            if active_only and not e.is_active:
                continue
            d = _distance(center, e.coordinate)
            if d <= radius_km:
                hits.append(ProximityHit(entity=e, distance_km=d))
        return _sorted_hits(hits)

    def in_geofence(self, fence: Geofence, *, active_only: bool = False) -> Set[str]:
        """
        지오펜스 안에 있는 개체 ID 집합을 반환합니다. 비활성 지오펜스는 빈 집합입니다.
        """
        validate_geofence(fence)
        if not fence.active:
            return set()

        test = _FenceTest(fence)
        return {
            e.id for e in self._candidates(test.bbox)
            if (not active_only or e.is_active) and test.contains(e.coordinate)
        }

def entities_within_radius(entities: Iterable[LocatedEntity], center: Coordinate, radius_km: float, *,
                           active_only: bool = False,
                           cell_km: float = DEFAULT_CELL_KM,
                           index_min_entities: int = INDEX_MIN_ENTITIES) -> List[ProximityHit]:
    """
    반경 질의. 스냅샷이 크면 격자 인덱스를, 작으면 선형 스캔을 사용합니다.

    Raises:
        InvalidCoordinate: 중심 또는 스냅샷 좌표가 잘못된 경우
        InvalidQuery: 음수 반경
    """
    with proximity_query_seconds.labels(kind="radius").time():
        validate_coordinate(center)
        _validate_radius(radius_km)
        snapshot = _snapshot(entities)

        if len(snapshot) >= index_min_entities:
            return ProximityIndex(snapshot, cell_km).within_radius(center, radius_km, active_only=active_only)

        hits = []
        for e in snapshot:
            if active_only and not e.is_active:
                continue
            d = _distance(center, e.coordinate)
            if d <= radius_km:
                hits.append(ProximityHit(entity=e, distance_km=d))
        return _sorted_hits(hits)

def entities_in_geofence(entities: Iterable[LocatedEntity], fence: Geofence, *,
                         active_only: bool = False,
                         cell_km: float = DEFAULT_CELL_KM,
                         index_min_entities: int = INDEX_MIN_ENTITIES) -> Set[str]:
    """
    지오펜스 포함 질의. 원형은 거리, 폴리곤은 Ray casting으로 판정합니다.

    Raises:
        InvalidGeofence: 형상이 잘못된 경우
        InvalidCoordinate: 스냅샷 좌표가 잘못된 경우
    """
    with proximity_query_seconds.labels(kind="geofence").time():
        validate_geofence(fence)
        snapshot = _snapshot(entities)
        if not fence.active:
            return set()

        if len(snapshot) >= index_min_entities:
            return ProximityIndex(snapshot, cell_km).in_geofence(fence, active_only=active_only)

        test = _FenceTest(fence)
        return {
            e.id for e in snapshot
            if (not active_only or e.is_active) and test.contains(e.coordinate)
        }

def geofence_transitions(previous: Iterable[LocatedEntity],
                         current: Iterable[LocatedEntity],
                         fences: Iterable[Geofence],
                         *, active_only: bool = False,
                         cell_km: float = DEFAULT_CELL_KM,
                         index_min_entities: int = INDEX_MIN_ENTITIES) -> List[GeofenceTransition]:
    """
    두 스냅샷을 비교해 지오펜스 진입/이탈을 감지합니다.

    이전 스냅샷에 없던 개체는 밖에 있었던 것으로 보고, 현재 스냅샷에 없는
    개체는 이탈로 보고하지 않습니다. 알림 플래그가 꺼진 방향은 생략합니다.

    Returns:
        지오펜스 순서대로 ENTRY, EXIT 전이 (각각 개체 ID 순)
    """
    before_snapshot = _snapshot(previous)
    after_snapshot = _snapshot(current)
    after_by_id: Dict[str, LocatedEntity] = {e.id: e for e in after_snapshot}

    transitions: List[GeofenceTransition] = []
    for fence in fences:
        validate_geofence(fence)
        if not fence.active:
            continue

        before = entities_in_geofence(before_snapshot, fence, active_only=active_only,
                                      cell_km=cell_km, index_min_entities=index_min_entities)
        after = entities_in_geofence(after_snapshot, fence, active_only=active_only,
                                     cell_km=cell_km, index_min_entities=index_min_entities)

        if fence.alert_on_entry:
            for entity_id in sorted(after - before):
                transitions.append(GeofenceTransition(
                    entity_id=entity_id,
                    geofence_id=fence.id,
                    kind="ENTRY",
                    coordinate=after_by_id[entity_id].coordinate,
                ))
        if fence.alert_on_exit:
            for entity_id in sorted((before - after) & set(after_by_id)):
                transitions.append(GeofenceTransition(
                    entity_id=entity_id,
                    geofence_id=fence.id,
                    kind="EXIT",
                    coordinate=after_by_id[entity_id].coordinate,
                ))

    if transitions:
        log.info(f"지오펜스 전이 감지 count:{len(transitions)}")
    return transitions

def nearest_entity(entities: Iterable[LocatedEntity], point: Coordinate) -> Optional[ProximityHit]:
    """가장 가까운 개체를 찾습니다. 스냅샷이 비어 있으면 None."""
    validate_coordinate(point)
    best: Optional[ProximityHit] = None
    for e in _snapshot(entities):
        d = _distance(point, e.coordinate)
        if best is None or (d, e.id) < (best.distance_km, best.entity.id):
            best = ProximityHit(entity=e, distance_km=d)
    return best

class ProximityService:
    """설정 값으로 묶은 근접 질의기"""

    def __init__(self, config: Optional[GeoConfig] = None):
        self.config = config or GeoConfig()

    def index(self, entities: Iterable[LocatedEntity]) -> ProximityIndex:
        """같은 스냅샷에 여러 질의를 할 때 한 번만 인덱스를 만듭니다."""
        return ProximityIndex(entities, self.config.grid_cell_km)

    def within_radius(self, entities: Iterable[LocatedEntity], center: Coordinate, radius_km: float, *,
                      active_only: bool = False) -> List[ProximityHit]:
        return entities_within_radius(entities, center, radius_km,
                                      active_only=active_only,
                                      cell_km=self.config.grid_cell_km,
                                      index_min_entities=self.config.index_min_entities)

    def in_geofence(self, entities: Iterable[LocatedEntity], fence: Geofence, *,
                    active_only: bool = False) -> Set[str]:
        return entities_in_geofence(entities, fence,
                                    active_only=active_only,
                                    cell_km=self.config.grid_cell_km,
                                    index_min_entities=self.config.index_min_entities)

    def transitions(self, previous: Iterable[LocatedEntity], current: Iterable[LocatedEntity],
                    fences: Iterable[Geofence], *, active_only: bool = False) -> List[GeofenceTransition]:
        return geofence_transitions(previous, current, fences,
                                    active_only=active_only,
                                    cell_km=self.config.grid_cell_km,
                                    index_min_entities=self.config.index_min_entities)

    def nearest(self, entities: Iterable[LocatedEntity], point: Coordinate) -> Optional[ProximityHit]:
        return nearest_entity(entities, point)
