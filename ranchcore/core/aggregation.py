"""
Geographic aggregation for RanchCore.

This module buckets entity snapshots into density cells for heatmaps
and derives per-entity movement statistics (distance, speed, activity
level, movement pattern) from timestamped GPS paths.
"""

import math
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence

from ranchcore.common.geo import KM_PER_DEGREE, haversine_distance, validate_coordinate
from ranchcore.core.errors import InvalidQuery
from ranchcore.core.models import (
    ActivityLevel,
    CellKey,
    Coordinate,
    HeatmapCell,
    LocatedEntity,
    MovementPattern,
    MovementStats,
    PathSample,
)
from ranchcore.observability.logging_setup import get_logger
from ranchcore.settings import GeoConfig, MovementConfig

log = get_logger("ranchcore.aggregation")

MOVING_SPEED_KMH = 0.5
HIGH_SPEED_KMH = 15.0
DUPLICATE_WINDOW_SEC = 60.0
DUPLICATE_DISTANCE_M = 5.0

def _cell_deg(cell_size_km: float) -> float:
    if not cell_size_km > 0:
        raise InvalidQuery(f"셀 크기는 양수여야 함: {cell_size_km}")
    return cell_size_km / KM_PER_DEGREE

def _km(a: Coordinate, b: Coordinate) -> float:
    return haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)

def density_grid(entities: Iterable[LocatedEntity], cell_size_km: float) -> Dict[CellKey, int]:
    """
    개체를 고정 크기 셀로 묶어 셀별 개수를 셉니다.

    셀 키는 (floor(위도 / 셀), floor(경도 / 셀))이며 입력 순서와 무관하게 같습니다.

    Args:
        entities: 개체 스냅샷
        cell_size_km: 셀 크기 (킬로미터)

    Returns:
        (row, col) -> 개수
    """
    deg = _cell_deg(cell_size_km)
    counts: Counter = Counter()
    for e in entities:
        c = validate_coordinate(e.coordinate)
        counts[(math.floor(c.latitude / deg), math.floor(c.longitude / deg))] += 1
    return dict(sorted(counts.items()))

def cell_center(key: CellKey, cell_size_km: float) -> Coordinate:
    """셀 키의 중심 좌표를 반환합니다."""
    deg = _cell_deg(cell_size_km)
    row, col = key
    return Coordinate(latitude=(row + 0.5) * deg, longitude=(col + 0.5) * deg)

def heatmap(entities: Iterable[LocatedEntity], cell_size_km: float) -> List[HeatmapCell]:
    """히트맵 렌더링용 셀 목록 (셀 키 순)"""
    cells = []
    for (row, col), count in density_grid(entities, cell_size_km).items():
        center = cell_center((row, col), cell_size_km)
        cells.append(HeatmapCell(row=row, col=col,
                                  latitude=center.latitude, longitude=center.longitude,
                                  count=count))
    return cells

def classify_activity(total_distance_km: float, average_speed_kmh: float) -> ActivityLevel:
    """총 이동 거리와 평균 속도로 활동 수준을 분류합니다."""
    if total_distance_km < 0.1 and average_speed_kmh < 0.05:
        return "low"
    if total_distance_km < 0.5 and average_speed_kmh < 0.2:
        return "moderate"
    return "high"

def movement_pattern(minutes_moving: float, minutes_resting: float, average_speed_kmh: float) -> MovementPattern:
    """이동/휴식 시간 비율과 평균 속도로 우세한 이동 패턴을 결정합니다."""
    total = minutes_moving + minutes_resting
    if total <= 0:
        return "UNKNOWN"
    ratio = minutes_moving / total

    if ratio > 0.7 and average_speed_kmh > 3:
        return "WALKING"
    if ratio > 0.5 and average_speed_kmh > 1:
        return "GRAZING"
    if ratio < 0.2:
        return "RESTING"
    if average_speed_kmh > 8:
        return "RUNNING"
    return "GRAZING"

def movement_stats(path: Sequence[PathSample], *,
                   moving_speed_kmh: float = MOVING_SPEED_KMH,
                   high_speed_kmh: float = HIGH_SPEED_KMH) -> MovementStats:
    """
    경로의 이동 통계를 계산합니다.

    총 거리는 연속 구간 거리의 합(변위 아님), 평균 속도는 총 거리를 첫/마지막
    측정 사이 경과 시간으로 나눈 값입니다. 측정이 2개 미만이면 모두 0입니다.

    Args:
        path: 측정값 목록 (시각 순으로 정렬해 사용)
        moving_speed_kmh: 이동 중으로 보는 구간 속도 기준
        high_speed_kmh: 이상 고속 구간 기준

    Returns:
        MovementStats
    """
    samples = sorted(path, key=lambda s: s.timestamp)
    for s in samples:
        validate_coordinate(s.coordinate)
    if len(samples) < 2:
        return MovementStats()

    origin = samples[0].coordinate
    total_km = 0.0
    max_disp = 0.0
    max_speed = 0.0
    minutes_moving = 0.0
    minutes_resting = 0.0
    anomalies: List[str] = []

    for prev, cur in zip(samples, samples[1:]):
        leg_km = _km(prev.coordinate, cur.coordinate)
        leg_min = (cur.timestamp - prev.timestamp).total_seconds() / 60.0
        speed = leg_km / (leg_min / 60.0) if leg_min > 0 else 0.0

        total_km += leg_km
        max_disp = max(max_disp, _km(origin, cur.coordinate))
        max_speed = max(max_speed, speed)
        if speed > moving_speed_kmh:
            minutes_moving += leg_min
        else:
            minutes_resting += leg_min
        if speed > high_speed_kmh:
            anomalies.append(f"고속 이동 감지: {speed:.1f} km/h at {cur.timestamp.isoformat()}")

    elapsed_min = (samples[-1].timestamp - samples[0].timestamp).total_seconds() / 60.0
    avg_speed = total_km / (elapsed_min / 60.0) if elapsed_min > 0 else 0.0

    if anomalies:
        log.warning(f"이동 이상 감지 count:{len(anomalies)} max_speed:{max_speed:.1f}km/h")

    return MovementStats(
        total_distance_km=total_km,
        average_speed_kmh=avg_speed,
        max_displacement_km=max_disp,
        duration_minutes=elapsed_min,
        max_speed_kmh=max_speed,
        minutes_moving=minutes_moving,
        minutes_resting=minutes_resting,
        activity_level=classify_activity(total_km, avg_speed),
        pattern=movement_pattern(minutes_moving, minutes_resting, avg_speed),
        anomalies=anomalies,
    )

def centroid(points: Sequence[Coordinate]) -> Coordinate:
    """좌표의 산술 평균 중심 (소규모 목장 범위용)"""
    if not points:
        raise InvalidQuery("빈 좌표 목록의 중심은 정의되지 않음")
    for p in points:
        validate_coordinate(p)
    return Coordinate(
        latitude=sum(p.latitude for p in points) / len(points),
        longitude=sum(p.longitude for p in points) / len(points),
    )

def group_cohesion(points: Sequence[Coordinate], max_distance_km: float) -> float:
    """
    무리의 응집도를 0~1로 계산합니다.

    중심까지 평균 거리가 max_distance_km 이상이면 0, 모두 한 점이면 1입니다.
    """
    if not max_distance_km > 0:
        raise InvalidQuery(f"최대 거리는 양수여야 함: {max_distance_km}")
    if len(points) < 2:
        return 1.0
    center = centroid(points)
    avg = sum(_km(center, p) for p in points) / len(points)
    return max(0.0, 1.0 - avg / max_distance_km)

def is_duplicate_fix(previous: Optional[PathSample], current: PathSample, *,
                     window_sec: float = DUPLICATE_WINDOW_SEC,
                     distance_m: float = DUPLICATE_DISTANCE_M) -> bool:
    """직전 측정과 시간/거리 모두 기준 미만이면 중복 측정으로 봅니다."""
    if previous is None:
        return False
    validate_coordinate(previous.coordinate)
    validate_coordinate(current.coordinate)
    gap = abs((current.timestamp - previous.timestamp).total_seconds())
    return gap < window_sec and _km(previous.coordinate, current.coordinate) * 1000.0 < distance_m

def dedupe_path(path: Iterable[PathSample], *,
                window_sec: float = DUPLICATE_WINDOW_SEC,
                distance_m: float = DUPLICATE_DISTANCE_M) -> List[PathSample]:
    """시각 순으로 정렬하고 직전에 채택한 측정과 중복인 측정을 제거합니다."""
    kept: List[PathSample] = []
    for s in sorted(path, key=lambda s: s.timestamp):
        if is_duplicate_fix(kept[-1] if kept else None, s, window_sec=window_sec, distance_m=distance_m):
            continue
        kept.append(s)
    return kept

class GeoAggregator:
    """설정 값으로 묶은 지리 집계기"""

    def __init__(self, geo: Optional[GeoConfig] = None, movement: Optional[MovementConfig] = None):
        self.geo = geo or GeoConfig()
        self.movement = movement or MovementConfig()

    def density_grid(self, entities: Iterable[LocatedEntity],
                     cell_size_km: Optional[float] = None) -> Dict[CellKey, int]:
        return density_grid(entities, cell_size_km if cell_size_km is not None else self.geo.density_cell_km)

    def heatmap(self, entities: Iterable[LocatedEntity],
                cell_size_km: Optional[float] = None) -> List[HeatmapCell]:
        return heatmap(entities, cell_size_km if cell_size_km is not None else self.geo.density_cell_km)

    def movement_stats(self, path: Sequence[PathSample], *, dedupe: bool = False) -> MovementStats:
        if dedupe:
            path = dedupe_path(path,
                               window_sec=self.movement.duplicate_window_sec,
                               distance_m=self.movement.duplicate_distance_m)
        return movement_stats(path,
                              moving_speed_kmh=self.movement.moving_speed_kmh,
                              high_speed_kmh=self.movement.high_speed_kmh)

    def is_duplicate_fix(self, previous: Optional[PathSample], current: PathSample) -> bool:
        return is_duplicate_fix(previous, current,
                                window_sec=self.movement.duplicate_window_sec,
                                distance_m=self.movement.duplicate_distance_m)
