"""
Entity snapshot loader for RanchCore.

This module reads located-entity snapshots from CSV or XLSX exports
of the ranch registry so batch jobs can run proximity and density
queries without the CRUD layer.
"""

import csv
import os
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple

import openpyxl
from dateutil import parser as date_parser

from ranchcore.common.geo import coordinate_from_mapping
from ranchcore.core.errors import EngineValidationError, InvalidQuery
from ranchcore.core.models import LocatedEntity
from ranchcore.observability.logging_setup import get_logger

log = get_logger("ranchcore.snapshots")

Row = Dict[str, Any]

# 내보내기 파일마다 다른 컬럼명을 표준 이름으로
COLUMN_ALIASES = {
    "id": "id",
    "ear_tag": "id",
    "eartag": "id",
    "lat": "latitude",
    "latitude": "latitude",
    "lon": "longitude",
    "lng": "longitude",
    "longitude": "longitude",
    "altitude": "altitude",
    "accuracy": "accuracy",
    "status": "status",
    "captured_at": "captured_at",
    "timestamp": "captured_at",
}

def _normalize_header(name: Any) -> Optional[str]:
    if name is None:
        return None
    key = str(name).strip().lower().replace(" ", "_").replace("-", "_")
    return COLUMN_ALIASES.get(key)

def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")

def _parse_time(value: Any) -> Optional[datetime]:
    if _blank(value):
        return None
    if isinstance(value, datetime):
        return value
    try:
        return date_parser.isoparse(str(value).strip())
    except ValueError as e:
        raise InvalidQuery(f"측정 시각 파싱 실패: {value!r}") from e

def _parse_float(value: Any) -> Optional[float]:
    if _blank(value):
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise InvalidQuery(f"숫자 변환 실패: {value!r}") from e

def row_to_entity(row: Row) -> LocatedEntity:
    """
    표준 컬럼명 행을 LocatedEntity로 변환합니다.

    Raises:
        InvalidCoordinate: 위도/경도 누락 또는 범위 초과
        InvalidQuery: ID 누락, 알 수 없는 상태, 숫자/시각 변환 실패
    """
    entity_id = row.get("id")
    if _blank(entity_id):
        raise InvalidQuery("개체 ID 누락")

    status = "active" if _blank(row.get("status")) else str(row["status"]).strip().lower()
    if status not in ("active", "inactive"):
        raise InvalidQuery(f"알 수 없는 개체 상태: {row.get('status')!r}")

    coord = coordinate_from_mapping({
        "latitude": None if _blank(row.get("latitude")) else row.get("latitude"),
        "longitude": None if _blank(row.get("longitude")) else row.get("longitude"),
        "altitude": _parse_float(row.get("altitude")),
        "accuracy": _parse_float(row.get("accuracy")),
        "captured_at": _parse_time(row.get("captured_at")),
    })
    return LocatedEntity(id=str(entity_id).strip(), coordinate=coord, status=status)

def _csv_rows(path: str) -> Iterator[Tuple[int, Row]]:
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        headers = [_normalize_header(h) for h in next(reader, [])]
        for row_num, values in enumerate(reader, start=2):
            yield row_num, {h: v for h, v in zip(headers, values) if h}

def _xlsx_rows(path: str) -> Iterator[Tuple[int, Row]]:
    wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
    try:
        ws = wb.active
        rows = ws.iter_rows(values_only=True)
        headers = [_normalize_header(h) for h in next(rows, ())]
        log.info(f"엑셀 헤더 확인: {headers}")
        for row_num, values in enumerate(rows, start=2):
            yield row_num, {h: v for h, v in zip(headers, values) if h}
    finally:
        wb.close()

def load_entities(path: str, *, strict: bool = True) -> List[LocatedEntity]:
    """
    개체 스냅샷을 파일에서 로드합니다.

    Args:
        path: .csv 또는 .xlsx 파일 경로
        strict: True면 잘못된 행에서 예외, False면 경고 로그 후 건너뜀

    Returns:
        LocatedEntity 목록 (파일 순서)

    Raises:
        InvalidCoordinate: strict 모드에서 좌표가 잘못된 행
        InvalidQuery: strict 모드에서 그 밖의 잘못된 행, 지원하지 않는 형식
    """
    ext = os.path.splitext(path)[1].lower()
    if ext == ".csv":
        rows = _csv_rows(path)
    elif ext in (".xlsx", ".xlsm"):
        rows = _xlsx_rows(path)
    else:
        raise InvalidQuery(f"지원하지 않는 파일 형식: {ext}")

    entities: List[LocatedEntity] = []
    skipped = 0
    for row_num, row in rows:
        # 빈 행 건너뛰기
        if all(_blank(v) for v in row.values()):
            continue
        try:
            entities.append(row_to_entity(row))
        except EngineValidationError as e:
            if strict:
                raise
            skipped += 1
            log.warning(f"행 {row_num} 건너뜀: {type(e).__name__}: {e}")

    log.info(f"개체 스냅샷 로드됨 path:{path} count:{len(entities)} skipped:{skipped}")
    return entities
