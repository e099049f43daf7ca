"""
스냅샷 로더 단위 테스트

이 모듈은 CSV/XLSX 개체 스냅샷 로드와 잘못된 행 처리를 테스트합니다.
"""

import pytest
from datetime import datetime, timezone
import openpyxl

from ranchcore.adapters.snapshots.loader import load_entities, row_to_entity
from ranchcore.core.errors import InvalidCoordinate, InvalidQuery


@pytest.fixture
def herd_csv(tmp_path):
    path = tmp_path / "herd.csv"
    path.write_text(
        "ear_tag,lat,lon,status,timestamp\n"
        "MX-001,17.9880,-92.9320,active,2025-01-15T06:00:00+00:00\n"
        "MX-002,17.9869,-92.9303,INACTIVE,\n"
        ",,,,\n"
        "MX-003,18.0500,-92.9000,,\n",
        encoding="utf-8",
    )
    return str(path)


@pytest.fixture
def bad_csv(tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text(
        "id,latitude,longitude\n"
        "MX-001,17.9880,-92.9320\n"
        "MX-BAD,97.0,-92.9320\n"
        "MX-003,18.0500,-92.9000\n",
        encoding="utf-8",
    )
    return str(path)


class TestLoadEntities:
    """개체 스냅샷 로드 테스트"""

    def test_csv(self, herd_csv):
        herd = load_entities(herd_csv)
        assert [e.id for e in herd] == ["MX-001", "MX-002", "MX-003"]
        assert herd[0].coordinate.latitude == 17.9880
        assert herd[0].coordinate.captured_at == datetime(2025, 1, 15, 6, 0, tzinfo=timezone.utc)
        assert herd[1].status == "inactive"
        assert herd[2].is_active

    def test_strict_raises(self, bad_csv):
        with pytest.raises(InvalidCoordinate):
            load_entities(bad_csv)

    def test_non_strict_skips(self, bad_csv):
        herd = load_entities(bad_csv, strict=False)
        assert [e.id for e in herd] == ["MX-001", "MX-003"]

    def test_xlsx(self, tmp_path):
        path = tmp_path / "herd.xlsx"
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(["Ear Tag", "Latitude", "Longitude", "Accuracy"])
        ws.append(["MX-010", 17.99, -92.93, 4.5])
        ws.append([None, None, None, None])
        ws.append(["MX-011", 18.0, -92.91, None])
        wb.save(path)

        herd = load_entities(str(path))
        assert [e.id for e in herd] == ["MX-010", "MX-011"]
        assert herd[0].coordinate.accuracy == 4.5

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "herd.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(InvalidQuery):
            load_entities(str(path))


class TestRowToEntity:
    """행 변환 테스트"""

    def test_missing_id(self):
        with pytest.raises(InvalidQuery):
            row_to_entity({"latitude": 1.0, "longitude": 2.0})

    def test_missing_coordinate(self):
        with pytest.raises(InvalidCoordinate):
            row_to_entity({"id": "a", "latitude": 1.0})

    def test_unknown_status(self):
        with pytest.raises(InvalidQuery):
            row_to_entity({"id": "a", "latitude": 1.0, "longitude": 2.0, "status": "sold"})

    def test_bad_timestamp(self):
        with pytest.raises(InvalidQuery):
            row_to_entity({"id": "a", "latitude": 1.0, "longitude": 2.0, "captured_at": "yesterday"})
