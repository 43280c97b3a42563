"""ジオタグ抽出・管理サービスのテスト"""

from typing import Optional

import piexif
import pydantic
import pytest

from geotagging.features.documents.document_store import InMemoryDocumentStore
from geotagging.features.extraction.domain.enums import (
    CoordinateFormat,
    CoordinateSource,
    LocationAccuracy,
)
from geotagging.features.extraction.domain.models import (
    Actor,
    ExtractedCoordinate,
    ExtractionOptions,
    GeoTag,
)
from geotagging.features.extraction.domain.requests import (
    BoundingBoxSearch,
    GeoTagQuery,
    NearbySearch,
)
from geotagging.features.extraction.extractors.base import (
    BaseCoordinateExtractor,
    ExtractorContent,
)
from geotagging.features.extraction.extractors.pattern_extractor import (
    PatternCoordinateExtractor,
)
from geotagging.features.geocoding.services.geocoding_service import GeocodingService
from geotagging.features.geotagging.services.geotagging_service import (
    ACTION_COORDINATE_EXTRACTED,
    ACTION_GEO_TAG_CREATED,
    ACTION_GEO_TAG_DEACTIVATED,
    ACTION_GEO_TAG_VERIFIED,
    GeoTaggingService,
)
from geotagging.features.storage.repositories.audit_repository import InMemoryAuditSink
from geotagging.features.storage.repositories.geotag_repository import (
    InMemoryGeoTagRepository,
)
from geotagging.shared.exceptions.errors import (
    ExtractionError,
    NotFoundError,
    StorageError,
    ValidationError,
)

GPS_TEXT = "Field survey notes. GPS: 40.7128, -74.0060"


class SpyExtractor(BaseCoordinateExtractor):
    """呼び出しを記録し、固定の座標を返す抽出器"""

    requires_opt_in = True

    def __init__(self, coordinates: Optional[list[ExtractedCoordinate]] = None) -> None:
        super().__init__()
        self.calls: list[ExtractorContent] = []
        self.coordinates = coordinates or []

    def can_handle(self, content: ExtractorContent, mime_type: Optional[str] = None) -> bool:
        return isinstance(content, str)

    def extract(
        self, content: ExtractorContent, filename: Optional[str] = None
    ) -> list[ExtractedCoordinate]:
        self.calls.append(content)
        return list(self.coordinates)


class FailingExtractor(BaseCoordinateExtractor):
    """常に例外を送出する抽出器"""

    def can_handle(self, content: ExtractorContent, mime_type: Optional[str] = None) -> bool:
        return True

    def extract(
        self, content: ExtractorContent, filename: Optional[str] = None
    ) -> list[ExtractedCoordinate]:
        raise RuntimeError("extractor crashed")


class FlakyRepository(InMemoryGeoTagRepository):
    """最初の保存だけ失敗するリポジトリ"""

    def __init__(self, error: Optional[Exception] = None) -> None:
        super().__init__()
        self.attempts = 0
        self.error = error or StorageError("write rejected")

    def save(self, geo_tag: GeoTag) -> GeoTag:
        self.attempts += 1
        if self.attempts == 1:
            raise self.error
        return super().save(geo_tag)


class UnavailableRepository(InMemoryGeoTagRepository):
    """available=False の間は保存が全て失敗するリポジトリ"""

    available = True

    def save(self, geo_tag: GeoTag) -> GeoTag:
        if not self.available:
            raise ConnectionError("repository offline")
        return super().save(geo_tag)


def make_coordinate(
    latitude: float, longitude: float, confidence: float, text: str, **metadata
) -> ExtractedCoordinate:
    return ExtractedCoordinate(
        latitude=latitude,
        longitude=longitude,
        source=CoordinateSource.REGEX,
        original_format=CoordinateFormat.DECIMAL_DEGREES,
        accuracy=LocationAccuracy.ESTIMATED,
        extracted_text=text,
        confidence=confidence,
        metadata=dict(metadata),
    )


def build_service(
    extractors: list[BaseCoordinateExtractor],
    geocoder: GeocodingService,
    document_store: InMemoryDocumentStore,
    repository: Optional[InMemoryGeoTagRepository] = None,
    audit_sink: Optional[InMemoryAuditSink] = None,
) -> GeoTaggingService:
    return GeoTaggingService(
        extractors=extractors,
        geocoder=geocoder,
        document_store=document_store,
        repository=repository or InMemoryGeoTagRepository(),
        audit_sink=audit_sink or InMemoryAuditSink(),
    )


def area_information_image() -> bytes:
    """地名のみを含むEXIF"""
    gps = {piexif.GPSIFD.GPSAreaInformation: b"ASCII\x00\x00\x00Tokyo"}
    return piexif.dump({"0th": {}, "Exif": {}, "GPS": gps, "1st": {}, "thumbnail": None})


# ----------------------------------------------------------------------
# 抽出
# ----------------------------------------------------------------------


def test_extract_and_store_gps_text(
    service: GeoTaggingService,
    document_store: InMemoryDocumentStore,
    audit_sink: InMemoryAuditSink,
    actor: Actor,
) -> None:
    """テキスト中のGPS座標が保存され、住所が補完され、監査ログが残る"""
    document_store.add("doc-1", GPS_TEXT)

    geo_tags = service.extract_and_store_coordinates("doc-1", actor)

    assert len(geo_tags) == 1
    geo_tag = geo_tags[0]
    assert geo_tag.id
    assert geo_tag.latitude == pytest.approx(40.7128)
    assert geo_tag.longitude == pytest.approx(-74.006)
    assert geo_tag.source == CoordinateSource.REGEX
    assert geo_tag.extracted_by == "user-1"
    assert geo_tag.extracted_by_email == "analyst@example.com"
    assert geo_tag.is_active
    assert not geo_tag.is_verified

    assert geo_tag.address == "Near New York City"
    assert geo_tag.city == "New York"
    assert geo_tag.metadata["reverse_geocoding_confidence"] > 0.9

    events = audit_sink.by_action(ACTION_COORDINATE_EXTRACTED)
    assert len(events) == 1
    assert events[0].resource_id == geo_tag.id
    assert events[0].user_email == "analyst@example.com"
    assert events[0].metadata["document_id"] == "doc-1"
    assert events[0].metadata["source"] == "regex"


def test_reverse_geocoding_can_be_disabled(
    service: GeoTaggingService, document_store: InMemoryDocumentStore, actor: Actor
) -> None:
    """reverse_geocode=False なら住所を補完しない"""
    document_store.add("doc-1", GPS_TEXT)

    geo_tags = service.extract_and_store_coordinates(
        "doc-1", actor, ExtractionOptions(reverse_geocode=False)
    )

    assert geo_tags[0].address is None


def test_existing_geo_tags_skip_extraction(
    service: GeoTaggingService,
    document_store: InMemoryDocumentStore,
    audit_sink: InMemoryAuditSink,
    actor: Actor,
) -> None:
    """既存のジオタグがあれば再抽出せずに返す"""
    document_store.add("doc-1", GPS_TEXT)
    first = service.extract_and_store_coordinates("doc-1", actor)

    second = service.extract_and_store_coordinates("doc-1", actor)

    assert [t.id for t in second] == [t.id for t in first]
    assert len(audit_sink.by_action(ACTION_COORDINATE_EXTRACTED)) == 1


def test_force_reextraction_supersedes_existing(
    service: GeoTaggingService,
    document_store: InMemoryDocumentStore,
    repository: InMemoryGeoTagRepository,
    audit_sink: InMemoryAuditSink,
    actor: Actor,
) -> None:
    """強制再抽出では既存のジオタグを無効化して新しく保存する"""
    document_store.add("doc-1", GPS_TEXT)
    first = service.extract_and_store_coordinates("doc-1", actor)

    second = service.extract_and_store_coordinates(
        "doc-1", actor, ExtractionOptions(force_reextraction=True)
    )

    assert second[0].id != first[0].id
    assert [t.id for t in repository.find_by_document("doc-1")] == [second[0].id]
    assert len(repository.find_by_document("doc-1", include_inactive=True)) == 2

    deactivated = audit_sink.by_action(ACTION_GEO_TAG_DEACTIVATED)
    assert [e.resource_id for e in deactivated] == [first[0].id]
    assert deactivated[0].metadata["reason"] == "re-extraction"


def test_force_reextraction_keeps_existing_when_every_save_fails(
    geocoder: GeocodingService,
    document_store: InMemoryDocumentStore,
    audit_sink: InMemoryAuditSink,
    actor: Actor,
) -> None:
    """新しいジオタグを1件も保存できなければ既存のジオタグは無効化しない"""
    repository = UnavailableRepository()
    service = build_service(
        [PatternCoordinateExtractor()], geocoder, document_store, repository, audit_sink
    )
    document_store.add("doc-1", GPS_TEXT)
    first = service.extract_and_store_coordinates("doc-1", actor)

    repository.available = False
    second = service.extract_and_store_coordinates(
        "doc-1", actor, ExtractionOptions(force_reextraction=True)
    )

    assert second == []
    assert [t.id for t in repository.find_by_document("doc-1")] == [first[0].id]
    assert audit_sink.by_action(ACTION_GEO_TAG_DEACTIVATED) == []


def test_opt_in_extractor_requires_use_ai(
    geocoder: GeocodingService, document_store: InMemoryDocumentStore, actor: Actor
) -> None:
    """オプトインの抽出器は use_ai=True のときだけ実行される"""
    spy = SpyExtractor([make_coordinate(10.0, 20.0, 0.5, "somewhere")])
    service = build_service([PatternCoordinateExtractor(), spy], geocoder, document_store)
    document_store.add("doc-1", "nothing to see here")
    document_store.add("doc-2", "nothing to see here either")

    assert service.extract_and_store_coordinates("doc-1", actor) == []
    assert spy.calls == []

    geo_tags = service.extract_and_store_coordinates("doc-2", actor, ExtractionOptions(use_ai=True))
    assert spy.calls == ["nothing to see here either"]
    assert len(geo_tags) == 1


def test_heuristic_extractor_with_use_ai(
    service: GeoTaggingService, document_store: InMemoryDocumentStore, actor: Actor
) -> None:
    """use_ai=True でヒューリスティック抽出の結果も保存される"""
    document_store.add(
        "doc-1",
        "Our regional office location is in central London, next to the river bank.",
    )

    geo_tags = service.extract_and_store_coordinates("doc-1", actor, ExtractionOptions(use_ai=True))

    assert len(geo_tags) == 1
    assert geo_tags[0].source == CoordinateSource.HEURISTIC_TEXT
    assert geo_tags[0].latitude == pytest.approx(51.5074)


def test_missing_document(service: GeoTaggingService, actor: Actor) -> None:
    """存在しないドキュメントはNotFoundError"""
    with pytest.raises(NotFoundError):
        service.extract_and_store_coordinates("missing", actor)


def test_all_extractors_failing_raises(
    geocoder: GeocodingService, document_store: InMemoryDocumentStore, actor: Actor
) -> None:
    """実行した抽出器がすべて失敗した場合はExtractionError"""
    service = build_service([FailingExtractor()], geocoder, document_store)
    document_store.add("doc-1", GPS_TEXT)

    with pytest.raises(ExtractionError):
        service.extract_and_store_coordinates("doc-1", actor)


def test_one_failing_extractor_does_not_stop_others(
    geocoder: GeocodingService, document_store: InMemoryDocumentStore, actor: Actor
) -> None:
    """1つの抽出器の失敗は他の抽出器に影響しない"""
    service = build_service(
        [FailingExtractor(), PatternCoordinateExtractor()], geocoder, document_store
    )
    document_store.add("doc-1", GPS_TEXT)

    geo_tags = service.extract_and_store_coordinates("doc-1", actor)

    assert len(geo_tags) == 1


def test_save_failure_drops_only_that_coordinate(
    geocoder: GeocodingService, document_store: InMemoryDocumentStore, actor: Actor
) -> None:
    """保存に失敗した座標だけが結果から除外される"""
    repository = FlakyRepository()
    audit_sink = InMemoryAuditSink()
    service = build_service(
        [PatternCoordinateExtractor()], geocoder, document_store, repository, audit_sink
    )
    document_store.add("doc-1", "GPS: 40.7128, -74.0060\nGPS: 51.5074, -0.1278")

    geo_tags = service.extract_and_store_coordinates("doc-1", actor)

    assert len(geo_tags) == 1
    assert geo_tags[0].latitude == pytest.approx(51.5074)
    assert len(audit_sink.by_action(ACTION_COORDINATE_EXTRACTED)) == 1


def test_unexpected_save_error_drops_only_that_coordinate(
    geocoder: GeocodingService, document_store: InMemoryDocumentStore, actor: Actor
) -> None:
    """StorageError以外の保存エラーでも残りの座標は保存される"""
    repository = FlakyRepository(error=RuntimeError("connection reset"))
    service = build_service([PatternCoordinateExtractor()], geocoder, document_store, repository)
    document_store.add("doc-1", "GPS: 40.7128, -74.0060\nGPS: 51.5074, -0.1278")

    geo_tags = service.extract_and_store_coordinates("doc-1", actor)

    assert [t.latitude for t in geo_tags] == [pytest.approx(51.5074)]


def test_location_name_placeholder_without_geocoding(
    service: GeoTaggingService, document_store: InMemoryDocumentStore, actor: Actor
) -> None:
    """ジオコーディングしない場合、地名メタデータはプレースホルダーのまま保存される"""
    document_store.add("img-1", area_information_image(), original_name="IMG_0001.jpg")

    geo_tags = service.extract_and_store_coordinates("img-1", actor)

    assert len(geo_tags) == 1
    assert geo_tags[0].accuracy == LocationAccuracy.UNKNOWN
    assert geo_tags[0].latitude == 0
    assert geo_tags[0].address is None
    assert geo_tags[0].metadata["requires_geocoding"] is True


def test_location_name_placeholder_is_geocoded(
    service: GeoTaggingService, document_store: InMemoryDocumentStore, actor: Actor
) -> None:
    """geocode_addresses=True なら地名メタデータを地名辞書で解決する"""
    document_store.add("img-1", area_information_image(), original_name="IMG_0001.jpg")

    geo_tags = service.extract_and_store_coordinates(
        "img-1", actor, ExtractionOptions(geocode_addresses=True)
    )

    assert len(geo_tags) == 1
    geo_tag = geo_tags[0]
    assert geo_tag.latitude == pytest.approx(35.6762)
    assert geo_tag.longitude == pytest.approx(139.6503)
    assert geo_tag.accuracy == LocationAccuracy.APPROXIMATE
    assert geo_tag.confidence == pytest.approx(0.6)
    assert geo_tag.city == "Tokyo"
    assert geo_tag.metadata["geocoded_from"] == "Tokyo"
    assert "requires_geocoding" not in geo_tag.metadata


def test_labeled_places_are_geocoded(
    service: GeoTaggingService, document_store: InMemoryDocumentStore, actor: Actor
) -> None:
    """geocode_addresses=True なら「location: 地名」を順ジオコーディングする"""
    document_store.add("doc-1", "Shipment report\nDelivery location: Berlin\nStatus: complete")

    without = service.extract_and_store_coordinates("doc-1", actor)
    assert without == []

    geo_tags = service.extract_and_store_coordinates(
        "doc-1", actor, ExtractionOptions(geocode_addresses=True)
    )

    assert len(geo_tags) == 1
    geo_tag = geo_tags[0]
    assert geo_tag.latitude == pytest.approx(52.52)
    assert geo_tag.source == CoordinateSource.TEXT_PATTERN
    assert geo_tag.country == "Germany"
    assert geo_tag.metadata["extraction_method"] == "geocoded_address"


# ----------------------------------------------------------------------
# 重複除去
# ----------------------------------------------------------------------


def test_deduplicate_keeps_higher_confidence(service: GeoTaggingService) -> None:
    """epsilon以内の座標は信頼度の高い方を、最初の位置に残す"""
    low = make_coordinate(40.71280, -74.00600, 0.6, "40.7128, -74.006")
    other = make_coordinate(51.5074, -0.1278, 0.8, "51.5074, -0.1278")
    high = make_coordinate(40.71285, -74.00595, 0.9, "40.71285 -74.00595")

    unique = service.deduplicate_coordinates([low, other, high])

    assert unique == [high, other]


def test_deduplicate_by_extracted_text(service: GeoTaggingService) -> None:
    """同じ抽出元テキストは重複とみなす"""
    a = make_coordinate(10.0, 10.0, 0.9, "same text")
    b = make_coordinate(20.0, 20.0, 0.5, "same text")

    assert service.deduplicate_coordinates([a, b]) == [a]


def test_placeholders_are_not_merged_with_real_coordinates(service: GeoTaggingService) -> None:
    """プレースホルダー(0, 0)は実座標(0, 0)と重複扱いしない"""
    placeholder = make_coordinate(0.0, 0.0, 0.5, "18TWL8562811322", requires_conversion=True)
    real = make_coordinate(0.0, 0.0, 0.8, "0.0000, 0.0000")

    assert service.deduplicate_coordinates([placeholder, real]) == [placeholder, real]


def test_deduplicate_chained_candidates(service: GeoTaggingService) -> None:
    """信頼度の高い候補が2つの候補の間にあれば、どちらも重複として除去される"""
    a = make_coordinate(10.0, 10.0, 0.5, "a")
    b = make_coordinate(10.00015, 10.0, 0.5, "b")
    c = make_coordinate(10.00008, 10.0, 0.9, "c")

    unique = service.deduplicate_coordinates([a, b, c])

    assert unique == [c]


def test_deduplicate_result_has_no_pairs_within_epsilon(service: GeoTaggingService) -> None:
    """結果のどの2つもepsilon以内にない"""
    coordinates = [
        make_coordinate(20.0 + i * 0.00006, 30.0, 0.5 + (i % 3) * 0.1, f"p{i}") for i in range(8)
    ]

    unique = service.deduplicate_coordinates(coordinates)

    for i, first in enumerate(unique):
        for second in unique[i + 1 :]:
            assert abs(first.latitude - second.latitude) > service.dedup_epsilon


# ----------------------------------------------------------------------
# 手動作成・管理
# ----------------------------------------------------------------------


def create_request(**overrides) -> dict:
    data = {
        "document_id": "doc-1",
        "latitude": 51.5,
        "longitude": -0.12,
        "extracted_by": "user-2",
        "extracted_by_email": "editor@example.com",
    }
    data.update(overrides)
    return data


def test_create_geo_tag(
    service: GeoTaggingService,
    document_store: InMemoryDocumentStore,
    audit_sink: InMemoryAuditSink,
) -> None:
    """手動作成では住所を逆ジオコーディングで補完し、監査ログを残す"""
    document_store.add("doc-1", "manual")

    geo_tag = service.create_geo_tag(create_request())

    assert geo_tag.id
    assert geo_tag.source == CoordinateSource.MANUAL
    assert geo_tag.address == "Near London"
    assert geo_tag.country == "UK"
    assert not geo_tag.is_verified

    events = audit_sink.by_action(ACTION_GEO_TAG_CREATED)
    assert len(events) == 1
    assert events[0].user_id == "user-2"
    assert events[0].resource_id == geo_tag.id


def test_create_geo_tag_keeps_given_address(
    service: GeoTaggingService, document_store: InMemoryDocumentStore
) -> None:
    """住所が指定されていれば補完しない"""
    document_store.add("doc-1", "manual")

    geo_tag = service.create_geo_tag(create_request(address="10 Downing Street", is_verified=True))

    assert geo_tag.address == "10 Downing Street"
    assert geo_tag.city is None
    assert geo_tag.is_verified
    assert geo_tag.verified_by == "user-2"
    assert geo_tag.verified_at is not None


@pytest.mark.parametrize(
    "overrides",
    [
        {"latitude": 91.0},
        {"longitude": -180.5},
        {"confidence": 1.5},
        {"document_id": ""},
        {"unexpected": "field"},
    ],
)
def test_create_geo_tag_validation(
    service: GeoTaggingService, document_store: InMemoryDocumentStore, overrides: dict
) -> None:
    """不正なリクエストはValidationError"""
    document_store.add("doc-1", "manual")

    with pytest.raises(ValidationError):
        service.create_geo_tag(create_request(**overrides))


def test_create_geo_tag_for_missing_document(service: GeoTaggingService) -> None:
    """存在しないドキュメントにはジオタグを作成できない"""
    with pytest.raises(NotFoundError):
        service.create_geo_tag(create_request(document_id="missing"))


def test_get_geo_tag(service: GeoTaggingService, document_store: InMemoryDocumentStore) -> None:
    """IDで取得、存在しなければNotFoundError"""
    document_store.add("doc-1", "manual")
    created = service.create_geo_tag(create_request())

    assert service.get_geo_tag(created.id).latitude == pytest.approx(51.5)  # type: ignore[arg-type]
    with pytest.raises(NotFoundError):
        service.get_geo_tag("missing")


def test_query_geo_tags(service: GeoTaggingService, document_store: InMemoryDocumentStore) -> None:
    """等価条件で検索する"""
    document_store.add("doc-1", "a")
    document_store.add("doc-2", "b")
    service.create_geo_tag(create_request())
    service.create_geo_tag(create_request(document_id="doc-2", latitude=35.68, longitude=139.65))
    service.create_geo_tag(
        create_request(document_id="doc-2", latitude=0.5, longitude=0.5, source="regex")
    )

    assert len(service.query_geo_tags(GeoTagQuery(document_id="doc-2"))) == 2
    assert len(service.query_geo_tags(GeoTagQuery(source=CoordinateSource.MANUAL))) == 2
    assert [t.city for t in service.query_geo_tags(GeoTagQuery(country="Japan"))] == ["Tokyo"]
    assert len(service.query_geo_tags(GeoTagQuery(limit=1))) == 1


def test_search_nearby(service: GeoTaggingService, document_store: InMemoryDocumentStore) -> None:
    """半径内のジオタグを距離順に返す"""
    document_store.add("doc-1", "a")
    newark = service.create_geo_tag(create_request(latitude=40.7357, longitude=-74.1724))
    manhattan = service.create_geo_tag(create_request(latitude=40.7128, longitude=-74.006))
    service.create_geo_tag(create_request(latitude=51.5074, longitude=-0.1278))

    results = service.search_nearby(
        NearbySearch(center_latitude=40.7130, center_longitude=-74.0060, radius_km=20)
    )

    assert [r.geo_tag.id for r in results] == [manhattan.id, newark.id]
    assert results[0].distance_km < 0.1
    assert 13 < results[1].distance_km < 16


def test_search_nearby_includes_tags_just_inside_radius(
    service: GeoTaggingService, document_store: InMemoryDocumentStore
) -> None:
    """半径ぎりぎり内側のジオタグも絞り込み矩形から漏れない"""
    document_store.add("doc-1", "a")
    north = service.create_geo_tag(create_request(latitude=0.899, longitude=0.0))
    east = service.create_geo_tag(create_request(latitude=0.0, longitude=0.899))
    service.create_geo_tag(create_request(latitude=0.0, longitude=-0.91))

    results = service.search_nearby(
        NearbySearch(center_latitude=0.0, center_longitude=0.0, radius_km=100)
    )

    assert {r.geo_tag.id for r in results} == {north.id, east.id}
    assert all(99.9 < r.distance_km <= 100 for r in results)


def test_search_nearby_across_antimeridian(
    service: GeoTaggingService, document_store: InMemoryDocumentStore
) -> None:
    """日付変更線をまたぐ周辺検索"""
    document_store.add("doc-1", "a")
    east_side = service.create_geo_tag(create_request(latitude=0.0, longitude=-179.9))

    results = service.search_nearby(
        NearbySearch(center_latitude=0.0, center_longitude=179.9, radius_km=50)
    )

    assert [r.geo_tag.id for r in results] == [east_side.id]
    assert results[0].distance_km == pytest.approx(22.2, abs=0.5)


def test_search_nearby_near_pole(
    service: GeoTaggingService, document_store: InMemoryDocumentStore
) -> None:
    """極付近では経度方向を絞り込まない"""
    document_store.add("doc-1", "a")
    far_side = service.create_geo_tag(create_request(latitude=89.95, longitude=170.0))

    results = service.search_nearby(
        NearbySearch(center_latitude=89.95, center_longitude=-10.0, radius_km=20)
    )

    assert [r.geo_tag.id for r in results] == [far_side.id]


def test_search_bounding_box_across_antimeridian(
    service: GeoTaggingService, document_store: InMemoryDocumentStore
) -> None:
    """west > east の矩形は日付変更線をまたぐ"""
    document_store.add("doc-1", "a")
    west_of_line = service.create_geo_tag(create_request(latitude=-17.7, longitude=178.0))
    east_of_line = service.create_geo_tag(create_request(latitude=-13.8, longitude=-172.0))
    service.create_geo_tag(create_request(latitude=0.0, longitude=0.0))

    results = service.search_bounding_box(
        BoundingBoxSearch(
            north_latitude=0.0, south_latitude=-20.0, west_longitude=170.0, east_longitude=-170.0
        )
    )

    assert {t.id for t in results} == {west_of_line.id, east_of_line.id}


def test_bounding_box_rejects_inverted_latitudes() -> None:
    """south > north は不正"""
    with pytest.raises(pydantic.ValidationError):
        BoundingBoxSearch(
            north_latitude=-10.0, south_latitude=10.0, west_longitude=0.0, east_longitude=10.0
        )


def test_verify_geo_tag(
    service: GeoTaggingService,
    document_store: InMemoryDocumentStore,
    audit_sink: InMemoryAuditSink,
    actor: Actor,
) -> None:
    """検証済みにすると検証者と日時が記録される"""
    document_store.add("doc-1", "a")
    created = service.create_geo_tag(create_request())

    verified = service.verify_geo_tag(created.id, actor)  # type: ignore[arg-type]

    assert verified.is_verified
    assert verified.verified_by == "user-1"
    assert verified.verified_at is not None
    assert verified.latitude == created.latitude
    assert [e.resource_id for e in audit_sink.by_action(ACTION_GEO_TAG_VERIFIED)] == [created.id]

    with pytest.raises(NotFoundError):
        service.verify_geo_tag("missing", actor)


def test_deactivate_geo_tag(
    service: GeoTaggingService,
    document_store: InMemoryDocumentStore,
    audit_sink: InMemoryAuditSink,
    actor: Actor,
) -> None:
    """無効化したジオタグは通常の取得・検索に現れない"""
    document_store.add("doc-1", "a")
    created = service.create_geo_tag(create_request())

    deactivated = service.deactivate_geo_tag(created.id, actor)  # type: ignore[arg-type]

    assert not deactivated.is_active
    assert service.find_by_document("doc-1") == []
    assert len(service.find_by_document("doc-1", include_inactive=True)) == 1
    assert service.query_geo_tags(GeoTagQuery(document_id="doc-1")) == []
    assert len(audit_sink.by_action(ACTION_GEO_TAG_DEACTIVATED)) == 1

    with pytest.raises(NotFoundError):
        service.deactivate_geo_tag("missing", actor)
