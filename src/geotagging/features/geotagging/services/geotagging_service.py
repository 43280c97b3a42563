"""ジオタグ抽出・管理サービス"""

import math
import re
import time
from dataclasses import replace
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import pydantic

from ....shared.exceptions.errors import (
    ExtractionError,
    GeocodingError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from ....shared.logging.config import get_logger
from ....shared.utils.datetime_utils import format_duration, now_utc
from ....shared.utils.text import truncate_text
from ...documents.document_store import Document, DocumentStore, read_document_text
from ...extraction.domain.enums import (
    ContentKind,
    CoordinateFormat,
    CoordinateSource,
    ExtractionStage,
    LocationAccuracy,
)
from ...extraction.domain.models import (
    Actor,
    ExtractedCoordinate,
    ExtractionOptions,
    GeoTag,
    NearbyGeoTag,
)
from ...extraction.domain.requests import (
    BoundingBoxSearch,
    CreateGeoTagRequest,
    GeoTagQuery,
    NearbySearch,
)
from ...extraction.extractors.base import BaseCoordinateExtractor, ExtractorContent
from ...geocoding.domain.metrics import EARTH_RADIUS_KM, haversine_km
from ...geocoding.providers.cache_geocoder import CacheGeocoder
from ...geocoding.services.geocoding_service import GeocodingService
from ...storage.repositories.audit_repository import AuditSink
from ...storage.repositories.geotag_repository import GeoTagRepository

logger = get_logger(__name__)

Geocoder = Union[GeocodingService, CacheGeocoder]

# 監査ログの操作種別
ACTION_COORDINATE_EXTRACTED = "coordinate-extracted"
ACTION_GEO_TAG_CREATED = "geo-tag-created"
ACTION_GEO_TAG_VERIFIED = "geo-tag-verified"
ACTION_GEO_TAG_DEACTIVATED = "geo-tag-deactivated"

ADDRESS_FIELDS = ("address", "city", "region", "country", "postal_code")

# address: / location: / place: ラベル付きの地名
LABELED_PLACE_PATTERN = re.compile(
    r"\b(?:address|location|place)\s*:\s*([^\n;]{3,100})", re.IGNORECASE
)
GEOCODED_ADDRESS_ACCURACY_RADIUS = 1000.0

KM_PER_DEGREE_LATITUDE = math.radians(1) * EARTH_RADIUS_KM


class GeoTaggingService:
    """
    ドキュメントからの座標抽出とジオタグ管理

    抽出器は注入された順に実行する（メタデータ → パターン → ヒューリスティック）。
    1つの抽出器の失敗は他の抽出器に影響しない。
    """

    def __init__(
        self,
        extractors: Sequence[BaseCoordinateExtractor],
        geocoder: Geocoder,
        document_store: DocumentStore,
        repository: GeoTagRepository,
        audit_sink: AuditSink,
        dedup_epsilon: float = 1e-4,
        reverse_geocoding_enabled: bool = True,
    ) -> None:
        """
        Args:
            extractors: 優先順位順の抽出器リスト
            geocoder: ジオコーダー
            document_store: ドキュメントストア
            repository: ジオタグリポジトリ
            audit_sink: 監査ログの出力先
            dedup_epsilon: 重複とみなす座標差（度）
            reverse_geocoding_enabled: 抽出座標の住所を逆ジオコーディングで補完するか
        """
        self.extractors = list(extractors)
        self.geocoder = geocoder
        self.document_store = document_store
        self.repository = repository
        self.audit_sink = audit_sink
        self.dedup_epsilon = dedup_epsilon
        self.reverse_geocoding_enabled = reverse_geocoding_enabled

        logger.info(
            f"GeoTaggingService initialized: extractors={[e.name for e in self.extractors]}, "
            f"dedup_epsilon={dedup_epsilon}"
        )

    # ------------------------------------------------------------------
    # 抽出
    # ------------------------------------------------------------------

    def extract_and_store_coordinates(
        self,
        document_id: str,
        actor: Actor,
        options: Optional[ExtractionOptions] = None,
    ) -> list[GeoTag]:
        """
        ドキュメントから座標を抽出して保存

        Args:
            document_id: ドキュメントID
            actor: 抽出の実行者
            options: 抽出オプション

        Returns:
            list[GeoTag]: 保存されたジオタグ（スキップ時は既存のジオタグ）

        Raises:
            NotFoundError: ドキュメントが存在しない場合
            ExtractionError: 内容が読めない、または全抽出器が失敗した場合
        """
        options = options or ExtractionOptions()
        start_time = time.time()
        self._log_stage(document_id, ExtractionStage.NOT_EXTRACTED)

        document = self.document_store.resolve(document_id)

        existing = self.repository.find_by_document(document_id)
        if existing and not options.force_reextraction:
            logger.info(f"Document {document_id} already has {len(existing)} geo-tags")
            self._log_stage(document_id, ExtractionStage.SKIPPED)
            return existing

        self._log_stage(document_id, ExtractionStage.EXTRACTING)
        text = read_document_text(document)
        candidates = self._run_extractors(document, text, options)

        if options.geocode_addresses:
            candidates = [self._resolve_placeholder(c) for c in candidates]
            candidates.extend(self._geocode_labeled_places(text))

        self._log_stage(document_id, ExtractionStage.DEDUPLICATING)
        unique = self.deduplicate_coordinates(candidates)

        if options.reverse_geocode and self.reverse_geocoding_enabled:
            self._log_stage(document_id, ExtractionStage.REVERSE_GEOCODING)
            for coordinate in unique:
                self._backfill_address(coordinate)

        self._log_stage(document_id, ExtractionStage.PERSISTING)
        saved_tags = self._persist(document_id, unique, actor)
        if existing and (saved_tags or not unique):
            self._supersede(existing, actor)
        elif existing:
            logger.warning(
                f"Kept {len(existing)} existing geo-tags for document {document_id}: "
                f"no new geo-tag could be saved"
            )

        self._log_stage(document_id, ExtractionStage.DONE)
        logger.info(
            f"Successfully extracted and stored {len(saved_tags)} geo-tags for document "
            f"{document_id} in {format_duration(time.time() - start_time)}"
        )
        return saved_tags

    def deduplicate_coordinates(
        self, coordinates: Sequence[ExtractedCoordinate]
    ) -> list[ExtractedCoordinate]:
        """
        重複する座標候補を除去（信頼度の高い方を残す）

        座標差がepsilon以内、または抽出元テキストが同一の場合に重複とみなす。
        プレースホルダー座標はテキストのみで比較する。
        信頼度の高い順に採用するため、結果のどの2つも重複しない。

        Args:
            coordinates: 座標候補

        Returns:
            list[ExtractedCoordinate]: 重複グループの最初の出現位置の順に並べたリスト
        """
        # [最初の出現位置, 採用した候補]
        kept: list[list[Any]] = []
        by_confidence = sorted(range(len(coordinates)), key=lambda i: -coordinates[i].confidence)

        for index in by_confidence:
            coordinate = coordinates[index]
            group = next((g for g in kept if self._is_duplicate(coordinate, g[1])), None)
            if group is None:
                kept.append([index, coordinate])
            else:
                group[0] = min(group[0], index)

        unique = [coordinate for _, coordinate in sorted(kept, key=lambda g: g[0])]

        removed = len(coordinates) - len(unique)
        if removed:
            logger.debug(f"Removed {removed} duplicate coordinates")
        return unique

    def _is_duplicate(self, a: ExtractedCoordinate, b: ExtractedCoordinate) -> bool:
        if a.extracted_text and a.extracted_text == b.extracted_text:
            return True
        if a.is_placeholder or b.is_placeholder:
            return False
        return (
            abs(a.latitude - b.latitude) <= self.dedup_epsilon
            and abs(a.longitude - b.longitude) <= self.dedup_epsilon
        )

    def _run_extractors(
        self, document: Document, text: str, options: ExtractionOptions
    ) -> list[ExtractedCoordinate]:
        candidates: list[ExtractedCoordinate] = []
        invoked = 0
        failed = 0

        for extractor in self.extractors:
            if extractor.requires_opt_in and not options.use_ai:
                logger.debug(f"{extractor.name} skipped (not enabled)")
                continue

            content = self._content_for(extractor, document, text)
            if content is None or not extractor.can_handle(content, document.mime_type):
                continue

            invoked += 1
            try:
                coordinates = extractor.extract(content, document.original_name)
            except Exception as e:
                failed += 1
                logger.warning(f"{extractor.name} failed for {document.document_id}: {e}")
                continue

            logger.info(f"{extractor.name} found {len(coordinates)} coordinates")
            candidates.extend(coordinates)

        if invoked and failed == invoked:
            raise ExtractionError(
                f"All {invoked} extractors failed for document {document.document_id}"
            )

        return candidates

    @staticmethod
    def _content_for(
        extractor: BaseCoordinateExtractor, document: Document, text: str
    ) -> Optional[ExtractorContent]:
        """抽出器の種類に応じたコンテンツ（対象外の場合はNone）"""
        if extractor.content_kind == ContentKind.BINARY:
            if not document.is_image:
                return None
            if isinstance(document.content, Path) and not document.content.is_file():
                raise ExtractionError(f"Document content is not readable: {document.document_id}")
            return document.content

        return text or None

    def _resolve_placeholder(self, coordinate: ExtractedCoordinate) -> ExtractedCoordinate:
        """ジオコーディング待ちの候補を地名辞書で解決（解決できなければそのまま）"""
        if not coordinate.metadata.get("requires_geocoding"):
            return coordinate

        result = self.geocoder.geocode(coordinate.extracted_text)
        if result is None:
            return coordinate

        metadata = {k: v for k, v in coordinate.metadata.items() if k != "requires_geocoding"}
        metadata["geocoded_from"] = coordinate.extracted_text
        metadata.update(_address_metadata(result))

        return replace(
            coordinate,
            latitude=result.latitude,
            longitude=result.longitude,
            accuracy=LocationAccuracy.APPROXIMATE,
            accuracy_radius=GEOCODED_ADDRESS_ACCURACY_RADIUS,
            confidence=min(coordinate.confidence, result.confidence),
            metadata=metadata,
        )

    def _geocode_labeled_places(self, text: str) -> list[ExtractedCoordinate]:
        """本文中のラベル付き地名を順ジオコーディング"""
        coordinates: list[ExtractedCoordinate] = []
        if not text:
            return coordinates

        for match in LABELED_PLACE_PATTERN.finditer(text):
            phrase = match.group(1).strip().rstrip(".,")
            result = self.geocoder.geocode(phrase)
            if result is None:
                continue

            coordinates.append(
                ExtractedCoordinate(
                    latitude=result.latitude,
                    longitude=result.longitude,
                    source=CoordinateSource.TEXT_PATTERN,
                    original_format=CoordinateFormat.DECIMAL_DEGREES,
                    accuracy=LocationAccuracy.APPROXIMATE,
                    accuracy_radius=GEOCODED_ADDRESS_ACCURACY_RADIUS,
                    extracted_text=phrase,
                    confidence=result.confidence,
                    metadata={
                        "original_coordinates": phrase,
                        "extraction_method": "geocoded_address",
                        **_address_metadata(result),
                    },
                )
            )

        logger.debug(f"Geocoded {len(coordinates)} labeled places")
        return coordinates

    def _backfill_address(self, coordinate: ExtractedCoordinate) -> None:
        """住所情報のない候補を逆ジオコーディングで補完"""
        if coordinate.metadata.get("address") or coordinate.accuracy == LocationAccuracy.UNKNOWN:
            return

        try:
            result = self.geocoder.reverse_geocode(coordinate.latitude, coordinate.longitude)
        except GeocodingError as e:
            logger.warning(f"Reverse geocoding failed for {coordinate}: {e}")
            return

        coordinate.metadata.update(_address_metadata(result))
        coordinate.metadata["reverse_geocoding_confidence"] = result.confidence

    def _supersede(self, existing: list[GeoTag], actor: Actor) -> None:
        """再抽出時に既存のジオタグを無効化"""
        for geo_tag in existing:
            try:
                self.repository.deactivate(geo_tag.id)  # type: ignore[arg-type]
            except (NotFoundError, StorageError) as e:
                logger.error(f"Failed to deactivate superseded geo-tag {geo_tag.id}: {e}")
                continue
            self.audit_sink.record(
                actor, ACTION_GEO_TAG_DEACTIVATED, geo_tag.id, {"reason": "re-extraction"}  # type: ignore[arg-type]
            )

        logger.info(f"Deactivated {len(existing)} superseded geo-tags")

    def _persist(
        self, document_id: str, coordinates: list[ExtractedCoordinate], actor: Actor
    ) -> list[GeoTag]:
        saved_tags: list[GeoTag] = []

        for coordinate in coordinates:
            try:
                saved = self.repository.save(GeoTag.from_extracted(coordinate, document_id, actor))
            except Exception as e:
                logger.error(f"Error saving geo-tag for document {document_id}: {e}")
                continue

            saved_tags.append(saved)
            self.audit_sink.record(
                actor,
                ACTION_COORDINATE_EXTRACTED,
                saved.id,  # type: ignore[arg-type]
                {
                    "document_id": document_id,
                    "latitude": saved.latitude,
                    "longitude": saved.longitude,
                    "source": saved.source.value,
                    "accuracy": saved.accuracy.value,
                    "confidence": saved.confidence,
                    "extracted_text": truncate_text(saved.extracted_text or "", 200),
                },
            )

        return saved_tags

    @staticmethod
    def _log_stage(document_id: str, stage: ExtractionStage) -> None:
        logger.debug(f"Document {document_id}: {stage.value}")

    # ------------------------------------------------------------------
    # 手動作成・管理
    # ------------------------------------------------------------------

    def create_geo_tag(self, request: Union[CreateGeoTagRequest, dict[str, Any]]) -> GeoTag:
        """
        ジオタグを手動で作成

        Args:
            request: 作成リクエスト（辞書の場合は検証してから使用）

        Returns:
            GeoTag: 保存されたジオタグ

        Raises:
            ValidationError: リクエストが不正な場合
            NotFoundError: ドキュメントが存在しない場合
        """
        if isinstance(request, dict):
            try:
                request = CreateGeoTagRequest(**request)
            except pydantic.ValidationError as e:
                raise ValidationError(f"Invalid geo-tag request: {e}") from e

        self.document_store.resolve(request.document_id)

        data = request.model_dump()
        if not data.get("address"):
            try:
                result = self.geocoder.reverse_geocode(request.latitude, request.longitude)
            except GeocodingError as e:
                logger.warning(f"Reverse geocoding failed for manual geo-tag: {e}")
            else:
                for key, value in _address_metadata(result).items():
                    data[key] = data.get(key) or value

        is_verified = data.pop("is_verified")
        geo_tag = GeoTag(**data)
        if is_verified:
            geo_tag.is_verified = True
            geo_tag.verified_by = request.extracted_by
            geo_tag.verified_at = now_utc()

        saved = self.repository.save(geo_tag)

        actor = Actor(user_id=request.extracted_by, email=request.extracted_by_email)
        self.audit_sink.record(
            actor,
            ACTION_GEO_TAG_CREATED,
            saved.id,  # type: ignore[arg-type]
            {
                "document_id": saved.document_id,
                "latitude": saved.latitude,
                "longitude": saved.longitude,
                "source": saved.source.value,
                "accuracy": saved.accuracy.value,
            },
        )

        logger.info(f"GeoTag created manually: {saved.id} for document {saved.document_id}")
        return saved

    def find_by_document(self, document_id: str, include_inactive: bool = False) -> list[GeoTag]:
        """ドキュメントのジオタグを取得"""
        return self.repository.find_by_document(document_id, include_inactive=include_inactive)

    def get_geo_tag(self, geo_tag_id: str) -> GeoTag:
        """
        ジオタグを取得

        Raises:
            NotFoundError: ジオタグが存在しない場合
        """
        geo_tag = self.repository.get_by_id(geo_tag_id)
        if geo_tag is None:
            raise NotFoundError(f"GeoTag not found: {geo_tag_id}")
        return geo_tag

    def query_geo_tags(self, query: GeoTagQuery) -> list[GeoTag]:
        """条件に一致するジオタグを検索（新しい順）"""
        return self.repository.query(query.equality_filters(), limit=query.limit, offset=query.offset)

    def search_nearby(self, search: NearbySearch) -> list[NearbyGeoTag]:
        """
        中心点から半径内のジオタグを距離順に検索

        矩形で候補を絞り込んでから、Haversine距離で判定する。
        """
        south, north, west, east = _bounding_box_around(
            search.center_latitude, search.center_longitude, search.radius_km
        )

        filters: dict[str, Any] = {}
        if search.document_id:
            filters["document_id"] = search.document_id
        if search.source:
            filters["source"] = search.source.value

        results: list[NearbyGeoTag] = []
        for geo_tag in self.repository.find_in_bounds(south, north, west, east, filters):
            distance = haversine_km(
                search.center_latitude, search.center_longitude, geo_tag.latitude, geo_tag.longitude
            )
            if distance <= search.radius_km:
                results.append(NearbyGeoTag(geo_tag=geo_tag, distance_km=distance))

        results.sort(key=lambda r: r.distance_km)
        return results[: search.limit]

    def search_bounding_box(self, search: BoundingBoxSearch) -> list[GeoTag]:
        """矩形範囲内のジオタグを検索（west > east は日付変更線をまたぐ）"""
        filters = {"source": search.source.value} if search.source else None
        geo_tags = self.repository.find_in_bounds(
            search.south_latitude,
            search.north_latitude,
            search.west_longitude,
            search.east_longitude,
            filters,
        )
        return geo_tags[: search.limit]

    def verify_geo_tag(self, geo_tag_id: str, actor: Actor) -> GeoTag:
        """
        ジオタグを検証済みにする

        Raises:
            NotFoundError: ジオタグが存在しない場合
        """
        geo_tag = self.repository.mark_verified(geo_tag_id, actor.user_id, now_utc())
        self.audit_sink.record(
            actor, ACTION_GEO_TAG_VERIFIED, geo_tag_id, {"document_id": geo_tag.document_id}
        )
        logger.info(f"GeoTag verified: {geo_tag_id} by {actor.email}")
        return geo_tag

    def deactivate_geo_tag(self, geo_tag_id: str, actor: Actor) -> GeoTag:
        """
        ジオタグを無効化（論理削除）

        Raises:
            NotFoundError: ジオタグが存在しない場合
        """
        geo_tag = self.repository.deactivate(geo_tag_id)
        self.audit_sink.record(
            actor, ACTION_GEO_TAG_DEACTIVATED, geo_tag_id, {"document_id": geo_tag.document_id}
        )
        logger.info(f"GeoTag deactivated: {geo_tag_id} by {actor.email}")
        return geo_tag


def _address_metadata(result: Any) -> dict[str, Any]:
    """ジオコーディング結果の住所項目（値のあるもののみ）"""
    return {
        key: getattr(result, key)
        for key in ADDRESS_FIELDS
        if getattr(result, key, None)
    }


def _bounding_box_around(
    latitude: float, longitude: float, radius_km: float
) -> tuple[float, float, float, float]:
    """中心点と半径を囲む矩形 (south, north, west, east)"""
    delta_lat = radius_km / KM_PER_DEGREE_LATITUDE
    south = max(-90.0, latitude - delta_lat)
    north = min(90.0, latitude + delta_lat)

    # 経度方向の幅は極側の端で最大になる
    cos_lat = math.cos(math.radians(max(abs(south), abs(north))))
    if south <= -90.0 or north >= 90.0 or cos_lat <= 1e-9:
        return south, north, -180.0, 180.0

    delta_lon = radius_km / (KM_PER_DEGREE_LATITUDE * cos_lat)
    if delta_lon >= 180.0:
        return south, north, -180.0, 180.0

    west = longitude - delta_lon
    east = longitude + delta_lon
    if west < -180.0:
        west += 360.0
    if east > 180.0:
        east -= 360.0
    return south, north, west, east
