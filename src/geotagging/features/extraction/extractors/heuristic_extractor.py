"""ヒューリスティックなテキスト解析による座標推定"""

import random
import re
from typing import TYPE_CHECKING, Iterable, Optional, Union

from ....shared.logging.config import get_logger
from ...geocoding.domain.models import PlaceHint
from ...geocoding.gazetteer import load_place_hints
from ..domain.conversions import is_valid_coordinate
from ..domain.enums import CoordinateFormat, CoordinateSource, LocationAccuracy
from ..domain.models import ExtractedCoordinate
from .base import BaseCoordinateExtractor, ExtractorContent

if TYPE_CHECKING:
    from ...geocoding.providers.cache_geocoder import CacheGeocoder
    from ...geocoding.services.geocoding_service import GeocodingService

logger = get_logger(__name__)

LOCATION_KEYWORDS = (
    "coordinates",
    "latitude",
    "longitude",
    "gps",
    "location",
    "position",
    "address",
    "place",
    "site",
    "area",
    "region",
    "zone",
    "sector",
)

HINT_ACCURACY_RADIUS = 5000.0  # 都市中心（5km）
PLACE_NAME_ACCURACY_RADIUS = 1000.0  # 市区町村レベル（1km）

# (パターン, 地名として使うグループ番号)
PLACE_NAME_PATTERNS: list[tuple[re.Pattern[str], int]] = [
    # City, Region / City, COUNTRY
    (
        re.compile(
            r"([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*),\s*([A-Z]{2,}|[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)"
        ),
        1,
    ),
    # 番地付きの通り名
    (
        re.compile(
            r"\d+\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\s+"
            r"(?i:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Drive|Dr|Lane|Ln)\b"
        ),
        0,
    ),
    # at / near / by + ランドマーク
    (
        re.compile(
            r"\b(?i:at|near|by)\s+"
            r"([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*"
            r"(?:\s+(?:Building|Tower|Center|Mall|Park|Bridge|Airport|Station))?)"
        ),
        1,
    ),
]


class HeuristicTextExtractor(BaseCoordinateExtractor):
    """
    既知地名と地名らしき語句から座標を推定する抽出器

    モデルベースの抽出器の代替として動作する。use_ai オプションが
    指定されたときのみオーケストレーターから呼び出される。
    """

    requires_opt_in = True

    def __init__(
        self,
        geocoder: Union["GeocodingService", "CacheGeocoder"],
        min_text_length: int = 50,
        max_text_length: int = 50000,
        jitter_degrees: float = 0.01,
        rng: Optional[random.Random] = None,
        hints: Optional[Iterable[PlaceHint]] = None,
    ) -> None:
        """
        Args:
            geocoder: 地名解決に使うジオコーダー
            min_text_length: 対象とする最小文字数（この長さ以下は対象外）
            max_text_length: 対象とする最大文字数（この長さ以上は対象外）
            jitter_degrees: 既知地名の座標に加える揺らぎの幅（度）
            rng: 乱数源（テストでは固定値を返すものを注入する）
            hints: 既知地名テーブル（省略時は地名辞書から読み込む）
        """
        super().__init__()
        self.geocoder = geocoder
        self.min_text_length = min_text_length
        self.max_text_length = max_text_length
        self.jitter_degrees = jitter_degrees
        self.rng = rng or random.Random()
        self.hints: tuple[PlaceHint, ...] = (
            tuple(hints) if hints is not None else load_place_hints()
        )

    def can_handle(self, content: ExtractorContent, mime_type: Optional[str] = None) -> bool:
        if not isinstance(content, str):
            return False
        return self.min_text_length < len(content) < self.max_text_length

    def extract(
        self, content: ExtractorContent, filename: Optional[str] = None
    ) -> list[ExtractedCoordinate]:
        if isinstance(content, bytes):
            content = content.decode("utf-8", errors="replace")
        text = str(content)

        coordinates: list[ExtractedCoordinate] = []

        try:
            if has_location_context(text):
                coordinates.extend(self._match_hints(text))

            for place_name in extract_place_names(text):
                coordinate = self._resolve_place_name(place_name)
                if coordinate:
                    coordinates.append(coordinate)
        except Exception as e:
            logger.error(f"Error in heuristic coordinate extraction: {e}")
            return []

        logger.info(
            f"Heuristic extraction found {len(coordinates)} coordinates in {filename or 'content'}"
        )
        return coordinates

    def _match_hints(self, text: str) -> list[ExtractedCoordinate]:
        """既知地名テーブルとの部分一致（大文字小文字を区別しない）"""
        text_lower = text.lower()
        coordinates: list[ExtractedCoordinate] = []

        for hint in self.hints:
            if hint.text.lower() not in text_lower:
                continue

            lat = hint.latitude + self._jitter()
            lon = hint.longitude + self._jitter()
            if not is_valid_coordinate(lat, lon):
                continue

            coordinates.append(
                ExtractedCoordinate(
                    latitude=lat,
                    longitude=lon,
                    source=CoordinateSource.HEURISTIC_TEXT,
                    original_format=CoordinateFormat.DECIMAL_DEGREES,
                    accuracy=LocationAccuracy.APPROXIMATE,
                    accuracy_radius=HINT_ACCURACY_RADIUS,
                    extracted_text=hint.text,
                    confidence=hint.confidence,
                    metadata={
                        "original_coordinates": hint.text,
                        "extraction_method": "heuristic_text",
                        "context_clues": ["city_name", "geographic_reference"],
                    },
                )
            )

        return coordinates

    def _resolve_place_name(self, place_name: str) -> Optional[ExtractedCoordinate]:
        result = self.geocoder.geocode(place_name)
        if result is None:
            return None

        metadata = {
            "original_coordinates": place_name,
            "extraction_method": "heuristic_text",
            "context_clues": ["place_name", "address_pattern"],
        }
        for key in ("address", "city", "region", "country", "postal_code"):
            value = getattr(result, key)
            if value:
                metadata[key] = value

        return ExtractedCoordinate(
            latitude=result.latitude,
            longitude=result.longitude,
            source=CoordinateSource.HEURISTIC_TEXT,
            original_format=CoordinateFormat.DECIMAL_DEGREES,
            accuracy=LocationAccuracy.APPROXIMATE,
            accuracy_radius=PLACE_NAME_ACCURACY_RADIUS,
            extracted_text=place_name,
            confidence=result.confidence,
            metadata=metadata,
        )

    def _jitter(self) -> float:
        half = self.jitter_degrees / 2
        return self.rng.uniform(-half, half)


def has_location_context(text: str) -> bool:
    """位置に関するキーワードを含むか"""
    text_lower = text.lower()
    return any(keyword in text_lower for keyword in LOCATION_KEYWORDS)


def extract_place_names(text: str) -> list[str]:
    """
    地名らしき語句を抽出

    Returns:
        list[str]: 出現順・重複なしの地名候補
    """
    place_names: list[str] = []

    for pattern, group in PLACE_NAME_PATTERNS:
        for match in pattern.finditer(text):
            place_name = (match.group(group) or match.group(0)).strip()
            if 3 < len(place_name) < 100:
                place_names.append(place_name)

    return list(dict.fromkeys(place_names))
