"""正規表現による座標書式の抽出（10進度・度分秒・度分・UTM・MGRS）"""

import re
from typing import Iterator, Optional

from ....shared.logging.config import get_logger
from ..domain.conversions import (
    ddm_to_decimal,
    dms_to_decimal,
    is_valid_coordinate,
    utm_to_lat_lon,
)
from ..domain.enums import CoordinateFormat, CoordinateSource, LocationAccuracy
from ..domain.models import ExtractedCoordinate
from .base import BaseCoordinateExtractor, ExtractorContent

logger = get_logger(__name__)

_NUMBER = r"(-?\d{1,3}(?:\.\d*)?)"

# 10進度（具体的なパターンから順に評価）
DECIMAL_DEGREES_PATTERNS = [
    # lat: 40.7128, lon: -74.0060
    re.compile(
        rf"\blat(?:itude)?[:=\s]*{_NUMBER}°?\s*[,;\s]\s*lon(?:g(?:itude)?)?[:=\s]*{_NUMBER}°?",
        re.IGNORECASE,
    ),
    # GPS: 40.7128, -74.0060
    re.compile(rf"\bGPS[:\s]*{_NUMBER}°?[,\s]+{_NUMBER}°?", re.IGNORECASE),
    # (40.7128, -74.0060)
    re.compile(rf"\(\s*{_NUMBER}°?\s*[,\s]\s*{_NUMBER}°?\s*\)"),
    # 40.7128, -74.0060（ラベルなしは小数部を必須とする）
    re.compile(r"(?<![\w.\-])(-?\d{1,3}\.\d+)°?[,\s]+(-?\d{1,3}\.\d+)°?(?![\d.])"),
]

# 度分秒
DMS_PATTERNS = [
    # 40°42'46"N, 74°00'22"W
    re.compile(
        r"(?<!\d)(\d{1,3})°(\d{1,2})'(\d{1,2}(?:\.\d+)?)\"([NS])[,\s]*"
        r"(\d{1,3})°(\d{1,2})'(\d{1,2}(?:\.\d+)?)\"([EW])",
        re.IGNORECASE,
    ),
    # 40° 42' 46" N, 74° 00' 22" W
    re.compile(
        r"(?<!\d)(\d{1,3})°\s*(\d{1,2})['′]\s*(\d{1,2}(?:\.\d+)?)[\"″]?\s*([NS])[,\s]*"
        r"(\d{1,3})°\s*(\d{1,2})['′]\s*(\d{1,2}(?:\.\d+)?)[\"″]?\s*([EW])",
        re.IGNORECASE,
    ),
    # 40 42 46 N, 74 00 22 W
    re.compile(
        r"(?<!\d)(\d{1,3})\s+(\d{1,2})\s+(\d{1,2}(?:\.\d+)?)\s*([NS])\b[,\s]*"
        r"(\d{1,3})\s+(\d{1,2})\s+(\d{1,2}(?:\.\d+)?)\s*([EW])\b",
        re.IGNORECASE,
    ),
]

# 度・10進分
DDM_PATTERNS = [
    # 40°42.767'N, 74°00.367'W / 40° 42.767' N, 74° 00.367' W
    re.compile(
        r"(?<!\d)(\d{1,3})°\s*(\d{1,2}\.\d+)['′]\s*([NS])[,\s]*"
        r"(\d{1,3})°\s*(\d{1,2}\.\d+)['′]\s*([EW])",
        re.IGNORECASE,
    ),
]

# UTM
UTM_PATTERNS = [
    # UTM: 18T 585628 4511322
    re.compile(r"\bUTM[:\s]*(\d{1,2})([C-HJ-NP-X])\s+0?(\d{5,6})\s+(\d{6,7})\b", re.IGNORECASE),
    # 18T 0585628 4511322
    re.compile(r"\b(\d{1,2})([C-HJ-NP-X])\s+0?(\d{5,6})\s+(\d{6,7})\b"),
]

# MGRS
MGRS_PATTERNS = [
    # MGRS: 18TWL8562811322
    re.compile(r"\bMGRS[:\s]*(\d{1,2})([C-HJ-NP-X])([A-HJ-NP-Z]{2})(\d{5})(\d{5})\b", re.IGNORECASE),
    # 18TWL 85628 11322
    re.compile(r"\b(\d{1,2})([C-HJ-NP-X])([A-HJ-NP-Z]{2})\s*(\d{5})\s*(\d{5})\b"),
]

BASE_CONFIDENCE = {
    CoordinateFormat.DEGREES_MINUTES_SECONDS: 0.95,
    CoordinateFormat.DEGREES_DECIMAL_MINUTES: 0.90,
    CoordinateFormat.DECIMAL_DEGREES: 0.80,
    CoordinateFormat.UTM: 0.85,
}

MGRS_CONFIDENCE = 0.5

# 信頼度を上げる文脈キーワード
CONTEXT_BOOSTS = (
    ("gps", 0.1),
    ("coordinates", 0.05),
    ("location", 0.05),
)

# 文脈として参照するマッチ前後の文字数
CONTEXT_WINDOW = 40


class PatternCoordinateExtractor(BaseCoordinateExtractor):
    """
    座標書式の文法パーサー

    I/Oを持たない純粋な処理で、例外を送出しない。
    1つのマッチの解析に失敗した場合はそのマッチだけをスキップする。
    同じテキスト範囲に複数のパターンが一致した場合は、先に評価された
    （より具体的な）書式の候補のみを採用する。
    """

    def can_handle(self, content: ExtractorContent, mime_type: Optional[str] = None) -> bool:
        # テキストであれば何でも処理できる
        return isinstance(content, str)

    def extract(
        self, content: ExtractorContent, filename: Optional[str] = None
    ) -> list[ExtractedCoordinate]:
        text = content.decode("utf-8", errors="replace") if isinstance(content, bytes) else str(content)
        coordinates: list[ExtractedCoordinate] = []
        claimed: list[tuple[int, int]] = []

        try:
            coordinates.extend(self._extract_mgrs(text, claimed))
            coordinates.extend(self._extract_dms(text, claimed))
            coordinates.extend(self._extract_ddm(text, claimed))
            coordinates.extend(self._extract_utm(text, claimed))
            coordinates.extend(self._extract_decimal_degrees(text, claimed))
        except Exception as e:
            logger.error(f"Unexpected error while extracting coordinates: {e}", exc_info=True)

        logger.info(f"Extracted {len(coordinates)} coordinates from {filename or 'content'}")
        return coordinates

    def _extract_decimal_degrees(
        self, text: str, claimed: list[tuple[int, int]]
    ) -> Iterator[ExtractedCoordinate]:
        for match in self._unclaimed_matches(DECIMAL_DEGREES_PATTERNS, text, claimed):
            try:
                lat = float(match.group(1))
                lon = float(match.group(2))
            except ValueError:
                logger.warning(f"Error parsing decimal degrees: {match.group(0)}")
                continue

            if not is_valid_coordinate(lat, lon):
                continue

            claimed.append(match.span())
            yield self._build(
                match,
                text,
                lat,
                lon,
                CoordinateFormat.DECIMAL_DEGREES,
                LocationAccuracy.ESTIMATED,
                "regex_decimal_degrees",
            )

    def _extract_dms(
        self, text: str, claimed: list[tuple[int, int]]
    ) -> Iterator[ExtractedCoordinate]:
        for match in self._unclaimed_matches(DMS_PATTERNS, text, claimed):
            try:
                lat = dms_to_decimal(
                    int(match.group(1)), int(match.group(2)), float(match.group(3)), match.group(4)
                )
                lon = dms_to_decimal(
                    int(match.group(5)), int(match.group(6)), float(match.group(7)), match.group(8)
                )
            except (ValueError, ArithmeticError):
                logger.warning(f"Error parsing DMS coordinates: {match.group(0)}")
                continue

            if not is_valid_coordinate(lat, lon):
                continue

            claimed.append(match.span())
            yield self._build(
                match,
                text,
                lat,
                lon,
                CoordinateFormat.DEGREES_MINUTES_SECONDS,
                LocationAccuracy.EXACT,
                "regex_dms",
            )

    def _extract_ddm(
        self, text: str, claimed: list[tuple[int, int]]
    ) -> Iterator[ExtractedCoordinate]:
        for match in self._unclaimed_matches(DDM_PATTERNS, text, claimed):
            try:
                lat = ddm_to_decimal(int(match.group(1)), float(match.group(2)), match.group(3))
                lon = ddm_to_decimal(int(match.group(4)), float(match.group(5)), match.group(6))
            except (ValueError, ArithmeticError):
                logger.warning(f"Error parsing DDM coordinates: {match.group(0)}")
                continue

            if not is_valid_coordinate(lat, lon):
                continue

            claimed.append(match.span())
            yield self._build(
                match,
                text,
                lat,
                lon,
                CoordinateFormat.DEGREES_DECIMAL_MINUTES,
                LocationAccuracy.EXACT,
                "regex_ddm",
            )

    def _extract_utm(
        self, text: str, claimed: list[tuple[int, int]]
    ) -> Iterator[ExtractedCoordinate]:
        for match in self._unclaimed_matches(UTM_PATTERNS, text, claimed):
            try:
                zone = int(match.group(1))
                band = match.group(2).upper()
                easting = int(match.group(3))
                northing = int(match.group(4))
                if not 1 <= zone <= 60:
                    continue
                lat, lon = utm_to_lat_lon(zone, band, easting, northing)
            except (ValueError, ArithmeticError):
                logger.warning(f"Error parsing UTM coordinates: {match.group(0)}")
                continue

            if not is_valid_coordinate(lat, lon):
                continue

            claimed.append(match.span())
            coordinate = self._build(
                match,
                text,
                lat,
                lon,
                CoordinateFormat.UTM,
                LocationAccuracy.APPROXIMATE,
                "regex_utm",
            )
            coordinate.metadata.update(
                {
                    "utm_zone": zone,
                    "utm_band": band,
                    "easting": easting,
                    "northing": northing,
                }
            )
            yield coordinate

    def _extract_mgrs(
        self, text: str, claimed: list[tuple[int, int]]
    ) -> Iterator[ExtractedCoordinate]:
        # MGRSは変換せず、プレースホルダー座標で検出結果のみを返す
        for match in self._unclaimed_matches(MGRS_PATTERNS, text, claimed):
            claimed.append(match.span())
            extracted_text = match.group(0).strip()
            yield ExtractedCoordinate(
                latitude=0.0,
                longitude=0.0,
                source=CoordinateSource.REGEX,
                original_format=CoordinateFormat.MGRS,
                accuracy=LocationAccuracy.UNKNOWN,
                extracted_text=extracted_text,
                confidence=MGRS_CONFIDENCE,
                metadata={
                    "original_coordinates": extracted_text,
                    "extraction_method": "regex_mgrs",
                    "requires_conversion": True,
                    "mgrs_zone": int(match.group(1)),
                    "mgrs_band": match.group(2).upper(),
                    "mgrs_square": match.group(3).upper(),
                    "mgrs_easting": match.group(4),
                    "mgrs_northing": match.group(5),
                },
            )

    def _build(
        self,
        match: re.Match,
        text: str,
        latitude: float,
        longitude: float,
        coordinate_format: CoordinateFormat,
        accuracy: LocationAccuracy,
        method: str,
    ) -> ExtractedCoordinate:
        extracted_text = match.group(0).strip()
        return ExtractedCoordinate(
            latitude=latitude,
            longitude=longitude,
            source=CoordinateSource.REGEX,
            original_format=coordinate_format,
            accuracy=accuracy,
            extracted_text=extracted_text,
            confidence=calculate_confidence(
                self._context(match, text), coordinate_format
            ),
            metadata={
                "original_coordinates": extracted_text,
                "extraction_method": method,
            },
        )

    @staticmethod
    def _context(match: re.Match, text: str) -> str:
        start, end = match.span()
        return text[max(0, start - CONTEXT_WINDOW) : end + CONTEXT_WINDOW]

    @staticmethod
    def _unclaimed_matches(
        patterns: list[re.Pattern], text: str, claimed: list[tuple[int, int]]
    ) -> Iterator[re.Match]:
        for pattern in patterns:
            for match in pattern.finditer(text):
                start, end = match.span()
                if any(start < c_end and c_start < end for c_start, c_end in claimed):
                    continue
                yield match


def calculate_confidence(context: str, coordinate_format: CoordinateFormat) -> float:
    """
    書式と周辺テキストから信頼度を算出

    Args:
        context: マッチ周辺のテキスト
        coordinate_format: 座標書式

    Returns:
        float: 信頼度（最大1.0）
    """
    confidence = BASE_CONFIDENCE.get(coordinate_format, 0.7)

    lowered = context.lower()
    for keyword, boost in CONTEXT_BOOSTS:
        if keyword in lowered:
            confidence += boost

    return min(confidence, 1.0)
