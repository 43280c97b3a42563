"""画像メタデータ（EXIF GPSタグ）からの座標抽出"""

import struct
from pathlib import Path
from typing import Any, Optional

import piexif

from ....shared.logging.config import get_logger
from ..domain.conversions import dms_to_decimal, is_valid_coordinate
from ..domain.enums import ContentKind, CoordinateFormat, CoordinateSource, LocationAccuracy
from ..domain.models import ExtractedCoordinate
from .base import BaseCoordinateExtractor, ExtractorContent

logger = get_logger(__name__)

SUPPORTED_MIME_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/tiff",
    "image/tif",
    "image/webp",
)

# piexif.load が受け付けるデータの先頭バイト
_EXIF_MAGIC = (
    b"\xff\xd8",  # JPEG
    b"II*\x00",  # TIFF (little endian)
    b"MM\x00*",  # TIFF (big endian)
    b"Exif",  # 生のEXIFセグメント
    b"RIFF",  # WebP
)

# UNDEFINED型テキストの文字コード接頭辞（8バイト）
_CHARSET_PREFIXES = {
    b"ASCII\x00\x00\x00": "ascii",
    b"UNICODE\x00": "utf-16",
    b"JIS\x00\x00\x00\x00\x00": "shift_jis",
    b"\x00" * 8: "utf-8",
}

GPS_CONFIDENCE = 0.98
LOCATION_NAME_CONFIDENCE = 0.6
DEFAULT_GPS_ACCURACY_METERS = 5.0
DOP_TO_METERS = 5.0


class MetadataCoordinateExtractor(BaseCoordinateExtractor):
    """
    EXIF GPSタグから座標を抽出

    GPSLatitude / GPSLatitudeRef / GPSLongitude / GPSLongitudeRef の4つが
    揃っている場合のみ座標を返す。ハードウェアGPSの値は正確（EXACT）として扱う。
    """

    content_kind = ContentKind.BINARY

    def can_handle(self, content: ExtractorContent, mime_type: Optional[str] = None) -> bool:
        if mime_type:
            return mime_type.lower() in SUPPORTED_MIME_TYPES
        return _is_file_path(content)

    def extract(
        self, content: ExtractorContent, filename: Optional[str] = None
    ) -> list[ExtractedCoordinate]:
        coordinates: list[ExtractedCoordinate] = []

        exif_data = self._load_exif(content, filename)
        if exif_data is None:
            return coordinates

        gps_coordinate = self._extract_gps(exif_data, filename)
        if gps_coordinate:
            coordinates.append(gps_coordinate)

        coordinates.extend(self._extract_location_names(exif_data))

        logger.info(
            f"Extracted {len(coordinates)} coordinates from EXIF data in {filename or 'file'}"
        )
        return coordinates

    def _load_exif(
        self, content: ExtractorContent, filename: Optional[str]
    ) -> Optional[dict[str, Any]]:
        """EXIFを読み込む（読めない場合はNone）"""
        source: Any = content
        if isinstance(content, Path):
            source = str(content)
        elif isinstance(content, bytes) and not content.startswith(_EXIF_MAGIC):
            logger.debug(f"No EXIF container detected in {filename or 'content'}")
            return None

        try:
            return piexif.load(source)
        except (piexif.InvalidImageDataError, ValueError, OSError, struct.error) as e:
            logger.warning(f"Failed to read EXIF data from {filename or 'content'}: {e}")
            return None

    def _extract_gps(
        self, exif_data: dict[str, Any], filename: Optional[str]
    ) -> Optional[ExtractedCoordinate]:
        gps = exif_data.get("GPS") or {}

        gps_latitude = gps.get(piexif.GPSIFD.GPSLatitude)
        gps_latitude_ref = (_decode_ascii(gps.get(piexif.GPSIFD.GPSLatitudeRef)) or "").upper()
        gps_longitude = gps.get(piexif.GPSIFD.GPSLongitude)
        gps_longitude_ref = (_decode_ascii(gps.get(piexif.GPSIFD.GPSLongitudeRef)) or "").upper()

        if not (gps_latitude and gps_latitude_ref and gps_longitude and gps_longitude_ref):
            return None

        try:
            lat_dms = _rationals_to_dms(gps_latitude)
            lon_dms = _rationals_to_dms(gps_longitude)
            lat = dms_to_decimal(*lat_dms, gps_latitude_ref)
            lon = dms_to_decimal(*lon_dms, gps_longitude_ref)
            altitude = self._altitude(gps)
            accuracy_radius = self._estimate_accuracy(gps)
        except (TypeError, ValueError, ZeroDivisionError) as e:
            logger.warning(f"Error parsing EXIF GPS data: {e}")
            return None

        if not is_valid_coordinate(lat, lon):
            return None

        zeroth = exif_data.get("0th") or {}
        original = (
            f"{_format_dms(lat_dms)} {gps_latitude_ref}, "
            f"{_format_dms(lon_dms)} {gps_longitude_ref}"
        )

        return ExtractedCoordinate(
            latitude=lat,
            longitude=lon,
            altitude=altitude,
            source=CoordinateSource.METADATA,
            original_format=CoordinateFormat.DEGREES_MINUTES_SECONDS,
            accuracy=LocationAccuracy.EXACT,
            accuracy_radius=accuracy_radius,
            extracted_text=f"GPS: {lat}, {lon}",
            confidence=GPS_CONFIDENCE,
            metadata={
                "original_coordinates": original,
                "extraction_method": "exif_gps",
                "timestamp": _decode_ascii(gps.get(piexif.GPSIFD.GPSDateStamp)),
                "camera": {
                    "make": _decode_ascii(zeroth.get(piexif.ImageIFD.Make)),
                    "model": _decode_ascii(zeroth.get(piexif.ImageIFD.Model)),
                    "software": _decode_ascii(zeroth.get(piexif.ImageIFD.Software)),
                    "date_time": _decode_ascii(zeroth.get(piexif.ImageIFD.DateTime)),
                },
                "file_name": filename,
                "gps_dilution_of_precision": _rational_or_none(gps.get(piexif.GPSIFD.GPSDOP)),
            },
        )

    @staticmethod
    def _altitude(gps: dict[int, Any]) -> Optional[float]:
        raw = gps.get(piexif.GPSIFD.GPSAltitude)
        if raw is None:
            return None

        altitude = _rational_to_float(raw)
        # GPSAltitudeRef: 0 = 海抜, 1 = 海面下
        if gps.get(piexif.GPSIFD.GPSAltitudeRef) == 1:
            altitude = -altitude
        return altitude

    @staticmethod
    def _estimate_accuracy(gps: dict[int, Any]) -> float:
        """DOP（精度低下率）から精度半径を概算"""
        dop = _rational_or_none(gps.get(piexif.GPSIFD.GPSDOP))
        if dop is not None:
            return dop * DOP_TO_METERS
        return DEFAULT_GPS_ACCURACY_METERS

    def _extract_location_names(self, exif_data: dict[str, Any]) -> list[ExtractedCoordinate]:
        """
        地名メタデータを検出し、ジオコーディング待ちの候補として返す

        GPSAreaInformation を優先し、なければWindowsの件名 (XPSubject) を使う。
        ImageDescription は自由記述のため対象外。
        """
        gps = exif_data.get("GPS") or {}
        zeroth = exif_data.get("0th") or {}
        location_name = _decode_undefined(
            gps.get(piexif.GPSIFD.GPSAreaInformation)
        ) or _decode_utf16(zeroth.get(piexif.ImageIFD.XPSubject))

        if not location_name or len(location_name) <= 2:
            return []

        return [
            ExtractedCoordinate(
                latitude=0.0,
                longitude=0.0,
                source=CoordinateSource.METADATA,
                original_format=CoordinateFormat.DECIMAL_DEGREES,
                accuracy=LocationAccuracy.UNKNOWN,
                extracted_text=location_name,
                confidence=LOCATION_NAME_CONFIDENCE,
                metadata={
                    "original_coordinates": location_name,
                    "extraction_method": "exif_location_name",
                    "requires_geocoding": True,
                },
            )
        ]


def _is_file_path(content: ExtractorContent) -> bool:
    """コンテンツがファイルパスらしいかどうか"""
    if isinstance(content, Path):
        return True
    if not isinstance(content, str):
        return False
    return (
        len(content) < 500
        and ("/" in content or "\\" in content)
        and "\n" not in content
        and " " not in content
    )


def _rational_to_float(value: Any) -> float:
    numerator, denominator = value
    return numerator / denominator


def _rational_or_none(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return _rational_to_float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None


def _rationals_to_dms(value: Any) -> tuple[float, float, float]:
    degrees, minutes, seconds = (_rational_to_float(part) for part in value)
    return degrees, minutes, seconds


def _format_dms(dms: tuple[float, float, float]) -> str:
    degrees, minutes, seconds = dms
    return f"{int(degrees)}° {int(minutes)}' {seconds:.2f}\""


def _decode_ascii(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    text = str(value).strip("\x00").strip()
    return text or None


def _decode_undefined(value: Any) -> Optional[str]:
    """UNDEFINED型（文字コード接頭辞付き）のテキストをデコード"""
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip("\x00").strip() or None

    data = bytes(value)
    encoding = "utf-8"
    for prefix, prefix_encoding in _CHARSET_PREFIXES.items():
        if data.startswith(prefix):
            data = data[len(prefix) :]
            encoding = prefix_encoding
            break

    return data.decode(encoding, errors="ignore").strip("\x00").strip() or None


def _decode_utf16(value: Any) -> Optional[str]:
    """XP系タグ（UTF-16LEのBYTE配列）をデコード"""
    if not value:
        return None
    return bytes(value).decode("utf-16-le", errors="ignore").strip("\x00").strip() or None
