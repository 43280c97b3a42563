"""ジオコーディング機能のドメインモデル"""
from dataclasses import dataclass
from typing import Optional

from ...extraction.domain.enums import LocationAccuracy


@dataclass(frozen=True)
class GazetteerEntry:
    """地名辞書のエントリ"""

    name: str  # 地名（検索キー）
    latitude: float
    longitude: float
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None


@dataclass(frozen=True)
class PlaceHint:
    """ヒューリスティック抽出で使う既知地名"""

    text: str
    latitude: float
    longitude: float
    confidence: float


@dataclass
class GeocodingResult:
    """順ジオコーディング結果（地名 → 座標）"""

    latitude: float
    longitude: float
    accuracy: LocationAccuracy
    confidence: float
    address: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None

    def __repr__(self) -> str:
        return f"GeocodingResult(lat={self.latitude}, lng={self.longitude}, confidence={self.confidence:.2f})"


@dataclass
class ReverseGeocodingResult:
    """逆ジオコーディング結果（座標 → 住所）"""

    address: str
    confidence: float
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None
