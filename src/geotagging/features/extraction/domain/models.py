"""座標抽出機能のドメインモデル"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .enums import CoordinateFormat, CoordinateSource, LocationAccuracy


@dataclass
class ExtractedCoordinate:
    """
    抽出器が生成する座標候補（永続化前）

    accuracy=UNKNOWN の候補はプレースホルダー座標(0, 0)を持つことがあり、
    metadata の requires_conversion / requires_geocoding で区別する。
    """

    latitude: float  # 緯度
    longitude: float  # 経度
    source: CoordinateSource
    original_format: CoordinateFormat
    accuracy: LocationAccuracy
    extracted_text: str  # 抽出元のテキスト片
    confidence: float  # 信頼度 (0〜1)
    altitude: Optional[float] = None  # 高度（メートル）
    accuracy_radius: Optional[float] = None  # 精度半径（メートル）
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_placeholder(self) -> bool:
        """実座標ではなくプレースホルダーかどうか"""
        return bool(
            self.metadata.get("requires_conversion")
            or self.metadata.get("requires_geocoding")
        )

    def __repr__(self) -> str:
        return (
            f"ExtractedCoordinate(lat={self.latitude}, lng={self.longitude}, "
            f"format={self.original_format.value}, confidence={self.confidence:.2f})"
        )


@dataclass(frozen=True)
class Actor:
    """操作者（抽出・作成・検証の実行者）"""

    user_id: str
    email: str


@dataclass
class ExtractionOptions:
    """抽出オプション"""

    force_reextraction: bool = False  # 既存ジオタグがあっても再抽出する
    use_ai: bool = False  # ヒューリスティック抽出器を使用する
    geocode_addresses: bool = False  # 本文中の住所ラベルを順ジオコーディングする
    reverse_geocode: bool = True  # 住所を逆ジオコーディングで補完する


@dataclass
class GeoTag:
    """永続化されたジオタグ"""

    document_id: str
    latitude: float
    longitude: float
    source: CoordinateSource
    original_format: CoordinateFormat
    accuracy: LocationAccuracy
    extracted_by: str
    extracted_by_email: str

    id: Optional[str] = None
    altitude: Optional[float] = None
    accuracy_radius: Optional[float] = None
    confidence: Optional[float] = None

    # 住所情報（逆ジオコーディングで補完）
    address: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None

    extracted_text: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    # 検証
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    is_verified: bool = False

    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_extracted(
        cls, coordinate: ExtractedCoordinate, document_id: str, actor: Actor
    ) -> "GeoTag":
        """抽出座標からジオタグを生成"""
        metadata = dict(coordinate.metadata)
        return cls(
            document_id=document_id,
            latitude=coordinate.latitude,
            longitude=coordinate.longitude,
            altitude=coordinate.altitude,
            source=coordinate.source,
            original_format=coordinate.original_format,
            accuracy=coordinate.accuracy,
            accuracy_radius=coordinate.accuracy_radius,
            confidence=coordinate.confidence,
            address=metadata.pop("address", None),
            city=metadata.pop("city", None),
            region=metadata.pop("region", None),
            country=metadata.pop("country", None),
            postal_code=metadata.pop("postal_code", None),
            extracted_text=coordinate.extracted_text,
            metadata=metadata,
            extracted_by=actor.user_id,
            extracted_by_email=actor.email,
        )

    def to_firestore_dict(self) -> dict[str, Any]:
        """Firestore保存用の辞書に変換"""
        return {
            "id": self.id,
            "document_id": self.document_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "altitude": self.altitude,
            "source": self.source.value,
            "original_format": self.original_format.value,
            "accuracy": self.accuracy.value,
            "accuracy_radius": self.accuracy_radius,
            "confidence": self.confidence,
            "address": self.address,
            "city": self.city,
            "region": self.region,
            "country": self.country,
            "postal_code": self.postal_code,
            "extracted_text": self.extracted_text,
            "metadata": self.metadata,
            "extracted_by": self.extracted_by,
            "extracted_by_email": self.extracted_by_email,
            "verified_by": self.verified_by,
            "verified_at": self.verified_at,
            "is_verified": self.is_verified,
            "is_active": self.is_active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_firestore_dict(cls, data: dict[str, Any]) -> "GeoTag":
        """Firestoreのデータからジオタグを生成"""
        return cls(
            id=data.get("id"),
            document_id=data["document_id"],
            latitude=data["latitude"],
            longitude=data["longitude"],
            altitude=data.get("altitude"),
            source=CoordinateSource(data["source"]),
            original_format=CoordinateFormat(data["original_format"]),
            accuracy=LocationAccuracy(data["accuracy"]),
            accuracy_radius=data.get("accuracy_radius"),
            confidence=data.get("confidence"),
            address=data.get("address"),
            city=data.get("city"),
            region=data.get("region"),
            country=data.get("country"),
            postal_code=data.get("postal_code"),
            extracted_text=data.get("extracted_text"),
            metadata=data.get("metadata") or {},
            extracted_by=data["extracted_by"],
            extracted_by_email=data["extracted_by_email"],
            verified_by=data.get("verified_by"),
            verified_at=data.get("verified_at"),
            is_verified=data.get("is_verified", False),
            is_active=data.get("is_active", True),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass
class NearbyGeoTag:
    """周辺検索の結果（中心点からの距離付き）"""

    geo_tag: GeoTag
    distance_km: float
