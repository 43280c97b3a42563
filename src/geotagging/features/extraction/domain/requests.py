"""ジオタグ操作のリクエストモデル（Pydanticによる入力検証）"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import CoordinateFormat, CoordinateSource, LocationAccuracy


class CreateGeoTagRequest(BaseModel):
    """手動ジオタグ作成リクエスト"""

    model_config = ConfigDict(extra="forbid")

    document_id: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    altitude: Optional[float] = None
    source: CoordinateSource = CoordinateSource.MANUAL
    original_format: CoordinateFormat = CoordinateFormat.DECIMAL_DEGREES
    accuracy: LocationAccuracy = LocationAccuracy.ESTIMATED
    accuracy_radius: Optional[float] = Field(default=None, ge=0)
    confidence: Optional[float] = Field(default=None, ge=0, le=1)
    address: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None
    extracted_text: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    extracted_by: str = Field(..., min_length=1)
    extracted_by_email: str = Field(..., min_length=1)
    is_verified: bool = False


class GeoTagQuery(BaseModel):
    """ジオタグ検索条件"""

    document_id: Optional[str] = None
    extracted_by: Optional[str] = None
    source: Optional[CoordinateSource] = None
    accuracy: Optional[LocationAccuracy] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    is_verified: Optional[bool] = None
    is_active: Optional[bool] = True
    limit: int = Field(default=50, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)

    def equality_filters(self) -> dict[str, Any]:
        """指定された等価条件のみを返す"""
        fields = (
            "document_id",
            "extracted_by",
            "source",
            "accuracy",
            "city",
            "region",
            "country",
            "is_verified",
            "is_active",
        )
        filters: dict[str, Any] = {}
        for name in fields:
            value = getattr(self, name)
            if value is None:
                continue
            filters[name] = value.value if hasattr(value, "value") else value
        return filters


class NearbySearch(BaseModel):
    """中心点と半径による周辺検索"""

    center_latitude: float = Field(..., ge=-90, le=90)
    center_longitude: float = Field(..., ge=-180, le=180)
    radius_km: float = Field(..., ge=0.001, le=1000)
    document_id: Optional[str] = None
    source: Optional[CoordinateSource] = None
    limit: int = Field(default=50, ge=1, le=1000)


class BoundingBoxSearch(BaseModel):
    """矩形範囲検索（west > east の場合は日付変更線をまたぐ）"""

    north_latitude: float = Field(..., ge=-90, le=90)
    south_latitude: float = Field(..., ge=-90, le=90)
    east_longitude: float = Field(..., ge=-180, le=180)
    west_longitude: float = Field(..., ge=-180, le=180)
    source: Optional[CoordinateSource] = None
    limit: int = Field(default=50, ge=1, le=1000)

    @model_validator(mode="after")
    def _check_latitudes(self) -> "BoundingBoxSearch":
        if self.south_latitude > self.north_latitude:
            raise ValueError("south_latitude must not exceed north_latitude")
        return self
