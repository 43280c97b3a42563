"""抽出器の構成"""

import random
from typing import TYPE_CHECKING, Optional, Union

from ....infrastructure.config.settings import Settings
from .base import BaseCoordinateExtractor
from .heuristic_extractor import HeuristicTextExtractor
from .metadata_extractor import MetadataCoordinateExtractor
from .pattern_extractor import PatternCoordinateExtractor

if TYPE_CHECKING:
    from ...geocoding.providers.cache_geocoder import CacheGeocoder
    from ...geocoding.services.geocoding_service import GeocodingService


def build_extractors(
    settings: Settings,
    geocoder: Union["GeocodingService", "CacheGeocoder"],
    rng: Optional[random.Random] = None,
) -> list[BaseCoordinateExtractor]:
    """
    優先順位順の抽出器リストを生成

    メタデータ（画像のみ） → パターン → ヒューリスティック（オプトイン）の順。

    Args:
        settings: アプリケーション設定
        geocoder: ヒューリスティック抽出器が使うジオコーダー
        rng: ヒューリスティック抽出器の乱数源

    Returns:
        list[BaseCoordinateExtractor]: 抽出器のリスト
    """
    return [
        MetadataCoordinateExtractor(),
        PatternCoordinateExtractor(),
        HeuristicTextExtractor(
            geocoder,
            min_text_length=settings.heuristic_min_text_length,
            max_text_length=settings.heuristic_max_text_length,
            jitter_degrees=settings.heuristic_jitter_degrees,
            rng=rng,
        ),
    ]
