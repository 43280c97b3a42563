"""キャッシュ付きジオコーダー"""

from typing import Optional, Union

from ....shared.logging.config import get_logger
from ....shared.utils.text import normalize_text
from ..domain.models import GeocodingResult, ReverseGeocodingResult
from ..services.geocoding_service import GeocodingService

logger = get_logger(__name__)

CacheValue = Union[Optional[GeocodingResult], ReverseGeocodingResult]


class CacheGeocoder:
    """
    キャッシュ付きジオコーダー

    同じ地名・座標の繰り返し検索を避けるため、メモリ内キャッシュを使用。
    GeocodingServiceと同じインターフェースを持つため、そのまま差し替えられる。
    """

    def __init__(self, geocoder: GeocodingService) -> None:
        """
        Args:
            geocoder: ベースとなるジオコーダー
        """
        self.geocoder = geocoder
        self.cache: dict[str, CacheValue] = {}
        self.hit_count = 0
        self.miss_count = 0

        logger.info("CacheGeocoder initialized")

    def geocode(self, address: str) -> Optional[GeocodingResult]:
        """
        地名をジオコーディング（キャッシュあり）

        Args:
            address: 地名または住所

        Returns:
            Optional[GeocodingResult]: 変換結果（見つからない場合はNone）
        """
        if not address:
            return None

        cache_key = f"address:{self._normalize_address(address)}"

        if cache_key in self.cache:
            self.hit_count += 1
            logger.debug(f"Cache hit for address: {address}")
            return self.cache[cache_key]  # type: ignore[return-value]

        self.miss_count += 1
        logger.debug(f"Cache miss for address: {address}")

        result = self.geocoder.geocode(address)
        self.cache[cache_key] = result

        return result

    def reverse_geocode(self, latitude: float, longitude: float) -> ReverseGeocodingResult:
        """
        座標から住所を取得（逆ジオコーディング、キャッシュあり）

        Args:
            latitude: 緯度
            longitude: 経度

        Returns:
            ReverseGeocodingResult: 逆ジオコーディング結果
        """
        # 座標をキーとして使用（小数点以下6桁で丸める）
        cache_key = f"coords:{latitude:.6f},{longitude:.6f}"

        if cache_key in self.cache:
            self.hit_count += 1
            logger.debug(f"Cache hit for coordinates: ({latitude}, {longitude})")
            return self.cache[cache_key]  # type: ignore[return-value]

        self.miss_count += 1
        logger.debug(f"Cache miss for coordinates: ({latitude}, {longitude})")

        result = self.geocoder.reverse_geocode(latitude, longitude)
        self.cache[cache_key] = result

        return result

    def batch_geocode(
        self, addresses: list[str], show_progress: bool = False
    ) -> list[Optional[GeocodingResult]]:
        """キャッシュ済みの住所を除いてバッチジオコーディング"""
        misses: dict[str, str] = {}
        for address in addresses:
            if not address:
                continue
            cache_key = f"address:{self._normalize_address(address)}"
            if cache_key not in self.cache and cache_key not in misses:
                misses[cache_key] = address

        if misses:
            fetched = self.geocoder.batch_geocode(list(misses.values()), show_progress=show_progress)
            for cache_key, result in zip(misses, fetched):
                self.cache[cache_key] = result
            self.miss_count += len(misses)

        return [
            self.cache[f"address:{self._normalize_address(address)}"] if address else None  # type: ignore[misc]
            for address in addresses
        ]

    def clear_cache(self) -> None:
        """キャッシュをクリア"""
        cache_size = len(self.cache)
        self.cache.clear()
        self.hit_count = 0
        self.miss_count = 0
        logger.info(f"Cache cleared: {cache_size} entries removed")

    def get_cache_stats(self) -> dict[str, float]:
        """
        キャッシュ統計を取得

        Returns:
            dict[str, float]: キャッシュ統計（サイズ、ヒット数、ミス数、ヒット率）
        """
        total_requests = self.hit_count + self.miss_count
        hit_rate = (self.hit_count / total_requests * 100) if total_requests > 0 else 0.0

        stats = {
            "cache_size": len(self.cache),
            "hit_count": self.hit_count,
            "miss_count": self.miss_count,
            "total_requests": total_requests,
            "hit_rate_percent": round(hit_rate, 2),
        }

        logger.info(f"Cache stats: {stats}")

        return stats

    def _normalize_address(self, address: str) -> str:
        """住所を正規化してキャッシュキーとして使用"""
        return (normalize_text(address) or "").lower()
