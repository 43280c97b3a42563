"""ジオコーディングサービス（地名辞書ベース）"""

import re
import time
from typing import Iterable, Optional

from tqdm import tqdm

from ....shared.exceptions.errors import GeocodingError
from ....shared.logging.config import get_logger
from ...extraction.domain.conversions import is_valid_coordinate
from ...extraction.domain.enums import LocationAccuracy
from ..domain.metrics import haversine_km, levenshtein_similarity
from ..domain.models import GazetteerEntry, GeocodingResult, ReverseGeocodingResult
from ..gazetteer import load_gazetteer

logger = get_logger(__name__)

EXACT_MATCH_CONFIDENCE = 0.95
FUZZY_MATCH_THRESHOLD = 0.6
STRUCTURED_ADDRESS_DISCOUNT = 0.8
NEARBY_RADIUS_KM = 100.0
MIN_REVERSE_CONFIDENCE = 0.3


class GeocodingService:
    """
    地名 ⇄ 座標の変換サービス

    読み取り専用の地名辞書に対して、完全一致 → あいまい一致 → 構造化住所の
    順で順ジオコーディングを行う。逆ジオコーディングは最寄りの地名を返す。
    """

    def __init__(
        self,
        gazetteer: Optional[Iterable[GazetteerEntry]] = None,
        delay_between_requests: float = 0.0,
    ) -> None:
        """
        Args:
            gazetteer: 地名辞書（省略時はパッケージ同梱のYAML）
            delay_between_requests: バッチ処理時のリクエスト間の遅延（秒）
        """
        self.gazetteer: tuple[GazetteerEntry, ...] = (
            tuple(gazetteer) if gazetteer is not None else load_gazetteer()
        )
        self.delay_between_requests = delay_between_requests
        self._index = {entry.name.lower(): entry for entry in self.gazetteer}

        logger.info(
            f"GeocodingService initialized: entries={len(self.gazetteer)}, "
            f"delay={delay_between_requests}s"
        )

    def geocode(self, address: str) -> Optional[GeocodingResult]:
        """
        地名・住所を座標に変換

        Args:
            address: 地名または住所

        Returns:
            Optional[GeocodingResult]: 変換結果（見つからない場合はNone）
        """
        if not address or not address.strip():
            return None

        logger.debug(f"Geocoding address: {address}")

        result = self._lookup(normalize_address(address))
        if result:
            return result

        result = self._geocode_structured(address)
        if result:
            return result

        logger.warning(f"Could not geocode address: {address}")
        return None

    def reverse_geocode(self, latitude: float, longitude: float) -> ReverseGeocodingResult:
        """
        座標を住所に変換（逆ジオコーディング）

        Args:
            latitude: 緯度
            longitude: 経度

        Returns:
            ReverseGeocodingResult: 最寄りの地名、または度数表記の概略住所

        Raises:
            GeocodingError: 座標が範囲外の場合
        """
        if not is_valid_coordinate(latitude, longitude):
            raise GeocodingError(f"Invalid coordinates for reverse geocoding: {latitude}, {longitude}")

        logger.debug(f"Reverse geocoding coordinates: {latitude}, {longitude}")

        closest: Optional[GazetteerEntry] = None
        min_distance = float("inf")

        for entry in self.gazetteer:
            distance = haversine_km(latitude, longitude, entry.latitude, entry.longitude)
            if distance < min_distance:
                min_distance = distance
                closest = entry

        if closest is not None and min_distance < NEARBY_RADIUS_KM:
            return ReverseGeocodingResult(
                address=f"Near {closest.name}",
                city=closest.city,
                region=closest.region,
                country=closest.country,
                confidence=max(MIN_REVERSE_CONFIDENCE, 1 - min_distance / NEARBY_RADIUS_KM),
            )

        return ReverseGeocodingResult(
            address=approximate_address(latitude, longitude),
            confidence=MIN_REVERSE_CONFIDENCE,
        )

    def batch_geocode(
        self, addresses: list[str], show_progress: bool = False
    ) -> list[Optional[GeocodingResult]]:
        """
        複数の住所を順番にジオコーディング

        Args:
            addresses: 住所のリスト
            show_progress: プログレスバーを表示するか

        Returns:
            list[Optional[GeocodingResult]]: 入力と同じ順序の結果
        """
        results: list[Optional[GeocodingResult]] = []

        logger.info(f"Starting batch geocoding: {len(addresses)} addresses")

        iterator = tqdm(addresses, desc="Geocoding") if show_progress else addresses

        for address in iterator:
            results.append(self.geocode(address))

            # レート制限のため遅延
            if self.delay_between_requests > 0:
                time.sleep(self.delay_between_requests)

        resolved = sum(1 for r in results if r is not None)
        logger.info(f"Batch geocoding completed: {resolved}/{len(addresses)} resolved")

        return results

    def _lookup(self, name: str) -> Optional[GeocodingResult]:
        """完全一致 → あいまい一致"""
        if not name:
            return None

        entry = self._index.get(name.lower())
        if entry:
            return _to_result(entry, name, EXACT_MATCH_CONFIDENCE)

        return self._find_fuzzy_match(name)

    def _find_fuzzy_match(self, name: str) -> Optional[GeocodingResult]:
        name_lower = name.lower()
        best: Optional[GazetteerEntry] = None
        best_similarity = 0.0

        for entry in self.gazetteer:
            entry_lower = entry.name.lower()
            if name_lower not in entry_lower and entry_lower not in name_lower:
                continue

            similarity = levenshtein_similarity(name_lower, entry_lower)
            if similarity >= FUZZY_MATCH_THRESHOLD and similarity > best_similarity:
                best = entry
                best_similarity = similarity

        if best is None:
            return None
        return _to_result(best, best.name, best_similarity)

    def _geocode_structured(self, address: str) -> Optional[GeocodingResult]:
        """「123 Main St, New York City, NY」のような住所から市区町村部分を解決"""
        parts = [part.strip() for part in address.split(",")]
        if len(parts) < 2:
            return None

        result = self._lookup(normalize_address(parts[-2]))
        if result is None:
            return None

        result.address = address
        result.confidence = result.confidence * STRUCTURED_ADDRESS_DISCOUNT
        return result


def normalize_address(address: str) -> str:
    """
    住所を正規化

    前後の空白除去、連続空白の圧縮、末尾の句読点除去を行い、
    最初のカンマより前の部分を返す
    """
    normalized = re.sub(r"\s+", " ", address.strip())
    normalized = re.sub(r"[,.]$", "", normalized)
    return normalized.split(",")[0].strip()


def approximate_address(latitude: float, longitude: float) -> str:
    """度数と方位記号による概略住所（例: "Approximately 12.34°N, 56.78°W"）"""
    lat_direction = "N" if latitude >= 0 else "S"
    lon_direction = "E" if longitude >= 0 else "W"
    return (
        f"Approximately {abs(latitude):.2f}°{lat_direction}, "
        f"{abs(longitude):.2f}°{lon_direction}"
    )


def _to_result(entry: GazetteerEntry, address: str, confidence: float) -> GeocodingResult:
    return GeocodingResult(
        latitude=entry.latitude,
        longitude=entry.longitude,
        address=address,
        city=entry.city,
        region=entry.region,
        country=entry.country,
        accuracy=LocationAccuracy.APPROXIMATE,
        confidence=confidence,
    )
