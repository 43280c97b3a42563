"""ジオタグリポジトリ"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional

from ....shared.exceptions.errors import NotFoundError, StorageError
from ....shared.logging.config import get_logger
from ....shared.utils.datetime_utils import now_utc
from ...extraction.domain.models import GeoTag
from ..clients.firestore_client import FirestoreClient

logger = get_logger(__name__)


class GeoTagRepository(ABC):
    """
    ジオタグの永続化インターフェース

    座標値は保存後に変更しない。変更できるのは検証情報と is_active のみ。
    """

    @abstractmethod
    def save(self, geo_tag: GeoTag) -> GeoTag:
        """
        ジオタグを保存（IDとタイムスタンプを付与）

        Raises:
            StorageError: 保存に失敗した場合
        """
        pass

    @abstractmethod
    def get_by_id(self, geo_tag_id: str) -> Optional[GeoTag]:
        pass

    @abstractmethod
    def find_by_document(self, document_id: str, include_inactive: bool = False) -> list[GeoTag]:
        pass

    @abstractmethod
    def query(
        self, filters: dict[str, Any], limit: int = 50, offset: int = 0
    ) -> list[GeoTag]:
        """
        等価条件でジオタグを検索（新しい順）

        Args:
            filters: フィールド名 → 値
            limit: 取得件数の上限
            offset: スキップする件数
        """
        pass

    @abstractmethod
    def find_in_bounds(
        self,
        south: float,
        north: float,
        west: float,
        east: float,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[GeoTag]:
        """
        矩形範囲内の有効なジオタグを取得

        west > east の場合は日付変更線をまたぐ範囲として扱う
        """
        pass

    @abstractmethod
    def mark_verified(self, geo_tag_id: str, verified_by: str, verified_at: datetime) -> GeoTag:
        """
        Raises:
            NotFoundError: ジオタグが存在しない場合
        """
        pass

    @abstractmethod
    def deactivate(self, geo_tag_id: str) -> GeoTag:
        """
        Raises:
            NotFoundError: ジオタグが存在しない場合
        """
        pass


def longitude_in_range(longitude: float, west: float, east: float) -> bool:
    """経度が範囲内か（日付変更線をまたぐ範囲に対応）"""
    if west <= east:
        return west <= longitude <= east
    return longitude >= west or longitude <= east


def _prepare_for_save(geo_tag: GeoTag) -> GeoTag:
    now = now_utc()
    return replace(
        geo_tag,
        id=geo_tag.id or str(uuid.uuid4()),
        created_at=geo_tag.created_at or now,
        updated_at=now,
    )


def _copy(geo_tag: GeoTag) -> GeoTag:
    """メタデータ辞書まで複製したコピー"""
    return replace(geo_tag, metadata=dict(geo_tag.metadata))


def _sort_newest_first(geo_tags: list[GeoTag]) -> list[GeoTag]:
    return sorted(
        geo_tags,
        key=lambda tag: tag.created_at or datetime.min.replace(tzinfo=timezone.utc),
        reverse=True,
    )


class InMemoryGeoTagRepository(GeoTagRepository):
    """メモリ上のジオタグリポジトリ（ローカル実行・テスト用）"""

    def __init__(self) -> None:
        self._geo_tags: dict[str, GeoTag] = {}
        logger.info("InMemoryGeoTagRepository initialized")

    def save(self, geo_tag: GeoTag) -> GeoTag:
        saved = _copy(_prepare_for_save(geo_tag))
        self._geo_tags[saved.id] = saved  # type: ignore[index]
        logger.debug(f"GeoTag saved: {saved.id} ({saved.latitude}, {saved.longitude})")
        return _copy(saved)

    def get_by_id(self, geo_tag_id: str) -> Optional[GeoTag]:
        geo_tag = self._geo_tags.get(geo_tag_id)
        return _copy(geo_tag) if geo_tag else None

    def find_by_document(self, document_id: str, include_inactive: bool = False) -> list[GeoTag]:
        filters: dict[str, Any] = {"document_id": document_id}
        if not include_inactive:
            filters["is_active"] = True
        return self._filter(filters)

    def query(
        self, filters: dict[str, Any], limit: int = 50, offset: int = 0
    ) -> list[GeoTag]:
        return self._filter(filters)[offset : offset + limit]

    def find_in_bounds(
        self,
        south: float,
        north: float,
        west: float,
        east: float,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[GeoTag]:
        conditions = {"is_active": True, **(filters or {})}
        return [
            tag
            for tag in self._filter(conditions)
            if south <= tag.latitude <= north and longitude_in_range(tag.longitude, west, east)
        ]

    def mark_verified(self, geo_tag_id: str, verified_by: str, verified_at: datetime) -> GeoTag:
        geo_tag = self._require(geo_tag_id)
        updated = replace(
            geo_tag,
            is_verified=True,
            verified_by=verified_by,
            verified_at=verified_at,
            updated_at=now_utc(),
        )
        self._geo_tags[geo_tag_id] = updated
        return _copy(updated)

    def deactivate(self, geo_tag_id: str) -> GeoTag:
        geo_tag = self._require(geo_tag_id)
        updated = replace(geo_tag, is_active=False, updated_at=now_utc())
        self._geo_tags[geo_tag_id] = updated
        return _copy(updated)

    def _require(self, geo_tag_id: str) -> GeoTag:
        geo_tag = self._geo_tags.get(geo_tag_id)
        if geo_tag is None:
            raise NotFoundError(f"GeoTag not found: {geo_tag_id}")
        return geo_tag

    def _filter(self, filters: dict[str, Any]) -> list[GeoTag]:
        matched = []
        for geo_tag in self._geo_tags.values():
            record = geo_tag.to_firestore_dict()
            if all(record.get(field) == value for field, value in filters.items()):
                matched.append(_copy(geo_tag))
        return _sort_newest_first(matched)


class FirestoreGeoTagRepository(GeoTagRepository):
    """Firestore上のジオタグリポジトリ"""

    COLLECTION_NAME = "geo_tags"

    def __init__(
        self, firestore_client: FirestoreClient, collection_name: Optional[str] = None
    ) -> None:
        """
        Args:
            firestore_client: Firestoreクライアント
            collection_name: コレクション名（省略時は "geo_tags"）
        """
        self.client = firestore_client
        self.collection_name = collection_name or self.COLLECTION_NAME
        logger.info(f"FirestoreGeoTagRepository initialized: collection={self.collection_name}")

    def save(self, geo_tag: GeoTag) -> GeoTag:
        if geo_tag.id is None:
            geo_tag = replace(geo_tag, id=self.client.new_document_id(self.collection_name))

        saved = _prepare_for_save(geo_tag)
        self.client.set_document(self.collection_name, saved.id, saved.to_firestore_dict())  # type: ignore[arg-type]
        logger.info(
            f"GeoTag saved: {saved.id} - document={saved.document_id} - {saved.source.value}"
        )
        return saved

    def get_by_id(self, geo_tag_id: str) -> Optional[GeoTag]:
        data = self.client.get_document(self.collection_name, geo_tag_id)
        return GeoTag.from_firestore_dict(data) if data else None

    def find_by_document(self, document_id: str, include_inactive: bool = False) -> list[GeoTag]:
        filters = [("document_id", "==", document_id)]
        if not include_inactive:
            filters.append(("is_active", "==", True))

        docs = self.client.query_documents(
            self.collection_name, filters=filters, order_by="created_at", descending=True
        )
        return [GeoTag.from_firestore_dict(doc) for doc in docs]

    def query(
        self, filters: dict[str, Any], limit: int = 50, offset: int = 0
    ) -> list[GeoTag]:
        docs = self.client.query_documents(
            self.collection_name,
            filters=[(field, "==", value) for field, value in filters.items()],
            order_by="created_at",
            descending=True,
            limit=limit,
            offset=offset,
        )
        return [GeoTag.from_firestore_dict(doc) for doc in docs]

    def find_in_bounds(
        self,
        south: float,
        north: float,
        west: float,
        east: float,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[GeoTag]:
        # Firestoreの範囲条件は1フィールドのみのため、経度はクライアント側で絞り込む
        conditions = {"is_active": True, **(filters or {})}
        query_filters = [(field, "==", value) for field, value in conditions.items()]
        query_filters.extend([("latitude", ">=", south), ("latitude", "<=", north)])

        docs = self.client.query_documents(self.collection_name, filters=query_filters)
        geo_tags = [GeoTag.from_firestore_dict(doc) for doc in docs]
        return [tag for tag in geo_tags if longitude_in_range(tag.longitude, west, east)]

    def mark_verified(self, geo_tag_id: str, verified_by: str, verified_at: datetime) -> GeoTag:
        return self._update(
            geo_tag_id,
            {"is_verified": True, "verified_by": verified_by, "verified_at": verified_at},
        )

    def deactivate(self, geo_tag_id: str) -> GeoTag:
        return self._update(geo_tag_id, {"is_active": False})

    def _update(self, geo_tag_id: str, updates: dict[str, Any]) -> GeoTag:
        if self.get_by_id(geo_tag_id) is None:
            raise NotFoundError(f"GeoTag not found: {geo_tag_id}")

        self.client.update_document(
            self.collection_name, geo_tag_id, {**updates, "updated_at": now_utc()}
        )

        updated = self.get_by_id(geo_tag_id)
        if updated is None:
            raise StorageError(f"GeoTag disappeared during update: {geo_tag_id}")
        return updated
