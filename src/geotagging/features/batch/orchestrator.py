"""バッチオーケストレーター"""

import time
from typing import Optional

from tqdm import tqdm

from ...infrastructure.config.settings import Settings
from ...shared.exceptions.errors import ConfigurationError, GeoTaggingError
from ...shared.logging.config import get_logger
from ...shared.utils.datetime_utils import format_duration
from ..documents.document_store import DocumentStore, FileSystemDocumentStore
from ..extraction.domain.models import Actor, ExtractionOptions
from ..extraction.extractors.registry import build_extractors
from ..geocoding.providers.cache_geocoder import CacheGeocoder
from ..geocoding.services.geocoding_service import GeocodingService
from ..geotagging.services.geotagging_service import Geocoder, GeoTaggingService
from ..storage.clients.firestore_client import FirestoreClient
from ..storage.repositories.audit_repository import (
    AuditSink,
    FirestoreAuditRepository,
    InMemoryAuditSink,
)
from ..storage.repositories.geotag_repository import (
    FirestoreGeoTagRepository,
    GeoTagRepository,
    InMemoryGeoTagRepository,
)

logger = get_logger(__name__)


class BatchOrchestrator:
    """
    バッチオーケストレーター

    設定から各Featureを組み立て（依存性注入）、複数ドキュメントの抽出を実行する
    """

    def __init__(
        self,
        settings: Settings,
        document_store: Optional[DocumentStore] = None,
        repository: Optional[GeoTagRepository] = None,
        audit_sink: Optional[AuditSink] = None,
    ) -> None:
        """
        Args:
            settings: アプリケーション設定
            document_store: ドキュメントストア（省略時は documents_root 配下のファイル）
            repository: ジオタグリポジトリ（省略時は storage_backend に従う）
            audit_sink: 監査ログの出力先（省略時は storage_backend に従う）

        Raises:
            ConfigurationError: firestore利用時にGCPプロジェクトIDが未設定の場合
        """
        self.settings = settings

        self.firestore_client: Optional[FirestoreClient] = None
        if settings.storage_backend == "firestore" and (repository is None or audit_sink is None):
            if not settings.gcp_project_id:
                raise ConfigurationError("GCP_PROJECT_ID is required when STORAGE_BACKEND=firestore")
            self.firestore_client = FirestoreClient(
                project_id=settings.gcp_project_id,
                database_id=settings.firestore_database_id,
            )

        self.document_store = document_store or FileSystemDocumentStore(settings.documents_root)
        self.repository = repository or self._create_repository()
        self.audit_sink = audit_sink or self._create_audit_sink()

        self.geocoder = self._create_geocoder()

        self.service = GeoTaggingService(
            extractors=build_extractors(settings, self.geocoder),
            geocoder=self.geocoder,
            document_store=self.document_store,
            repository=self.repository,
            audit_sink=self.audit_sink,
            dedup_epsilon=settings.dedup_epsilon_degrees,
            reverse_geocoding_enabled=settings.reverse_geocoding_enabled,
        )

        logger.info(f"BatchOrchestrator initialized: backend={settings.storage_backend}")

    def run_documents(
        self,
        document_ids: list[str],
        actor: Actor,
        options: Optional[ExtractionOptions] = None,
        show_progress: bool = False,
    ) -> dict[str, int]:
        """
        複数ドキュメントの座標抽出を実行

        1件の失敗は他のドキュメントの処理に影響しない。

        Args:
            document_ids: ドキュメントIDのリスト
            actor: 抽出の実行者
            options: 抽出オプション
            show_progress: プログレスバーを表示するか

        Returns:
            dict[str, int]: 処理結果（成功数、失敗数、ジオタグ数、総数）
        """
        options = options or ExtractionOptions(use_ai=self.settings.heuristic_extraction_enabled)
        success_count = 0
        failure_count = 0
        geo_tag_count = 0
        start_time = time.time()

        logger.info(f"Starting batch extraction: {len(document_ids)} documents")

        iterator = tqdm(document_ids, desc="Extracting") if show_progress else document_ids

        for document_id in iterator:
            try:
                geo_tags = self.service.extract_and_store_coordinates(document_id, actor, options)
            except GeoTaggingError as e:
                failure_count += 1
                logger.error(f"Failed to extract coordinates from {document_id}: {e}")
                continue

            success_count += 1
            geo_tag_count += len(geo_tags)

        result = {
            "success": success_count,
            "failure": failure_count,
            "geo_tags": geo_tag_count,
            "total": len(document_ids),
        }

        logger.info(
            f"Batch extraction completed in {format_duration(time.time() - start_time)}: "
            f"{success_count} success, {failure_count} failure, {geo_tag_count} geo-tags"
        )

        return result

    def run_all_documents(
        self,
        actor: Actor,
        options: Optional[ExtractionOptions] = None,
        show_progress: bool = False,
    ) -> dict[str, int]:
        """ドキュメントストア内の全ドキュメントを処理"""
        if not isinstance(self.document_store, FileSystemDocumentStore):
            raise ConfigurationError("Listing documents requires a file system document store")

        document_ids = self.document_store.list_document_ids()
        return self.run_documents(document_ids, actor, options, show_progress)

    def _create_repository(self) -> GeoTagRepository:
        if self.firestore_client is not None:
            return FirestoreGeoTagRepository(
                self.firestore_client, self.settings.firestore_geotags_collection
            )
        return InMemoryGeoTagRepository()

    def _create_audit_sink(self) -> AuditSink:
        if self.firestore_client is not None:
            return FirestoreAuditRepository(
                self.firestore_client, self.settings.firestore_audit_collection
            )
        return InMemoryAuditSink()

    def _create_geocoder(self) -> Geocoder:
        """ジオコーダーを作成（設定によりキャッシュ付き）"""
        geocoding_service = GeocodingService(
            delay_between_requests=self.settings.geocoding_batch_delay
        )

        if not self.settings.geocoding_cache_enabled:
            return geocoding_service
        return CacheGeocoder(geocoding_service)
