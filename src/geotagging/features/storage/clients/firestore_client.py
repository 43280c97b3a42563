"""Firestoreクライアント"""
import os
from typing import Any, Optional

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from ....shared.exceptions.errors import StorageError
from ....shared.logging.config import get_logger

logger = get_logger(__name__)

Filter = tuple[str, str, Any]


class FirestoreClient:
    """Firestore操作クライアント"""

    def __init__(self, project_id: str, database_id: str = "(default)") -> None:
        """
        Firestoreクライアントを初期化

        Args:
            project_id: GCPプロジェクトID
            database_id: データベースID（デフォルトは"(default)"）

        Raises:
            StorageError: クライアントの初期化に失敗した場合
        """
        self.project_id = project_id
        self.database_id = database_id

        # エミュレータモードの検出
        emulator_host = os.environ.get("FIRESTORE_EMULATOR_HOST")

        try:
            self.client = firestore.Client(project=project_id, database=database_id)
        except Exception as e:
            raise StorageError(f"Failed to initialize Firestore client: {e}") from e

        if emulator_host:
            logger.info(
                f"Firestore client initialized (EMULATOR MODE): "
                f"host={emulator_host}, project={project_id}, database={database_id}"
            )
        else:
            logger.info(f"Firestore client initialized: project={project_id}, database={database_id}")

    def get_collection(self, collection_path: str) -> firestore.CollectionReference:
        """コレクション参照を取得"""
        return self.client.collection(collection_path)

    def new_document_id(self, collection_path: str) -> str:
        """自動生成のドキュメントIDを払い出す"""
        return self.get_collection(collection_path).document().id

    def set_document(self, collection_path: str, document_id: str, data: dict[str, Any]) -> None:
        """
        ドキュメントを作成または上書き

        Args:
            collection_path: コレクションパス
            document_id: ドキュメントID
            data: 保存するデータ

        Raises:
            StorageError: 書き込みに失敗した場合
        """
        try:
            self.get_collection(collection_path).document(document_id).set(data)
            logger.debug(f"Document {document_id} written to {collection_path}")
        except Exception as e:
            raise StorageError(
                f"Failed to write document {document_id} to {collection_path}: {e}"
            ) from e

    def get_document(self, collection_path: str, document_id: str) -> Optional[dict[str, Any]]:
        """
        ドキュメントを取得

        Args:
            collection_path: コレクションパス
            document_id: ドキュメントID

        Returns:
            Optional[dict[str, Any]]: ドキュメントデータ（存在しない場合はNone）
        """
        try:
            doc = self.get_collection(collection_path).document(document_id).get()
            if doc.exists:
                return doc.to_dict()
            return None

        except Exception as e:
            raise StorageError(
                f"Failed to get document {document_id} from {collection_path}: {e}"
            ) from e

    def query_documents(
        self,
        collection_path: str,
        filters: Optional[list[Filter]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """
        条件に一致するドキュメントを取得

        Args:
            collection_path: コレクションパス
            filters: フィルタ条件のリスト [(field, operator, value), ...]
            order_by: ソートするフィールド
            descending: 降順にするか
            limit: 取得件数の上限
            offset: スキップする件数

        Returns:
            list[dict[str, Any]]: ドキュメントのリスト

        Example:
            >>> client.query_documents(
            ...     "geo_tags",
            ...     filters=[("document_id", "==", "doc-1"), ("is_active", "==", True)],
            ...     limit=100
            ... )
        """
        try:
            query = self.get_collection(collection_path)

            if filters:
                for field, operator, value in filters:
                    query = query.where(filter=FieldFilter(field, operator, value))

            if order_by:
                direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
                query = query.order_by(order_by, direction=direction)

            if offset:
                query = query.offset(offset)

            if limit:
                query = query.limit(limit)

            return [doc.to_dict() for doc in query.stream() if doc.exists]

        except Exception as e:
            raise StorageError(f"Failed to query documents from {collection_path}: {e}") from e

    def update_document(
        self, collection_path: str, document_id: str, updates: dict[str, Any]
    ) -> None:
        """
        ドキュメントを部分更新

        Args:
            collection_path: コレクションパス
            document_id: ドキュメントID
            updates: 更新内容
        """
        try:
            self.get_collection(collection_path).document(document_id).update(updates)
            logger.info(f"Document {document_id} updated in {collection_path}: {list(updates)}")

        except Exception as e:
            raise StorageError(
                f"Failed to update document {document_id} in {collection_path}: {e}"
            ) from e
