"""監査ログリポジトリ"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ....shared.logging.config import get_logger
from ....shared.utils.datetime_utils import now_utc
from ...extraction.domain.models import Actor
from ..clients.firestore_client import FirestoreClient

logger = get_logger(__name__)


@dataclass
class AuditEvent:
    """監査イベント"""

    action: str  # 例: "coordinate-extracted", "geo-tag-verified"
    resource_id: str
    user_id: str
    user_email: str
    metadata: dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=now_utc)

    def to_firestore_dict(self) -> dict[str, Any]:
        """Firestore保存用の辞書に変換"""
        return {
            "event_id": self.event_id,
            "action": self.action,
            "resource_type": "geo_tag",
            "resource_id": self.resource_id,
            "user_id": self.user_id,
            "user_email": self.user_email,
            "metadata": self.metadata,
            "created_at": self.created_at,
        }


class AuditSink(ABC):
    """
    監査ログの出力先

    記録の失敗はログに残すのみで、呼び出し元には伝播しない。
    """

    def record(
        self,
        actor: Actor,
        action: str,
        resource_id: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        監査イベントを記録

        Args:
            actor: 操作者
            action: 操作種別
            resource_id: 対象リソース（ジオタグ）ID
            metadata: 付随情報
        """
        event = AuditEvent(
            action=action,
            resource_id=resource_id,
            user_id=actor.user_id,
            user_email=actor.email,
            metadata=metadata or {},
        )

        try:
            self._write(event)
        except Exception as e:
            logger.error(f"Failed to record audit event {action} for {resource_id}: {e}")

    @abstractmethod
    def _write(self, event: AuditEvent) -> None:
        pass


class InMemoryAuditSink(AuditSink):
    """メモリ上の監査ログ（ローカル実行・テスト用）"""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    def _write(self, event: AuditEvent) -> None:
        self.events.append(event)
        logger.debug(f"Audit event recorded: {event.action} - {event.resource_id}")

    def by_action(self, action: str) -> list[AuditEvent]:
        """指定した操作種別のイベントのみを返す"""
        return [event for event in self.events if event.action == action]


class FirestoreAuditRepository(AuditSink):
    """Firestore上の監査ログ"""

    COLLECTION_NAME = "geo_tag_audit_log"

    def __init__(
        self, firestore_client: FirestoreClient, collection_name: Optional[str] = None
    ) -> None:
        """
        Args:
            firestore_client: Firestoreクライアント
            collection_name: コレクション名（省略時は "geo_tag_audit_log"）
        """
        self.client = firestore_client
        self.collection_name = collection_name or self.COLLECTION_NAME
        logger.info(f"FirestoreAuditRepository initialized: collection={self.collection_name}")

    def _write(self, event: AuditEvent) -> None:
        self.client.set_document(self.collection_name, event.event_id, event.to_firestore_dict())
        logger.debug(f"Audit event recorded: {event.action} - {event.resource_id}")
