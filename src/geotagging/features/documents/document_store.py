"""ドキュメントストア（ドキュメントID → 内容・MIMEタイプ・元ファイル名）"""

import mimetypes
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ...shared.exceptions.errors import ExtractionError, NotFoundError
from ...shared.logging.config import get_logger
from ...shared.utils.text import html_to_text

logger = get_logger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass
class Document:
    """抽出対象のドキュメント"""

    document_id: str
    content: Union[bytes, Path]  # 生データまたはファイルパス
    mime_type: str
    original_name: str

    @property
    def is_image(self) -> bool:
        """画像ドキュメントかどうか"""
        return self.mime_type.lower().startswith("image/")


class DocumentStore(ABC):
    """ドキュメントストアのインターフェース"""

    @abstractmethod
    def resolve(self, document_id: str) -> Document:
        """
        ドキュメントを取得

        Args:
            document_id: ドキュメントID

        Returns:
            Document: ドキュメント

        Raises:
            NotFoundError: ドキュメントが存在しない場合
        """
        pass

    def exists(self, document_id: str) -> bool:
        """ドキュメントが存在するか"""
        try:
            self.resolve(document_id)
        except NotFoundError:
            return False
        return True


class FileSystemDocumentStore(DocumentStore):
    """
    ディレクトリ上のファイルをドキュメントとして扱うストア

    ドキュメントIDはルートディレクトリからの相対パス。
    """

    def __init__(self, root: Union[str, Path]) -> None:
        """
        Args:
            root: ルートディレクトリ
        """
        self.root = Path(root).expanduser().resolve()
        logger.info(f"FileSystemDocumentStore initialized: root={self.root}")

    def resolve(self, document_id: str) -> Document:
        path = (self.root / document_id).resolve()

        # ルート外へのパス指定は存在しないものとして扱う
        if not path.is_relative_to(self.root) or not path.is_file():
            raise NotFoundError(f"Document not found: {document_id}")

        mime_type, _ = mimetypes.guess_type(path.name)
        return Document(
            document_id=document_id,
            content=path,
            mime_type=mime_type or DEFAULT_MIME_TYPE,
            original_name=path.name,
        )

    def list_document_ids(self) -> list[str]:
        """ルート配下の全ファイルのドキュメントIDを返す"""
        if not self.root.is_dir():
            return []
        return sorted(
            path.relative_to(self.root).as_posix()
            for path in self.root.rglob("*")
            if path.is_file()
        )


class InMemoryDocumentStore(DocumentStore):
    """メモリ上のドキュメントストア（テスト用）"""

    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}

    def add(
        self,
        document_id: str,
        content: Union[str, bytes, Path],
        mime_type: Optional[str] = None,
        original_name: Optional[str] = None,
    ) -> Document:
        """
        ドキュメントを登録

        Args:
            document_id: ドキュメントID
            content: 内容（文字列はUTF-8でエンコードする）
            mime_type: MIMEタイプ（省略時は元ファイル名から推定）
            original_name: 元ファイル名（省略時はドキュメントID）
        """
        name = original_name or document_id
        if mime_type is None:
            mime_type, _ = mimetypes.guess_type(name)

        document = Document(
            document_id=document_id,
            content=content.encode("utf-8") if isinstance(content, str) else content,
            mime_type=mime_type or "text/plain",
            original_name=name,
        )
        self._documents[document_id] = document
        return document

    def resolve(self, document_id: str) -> Document:
        document = self._documents.get(document_id)
        if document is None:
            raise NotFoundError(f"Document not found: {document_id}")
        return document


def read_document_text(document: Document) -> str:
    """
    ドキュメントからテキストを取り出す

    画像は空文字列、HTMLは表示テキスト、それ以外はUTF-8としてデコードする。

    Raises:
        ExtractionError: ファイルが読み込めない場合
    """
    if document.is_image:
        return ""

    if isinstance(document.content, Path):
        try:
            raw = document.content.read_bytes()
        except OSError as e:
            raise ExtractionError(
                f"Failed to read document {document.document_id}: {e}"
            ) from e
    else:
        raw = document.content

    text = raw.decode("utf-8", errors="replace")

    if document.mime_type.lower() in ("text/html", "application/xhtml+xml"):
        return html_to_text(text)
    return text
