"""座標抽出器の基底クラス"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from ....shared.logging.config import get_logger
from ..domain.enums import ContentKind
from ..domain.models import ExtractedCoordinate

logger = get_logger(__name__)

ExtractorContent = Union[str, bytes, Path]


class BaseCoordinateExtractor(ABC):
    """
    座標抽出器の抽象基底クラス

    オーケストレーターは注入された順序で抽出器を実行する。
    新しい抽出器はこのクラスを継承するだけで追加できる。
    """

    # 抽出器が受け取るコンテンツ（テキストまたは生データ）
    content_kind: ContentKind = ContentKind.TEXT

    # Trueの場合、ExtractionOptions.use_ai が指定されたときのみ実行される
    requires_opt_in: bool = False

    def __init__(self) -> None:
        logger.debug(f"{self.__class__.__name__} initialized")

    @property
    def name(self) -> str:
        """抽出器名"""
        return self.__class__.__name__

    @abstractmethod
    def can_handle(self, content: ExtractorContent, mime_type: Optional[str] = None) -> bool:
        """
        コンテンツを処理できるか判定

        Args:
            content: テキストまたは生データ
            mime_type: MIMEタイプ

        Returns:
            bool: 処理可能ならTrue
        """
        pass

    @abstractmethod
    def extract(
        self, content: ExtractorContent, filename: Optional[str] = None
    ) -> list[ExtractedCoordinate]:
        """
        コンテンツから座標を抽出

        Args:
            content: テキストまたは生データ
            filename: 元のファイル名（ログ用）

        Returns:
            list[ExtractedCoordinate]: 座標候補のリスト
        """
        pass
