"""カスタム例外定義"""


class GeoTaggingError(Exception):
    """ジオタグ処理の基底例外"""

    pass


class ValidationError(GeoTaggingError):
    """バリデーションエラー（座標範囲外、不正なリクエスト）"""

    pass


class NotFoundError(GeoTaggingError):
    """ドキュメントまたはジオタグが存在しない"""

    pass


class ExtractionError(GeoTaggingError):
    """座標抽出エラー（コンテンツ読み込み不可、全抽出器の失敗）"""

    pass


class GeocodingError(GeoTaggingError):
    """ジオコーディングエラー"""

    pass


class StorageError(GeoTaggingError):
    """ストレージ関連のエラー"""

    pass


class ConfigurationError(GeoTaggingError):
    """設定エラー"""

    pass
