"""座標抽出機能のEnum定義"""
from enum import Enum


class CoordinateSource(str, Enum):
    """座標の取得元"""

    METADATA = "metadata"  # 画像メタデータ（EXIF GPS）
    TEXT_PATTERN = "text_pattern"  # 文書本文
    MANUAL = "manual"  # 手動入力
    HEURISTIC_TEXT = "heuristic_text"  # ヒューリスティック（AI代替）抽出
    REGEX = "regex"  # 正規表現による書式解析
    SATELLITE_METADATA = "satellite_metadata"  # 衛星画像メタデータ


class CoordinateFormat(str, Enum):
    """元の座標表記"""

    DECIMAL_DEGREES = "decimal_degrees"  # 40.7128, -74.0060
    DEGREES_MINUTES_SECONDS = "degrees_minutes_seconds"  # 40°42'46"N, 74°00'22"W
    DEGREES_DECIMAL_MINUTES = "degrees_decimal_minutes"  # 40°42.767'N, 74°00.367'W
    UTM = "utm"  # 18T 585628 4511322
    MGRS = "mgrs"  # 18TWL8562811322


class LocationAccuracy(str, Enum):
    """位置精度"""

    EXACT = "exact"  # GPS座標
    APPROXIMATE = "approximate"  # 都市・地域レベル
    ESTIMATED = "estimated"  # テキスト抽出による推定
    UNKNOWN = "unknown"  # 精度不明（プレースホルダー座標）


class ContentKind(str, Enum):
    """抽出器が受け取るコンテンツの種類"""

    TEXT = "text"  # 文書から読み出したテキスト
    BINARY = "binary"  # 生のバイト列またはファイルパス


class ExtractionStage(str, Enum):
    """ドキュメント単位の抽出処理ステージ"""

    NOT_EXTRACTED = "not_extracted"
    SKIPPED = "skipped"
    EXTRACTING = "extracting"
    DEDUPLICATING = "deduplicating"
    REVERSE_GEOCODING = "reverse_geocoding"
    PERSISTING = "persisting"
    DONE = "done"
