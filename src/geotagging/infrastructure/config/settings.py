"""アプリケーション設定（Pydantic Settings）"""
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """アプリケーション設定"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Project
    project_name: str = Field(
        default="geotagging-extraction",
        description="プロジェクト名",
    )
    environment: str = Field(
        default="development",
        description="環境 (development, staging, production)",
    )

    # Storage
    storage_backend: Literal["memory", "firestore"] = Field(
        default="memory",
        description="ジオタグ・監査ログの保存先（memory または firestore）",
    )
    gcp_project_id: Optional[str] = Field(
        default=None,
        description="GCPプロジェクトID（firestore利用時は必須）",
    )
    firestore_database_id: str = Field(
        default="(default)",
        description="FirestoreデータベースID",
    )
    firestore_geotags_collection: str = Field(
        default="geo_tags",
        description="ジオタグコレクション名",
    )
    firestore_audit_collection: str = Field(
        default="geo_tag_audit_log",
        description="監査ログコレクション名",
    )

    # Documents
    documents_root: Path = Field(
        default=Path("./documents"),
        description="ドキュメントストアのルートディレクトリ",
    )

    # Extraction
    heuristic_extraction_enabled: bool = Field(
        default=False,
        description="ヒューリスティック（AI代替）抽出をデフォルトで有効にするか",
    )
    heuristic_min_text_length: int = Field(
        default=50,
        description="ヒューリスティック抽出を行う最小テキスト長",
    )
    heuristic_max_text_length: int = Field(
        default=50000,
        description="ヒューリスティック抽出を行う最大テキスト長",
    )
    heuristic_jitter_degrees: float = Field(
        default=0.01,
        description="既知地名の座標に加えるランダムオフセットの幅（度）",
    )
    dedup_epsilon_degrees: float = Field(
        default=1e-4,
        description="重複とみなす座標差の閾値（度）",
    )

    # Geocoding
    geocoding_cache_enabled: bool = Field(
        default=True,
        description="ジオコーディングキャッシュを有効にするか",
    )
    geocoding_batch_delay: float = Field(
        default=0.05,
        description="バッチジオコーディングのリクエスト間遅延（秒）",
    )
    reverse_geocoding_enabled: bool = Field(
        default=True,
        description="抽出座標を逆ジオコーディングで住所補完するか",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="ログレベル (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    gcp_logging_enabled: bool = Field(
        default=False,
        description="Cloud Loggingを有効にするか",
    )

    @field_validator("documents_root", mode="before")
    @classmethod
    def _expand_path(cls, value: str | Path) -> Path:
        return Path(value).expanduser()

