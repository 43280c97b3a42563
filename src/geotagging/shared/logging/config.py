"""ロギング設定"""
import logging
import sys
from typing import Optional

from ..exceptions.errors import ConfigurationError

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Firestore / Cloud Logging クライアントが出すログ
NOISY_LOGGERS = ("google", "grpc", "urllib3")

_logger_configured = False


def setup_logging(
    level: str = "INFO",
    enable_cloud_logging: bool = False,
    project_id: Optional[str] = None,
    force: bool = False,
) -> None:
    """
    ロギングを設定

    2回目以降の呼び出しは force=True のときのみ設定し直す。

    Args:
        level: ログレベル (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_cloud_logging: Cloud Loggingを有効にするか
        project_id: GCPプロジェクトID (Cloud Logging有効時に必要)
        force: 設定済みでも再設定するか

    Raises:
        ConfigurationError: 不明なログレベルの場合
    """
    global _logger_configured

    if _logger_configured and not force:
        return

    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        raise ConfigurationError(f"Unknown log level: {level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    root_logger.addHandler(console_handler)

    if enable_cloud_logging:
        _add_cloud_logging_handler(root_logger, log_level, project_id)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _logger_configured = True
    logging.info(f"Logging configured with level: {level.upper()}")


def _add_cloud_logging_handler(
    root_logger: logging.Logger, log_level: int, project_id: Optional[str]
) -> None:
    """Cloud Loggingハンドラーを追加（失敗してもコンソール出力は継続）"""
    try:
        from google.cloud import logging as cloud_logging

        client = cloud_logging.Client(project=project_id)
        cloud_handler = cloud_logging.handlers.CloudLoggingHandler(
            client, name="geotagging-extraction"
        )
        cloud_handler.setLevel(log_level)
        root_logger.addHandler(cloud_handler)

        logging.info(f"Cloud Logging enabled: project={project_id}")
    except Exception as e:
        logging.warning(f"Failed to enable Cloud Logging: {e}")


def get_logger(name: str) -> logging.Logger:
    """
    指定名のロガーを取得

    Args:
        name: ロガー名（通常は__name__を指定）

    Returns:
        ロガーインスタンス
    """
    return logging.getLogger(name)
