"""CLIエントリーポイント"""
import argparse
import sys
from typing import Optional

from .features.batch.orchestrator import BatchOrchestrator
from .features.extraction.domain.models import Actor, ExtractionOptions
from .infrastructure.config.settings import Settings
from .shared.logging.config import get_logger, setup_logging

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """コマンドライン引数のパーサーを作成"""
    parser = argparse.ArgumentParser(
        description="ドキュメントから地理座標を抽出してジオタグとして保存するツール"
    )

    parser.add_argument(
        "document_ids",
        nargs="*",
        help="処理対象のドキュメントID（省略時はドキュメントルート配下の全ファイル）",
    )

    parser.add_argument(
        "--use-ai",
        action="store_true",
        help="ヒューリスティック（AI代替）抽出を有効にする",
    )

    parser.add_argument(
        "--force",
        action="store_true",
        help="既存のジオタグがあっても再抽出する",
    )

    parser.add_argument(
        "--geocode-addresses",
        action="store_true",
        help="本文中の address:/location:/place: ラベルを順ジオコーディングする",
    )

    parser.add_argument(
        "--env-file",
        type=str,
        default=".env",
        help="環境変数ファイルのパス（デフォルト: .env）",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="ログレベル",
    )

    parser.add_argument(
        "--actor-id",
        type=str,
        default="batch",
        help="抽出の実行者ID（デフォルト: batch）",
    )

    parser.add_argument(
        "--actor-email",
        type=str,
        default="batch@localhost",
        help="抽出の実行者メールアドレス",
    )

    parser.add_argument(
        "--progress",
        action="store_true",
        help="プログレスバーを表示する",
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    メインエントリーポイント

    Returns:
        int: 終了コード（0: 成功, 1: 失敗, 130: 中断）
    """
    args = build_parser().parse_args(argv)

    try:
        # 設定を読み込み
        settings = Settings(_env_file=args.env_file)

        # ログレベルを上書き
        if args.log_level:
            settings.log_level = args.log_level

        setup_logging(
            level=settings.log_level,
            enable_cloud_logging=settings.gcp_logging_enabled,
            project_id=settings.gcp_project_id,
        )

        logger.info("Starting geo-tagging extraction")
        logger.info(f"Environment: {settings.environment}")
        logger.info(f"Project: {settings.project_name}")

        orchestrator = BatchOrchestrator(settings)

        actor = Actor(user_id=args.actor_id, email=args.actor_email)
        options = ExtractionOptions(
            force_reextraction=args.force,
            use_ai=args.use_ai or settings.heuristic_extraction_enabled,
            geocode_addresses=args.geocode_addresses,
        )

        if args.document_ids:
            result = orchestrator.run_documents(
                args.document_ids, actor, options, show_progress=args.progress
            )
        else:
            logger.info(f"No document specified, processing all documents in {settings.documents_root}")
            result = orchestrator.run_all_documents(actor, options, show_progress=args.progress)

        logger.info(f"Geo-tagging extraction completed: {result}")
        return 0 if result["failure"] == 0 else 1

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130  # SIGINT
    except Exception as e:
        logger.error(f"Application failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
