"""地名辞書（パッケージ同梱のYAML）の読み込み"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from ...shared.exceptions.errors import ConfigurationError
from ...shared.logging.config import get_logger
from .domain.models import GazetteerEntry, PlaceHint

logger = get_logger(__name__)

GAZETTEER_PATH = Path(__file__).parent / "data" / "gazetteer.yaml"


@lru_cache(maxsize=1)
def _load_raw() -> dict[str, Any]:
    try:
        text = GAZETTEER_PATH.read_text(encoding="utf-8")
        data = yaml.safe_load(text) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load gazetteer: {e}") from e

    logger.info(
        f"Gazetteer loaded: {len(data.get('places', []))} places, {len(data.get('hints', []))} hints"
    )
    return data


@lru_cache(maxsize=1)
def load_gazetteer() -> tuple[GazetteerEntry, ...]:
    """
    地名辞書を読み込む（初回のみ、以降はキャッシュ）

    Returns:
        tuple[GazetteerEntry, ...]: 地名エントリ（読み取り専用）

    Raises:
        ConfigurationError: YAMLが読み込めない場合
    """
    return tuple(GazetteerEntry(**place) for place in _load_raw().get("places", []))


@lru_cache(maxsize=1)
def load_place_hints() -> tuple[PlaceHint, ...]:
    """ヒューリスティック抽出用の既知地名を読み込む"""
    return tuple(PlaceHint(**hint) for hint in _load_raw().get("hints", []))
