"""テキスト処理ユーティリティ"""

import re
from typing import Optional

from bs4 import BeautifulSoup


def normalize_text(text: Optional[str]) -> Optional[str]:
    """
    テキストを正規化

    - 前後の空白を除去
    - 連続する空白を1つに
    - 全角スペースを半角スペースに変換
    """
    if not text:
        return None

    text = text.replace("　", " ")
    text = re.sub(r"\s+", " ", text)
    text = text.strip()

    return text if text else None


def truncate_text(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """
    テキストを指定長で切り詰め

    Args:
        text: 対象テキスト
        max_length: 最大文字数
        suffix: 切り詰め時の接尾辞

    Returns:
        切り詰められたテキスト
    """
    if not text or len(text) <= max_length:
        return text

    return text[: max_length - len(suffix)] + suffix


def html_to_text(html: str) -> str:
    """HTMLから表示テキストを抽出（script/styleは除外）"""
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")
    for element in soup(["script", "style"]):
        element.decompose()

    # 改行を残して座標パターンが行をまたがないようにする
    return soup.get_text(separator="\n")
