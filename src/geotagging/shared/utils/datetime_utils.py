"""日時関連ユーティリティ"""

from datetime import datetime, timezone


def now_utc() -> datetime:
    """現在のUTC時間を取得"""
    return datetime.now(timezone.utc)


def format_duration(seconds: float) -> str:
    """
    秒数を読みやすい形式に変換

    Args:
        seconds: 秒数

    Returns:
        "1h23m45s" のような文字列（1秒未満はミリ秒表記）
    """
    if seconds < 1:
        return f"{int(seconds * 1000)}ms"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")

    return "".join(parts)
