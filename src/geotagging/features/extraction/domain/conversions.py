"""座標表記の変換（度分秒・度分・UTM → 10進度）"""
import math

NEGATIVE_HEMISPHERES = ("S", "W")

# UTM近似変換で使う1度あたりの距離（メートル）
METERS_PER_DEGREE = 111320.0
UTM_FALSE_EASTING = 500000.0
UTM_NORTHING_OFFSET = 5000000.0


def dms_to_decimal(degrees: float, minutes: float, seconds: float, hemisphere: str) -> float:
    """
    度分秒を10進度に変換

    Args:
        degrees: 度
        minutes: 分
        seconds: 秒
        hemisphere: 半球 (N, S, E, W)。S/Wの場合は負になる

    Returns:
        float: 10進度
    """
    decimal = degrees + minutes / 60 + seconds / 3600
    if hemisphere.upper() in NEGATIVE_HEMISPHERES:
        decimal = -decimal
    return decimal


def ddm_to_decimal(degrees: float, minutes: float, hemisphere: str) -> float:
    """度・10進分を10進度に変換"""
    decimal = degrees + minutes / 60
    if hemisphere.upper() in NEGATIVE_HEMISPHERES:
        decimal = -decimal
    return decimal


def decimal_to_dms(decimal: float, is_latitude: bool = True) -> tuple[int, int, float, str]:
    """
    10進度を度分秒に変換

    Args:
        decimal: 10進度
        is_latitude: 緯度ならTrue（N/S）、経度ならFalse（E/W）

    Returns:
        tuple[int, int, float, str]: (度, 分, 秒, 半球)
    """
    if is_latitude:
        hemisphere = "N" if decimal >= 0 else "S"
    else:
        hemisphere = "E" if decimal >= 0 else "W"

    absolute = abs(decimal)
    degrees = int(absolute)
    minutes_full = (absolute - degrees) * 60
    minutes = int(minutes_full)
    seconds = (minutes_full - minutes) * 60

    return degrees, minutes, seconds, hemisphere


def utm_to_lat_lon(zone: int, band: str, easting: float, northing: float) -> tuple[float, float]:
    """
    UTM座標を緯度経度に近似変換

    楕円体を考慮しない線形近似。バンド文字は変換に使用しない。
    精度要件が決まるまで、この近似結果をそのまま返す。

    Args:
        zone: UTMゾーン番号 (1〜60)
        band: 緯度バンド文字
        easting: 東距（メートル）
        northing: 北距（メートル）

    Returns:
        tuple[float, float]: (緯度, 経度)
    """
    central_meridian = (zone - 1) * 6 - 180 + 3

    lat = (northing - UTM_NORTHING_OFFSET) / METERS_PER_DEGREE
    lon = central_meridian + (easting - UTM_FALSE_EASTING) / (
        METERS_PER_DEGREE * math.cos(math.radians(lat))
    )

    return lat, lon


def is_valid_coordinate(latitude: float, longitude: float) -> bool:
    """緯度経度が有効範囲内かどうか（NaNは無効）"""
    if math.isnan(latitude) or math.isnan(longitude):
        return False
    return -90 <= latitude <= 90 and -180 <= longitude <= 180
