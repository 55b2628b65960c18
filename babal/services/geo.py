# 위경도 거리 계산 (체크인 반경 판정용)

import math

EARTH_RADIUS_M = 6371000.0


def distance_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """두 위경도 사이 대원 거리(미터). Haversine."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    # 대척점 근처에서 반올림 오차로 1을 넘을 수 있음
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def valid_coordinates(lat: float, lng: float) -> bool:
    """|lat| ≤ 90, |lng| ≤ 180, 유한값."""
    try:
        lat_f, lng_f = float(lat), float(lng)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
        return False
    return abs(lat_f) <= 90 and abs(lng_f) <= 180
