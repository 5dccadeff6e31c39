"""
시간 관련 유틸리티 함수
"""
from datetime import datetime
from typing import Optional, Union


def _to_datetime(value: Union[str, datetime]) -> datetime:
    if isinstance(value, datetime):
        return value
    # 저장소가 돌려주는 ISO 문자열 ("Z" 접미사 포함) 지원
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed


def format_time(timestamp: Union[str, datetime]) -> str:
    """
    타임스탬프를 HH:MM 형식으로 변환합니다.

    Examples:
        >>> format_time("2024-05-01T09:05:00")
        "09:05"
    """
    dt = _to_datetime(timestamp)
    return f"{dt.hour:02d}:{dt.minute:02d}"


def format_relative_time(timestamp: Optional[Union[str, datetime]], now: Optional[datetime] = None) -> str:
    """
    타임스탬프를 상대적 시간 표기로 변환합니다.

    Args:
        timestamp: ISO 문자열 또는 datetime (UTC 기준, None 이면 "unknown")
        now: 기준 시각 (기본값 utcnow)

    Returns:
        str: 상대적 시간 표기
            - 1분 미만: "just now"
            - 1시간 미만: "n min ago"
            - 24시간 미만: "n h ago"
            - 그 이상: HH:MM
    """
    if timestamp is None:
        return "unknown"

    dt = _to_datetime(timestamp)
    now = now or datetime.utcnow()
    total_seconds = (now - dt).total_seconds()

    # 미래 시간도 방금으로 표시
    if total_seconds < 60:
        return "just now"

    if total_seconds < 3600:
        return f"{int(total_seconds // 60)} min ago"

    if total_seconds < 86400:
        return f"{int(total_seconds // 3600)} h ago"

    return format_time(dt)
