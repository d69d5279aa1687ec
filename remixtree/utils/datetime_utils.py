# remixtree/utils/datetime_utils.py
"""
프로젝트 전체에서 일관된 시간 처리를 위한 유틸리티 모듈

- 모든 시간은 UTC timezone-aware datetime으로 저장/비교합니다.
- Firestore에서 읽은 timestamp(DatetimeWithNanoseconds)도 그대로 받아 처리합니다.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional
from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)


class DateTimeUtils:
    """시간 처리를 위한 중앙화된 유틸리티 클래스"""

    @staticmethod
    def now() -> datetime:
        """현재 시간을 UTC timezone-aware datetime으로 반환"""
        return datetime.now(timezone.utc)

    @staticmethod
    def ensure_utc(dt: datetime) -> datetime:
        """timezone-naive면 UTC로 가정하고, aware면 UTC로 변환"""
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    @staticmethod
    def parse_iso_datetime(iso_string: str) -> datetime:
        """
        ISO 포맷 문자열을 datetime 객체로 파싱

        지원 포맷:
        - 2024-01-15T10:30:00Z
        - 2024-01-15T10:30:00+09:00
        - 2024-01-15T10:30:00.123456Z
        - 2024-01-15T10:30:00
        """
        try:
            if not iso_string:
                raise ValueError("빈 문자열은 파싱할 수 없습니다")

            if iso_string.endswith('Z'):
                iso_string = iso_string[:-1] + '+00:00'

            dt = dateutil_parser.isoparse(iso_string)
            return DateTimeUtils.ensure_utc(dt)

        except Exception as e:
            logger.error(f"ISO datetime 파싱 실패: {iso_string} - {e}")
            raise ValueError(f"잘못된 ISO 날짜 형식입니다: {iso_string}")

    @staticmethod
    def to_iso_string(dt: datetime) -> str:
        """datetime을 'Z' 접미사가 붙은 ISO 문자열로 변환"""
        return DateTimeUtils.ensure_utc(dt).isoformat().replace('+00:00', 'Z')

    @staticmethod
    def coerce(value: Any) -> Optional[datetime]:
        """
        저장소에서 읽은 시간 값을 UTC datetime으로 맞춥니다.
        문자열이면 ISO 파싱, datetime이면 UTC 정규화, 그 외(None 포함)는 None.
        """
        if isinstance(value, datetime):
            return DateTimeUtils.ensure_utc(value)
        if isinstance(value, str) and value:
            return DateTimeUtils.parse_iso_datetime(value)
        return None

    @staticmethod
    def seconds_since(value: Any, reference: Optional[datetime] = None) -> Optional[float]:
        """value 시점부터 reference(기본: 현재)까지 경과한 초. 시간 값을 해석할 수 없으면 None."""
        dt = DateTimeUtils.coerce(value)
        if dt is None:
            return None
        reference = DateTimeUtils.ensure_utc(reference) if reference else DateTimeUtils.now()
        return (reference - dt).total_seconds()


def to_iso(dt: datetime) -> str:
    """datetime을 ISO 문자열로 변환"""
    return DateTimeUtils.to_iso_string(dt)
