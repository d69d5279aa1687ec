# remixtree/models/comment.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class CommentStatus(Enum):
    """댓글(이미지 편집 요청)의 생성 상태를 나타내는 Enum"""
    PENDING = "pending"         # 문서만 저장됨, 생성 공급자 호출 전
    GENERATING = "generating"   # 공급자에 작업이 접수됨 (fal_request_id 보유)
    COMPLETED = "completed"     # 결과 이미지 저장됨
    FAILED = "failed"           # 접수 실패 또는 생성 실패

    @property
    def is_terminal(self) -> bool:
        return self in (CommentStatus.COMPLETED, CommentStatus.FAILED)

    @property
    def is_in_flight(self) -> bool:
        return not self.is_terminal


# 허용되는 상태 전이. 종료 상태(completed/failed)에서 나가는 전이는 없습니다.
ALLOWED_TRANSITIONS = {
    CommentStatus.PENDING: {CommentStatus.GENERATING, CommentStatus.FAILED},
    CommentStatus.GENERATING: {CommentStatus.COMPLETED, CommentStatus.FAILED},
    CommentStatus.COMPLETED: set(),
    CommentStatus.FAILED: set(),
}

IN_FLIGHT_STATUSES = frozenset(s.value for s in CommentStatus if s.is_in_flight)


def can_transition(current: CommentStatus, target: CommentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


@dataclass
class Comment:
    """
    Firestore 'comments' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    comment_id는 fal.ai 작업과 콜백을 연결하는 correlation id로도 사용됩니다.
    """
    comment_id: str
    post_id: str
    user_id: str
    prompt: str
    source_image_url: str
    parent_id: Optional[str] = None  # None이면 게시물 원본 이미지를 편집하는 루트 댓글
    image_url: str = ""              # 생성 완료 전까지는 빈 문자열
    status: CommentStatus = CommentStatus.PENDING
    error: Optional[str] = None
    fal_request_id: Optional[str] = None
    likes_count: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
