# remixtree/models/like.py
from dataclasses import dataclass, field
from datetime import datetime, timezone


def like_document_id(user_id: str, subject_id: str) -> str:
    """(사용자, 대상)당 좋아요 문서가 최대 하나만 존재하도록 결정적인 문서 ID를 만듭니다."""
    return f"{user_id}_{subject_id}"


@dataclass
class Like:
    """
    'post_likes' / 'comment_likes' 컬렉션의 문서 구조.
    subject_field('post_id' 또는 'comment_id')는 저장 시 subject_id를 대신합니다.
    """
    subject_id: str
    user_id: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_document(self, subject_field: str) -> dict:
        return {subject_field: self.subject_id, 'user_id': self.user_id, 'created_at': self.created_at}
