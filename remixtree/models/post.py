# remixtree/models/post.py
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class Post:
    """
    Firestore 'posts' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    생성 후에는 likes_count 외에 변경되지 않습니다.
    """
    post_id: str
    user_id: str
    title: str
    image_url: str  # 댓글 트리의 루트가 되는 원본 이미지
    likes_count: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
