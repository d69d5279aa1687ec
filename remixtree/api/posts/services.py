# remixtree/api/posts/services.py
import logging
import uuid
from dataclasses import asdict
from typing import Optional, Dict, Any, List

from firebase_admin import firestore

from remixtree.core.exceptions import NotFoundError, RequestValidationError
from remixtree.models.post import Post
from remixtree.services.like_service import LikeLedger
from remixtree.utils.datetime_utils import DateTimeUtils


class PostService:
    """
    게시물 관련 비즈니스 로직을 담당하는 서비스 클래스.
    게시물은 댓글 트리의 루트 이미지를 제공하며, 생성 후에는 likes_count만 변경됩니다.
    """
    SORT_FIELDS = {'likes': 'likes_count', 'date': 'created_at'}

    def __init__(self, db=None):
        self.db = db or firestore.client()
        self.posts_ref = self.db.collection('posts')
        self.likes = LikeLedger(self.db, 'posts', 'post_likes', 'post_id')

    def create_post(self, user_id: str, title: str, image_url: str) -> Dict[str, Any]:
        """새로운 게시물을 생성하고 Firestore에 저장합니다."""
        if not title or not image_url:
            raise RequestValidationError("제목과 이미지 URL은 필수입니다.")

        post_id = str(uuid.uuid4())
        new_post = Post(post_id=post_id, user_id=user_id, title=title, image_url=image_url,
                        created_at=DateTimeUtils.now())
        post_dict = asdict(new_post)
        try:
            self.posts_ref.document(post_id).set(post_dict)
        except Exception as e:
            logging.error(f"게시물 생성 실패 (user_id: {user_id}): {e}", exc_info=True)
            raise
        logging.info(f"게시물 생성됨 (post_id: {post_id}) by user {user_id}")
        return post_dict

    def find_post(self, post_id: str) -> Optional[Dict[str, Any]]:
        doc = self.posts_ref.document(post_id).get()
        return doc.to_dict() if doc.exists else None

    def get_post(self, post_id: str, current_user_id: Optional[str] = None) -> Dict[str, Any]:
        post_data = self.find_post(post_id)
        if post_data is None:
            raise NotFoundError("게시물을 찾을 수 없습니다.")
        post_data['is_liked'] = self.likes.has_liked(post_id, current_user_id)
        return post_data

    def list_posts(self, sort: str = 'likes', limit: int = 20, offset: int = 0,
                   current_user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """인기순(likes) 또는 최신순(date)으로 게시물 목록을 조회합니다."""
        order_field = self.SORT_FIELDS.get(sort, 'likes_count')
        query = self.posts_ref.order_by(order_field, direction=firestore.Query.DESCENDING)
        if offset:
            query = query.offset(offset)
        posts = [doc.to_dict() for doc in query.limit(limit).stream()]

        liked_post_ids = self.likes.liked_ids(current_user_id, [p['post_id'] for p in posts])
        for post in posts:
            post['is_liked'] = post['post_id'] in liked_post_ids
        return posts

    def toggle_post_like(self, post_id: str, user_id: str) -> Dict[str, Any]:
        return self.likes.toggle(post_id, user_id)

    def has_liked(self, post_id: str, user_id: Optional[str]) -> bool:
        return self.likes.has_liked(post_id, user_id)

