# remixtree/services/like_service.py
import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from firebase_admin import firestore

from remixtree.core.exceptions import NotFoundError
from remixtree.models.like import Like, like_document_id


class LikeLedger:
    """
    (대상, 사용자)당 최대 하나의 좋아요를 보장하는 토글 장부. 게시물/댓글 좋아요가 함께 사용합니다.

    - 좋아요 문서 ID를 f"{user_id}_{subject_id}"로 고정해 중복 생성을 막습니다.
    - 대상 문서의 likes_count는 firestore.Increment로 증감하는 비정규화 카운터입니다.
      잠금이나 트랜잭션을 쓰지 않으므로 같은 문서에 대한 동시 토글은 마지막 쓰기가 이기고,
      응답의 likes_count는 다른 사용자의 거의 동시 토글을 반영하지 못할 수 있습니다.
    """
    CHUNK_SIZE = 30

    def __init__(self, db, subject_collection: str, likes_collection: str, subject_field: str):
        self.db = db
        self.subjects_ref = db.collection(subject_collection)
        self.likes_ref = db.collection(likes_collection)
        self.subject_field = subject_field

    def toggle(self, subject_id: str, user_id: str) -> Dict[str, Any]:
        """좋아요를 누르거나 취소하고, 변경 후 다시 읽은 likes_count를 함께 반환합니다."""
        subject_ref = self.subjects_ref.document(subject_id)
        if not subject_ref.get().exists:
            raise NotFoundError("좋아요를 누를 대상을 찾을 수 없습니다.")

        like_ref = self.likes_ref.document(like_document_id(user_id, subject_id))
        if like_ref.get().exists:
            like_ref.delete()
            subject_ref.update({'likes_count': firestore.Increment(-1)})
            liked = False
        else:
            like_ref.set(Like(subject_id=subject_id, user_id=user_id).to_document(self.subject_field))
            subject_ref.update({'likes_count': firestore.Increment(1)})
            liked = True

        snapshot = subject_ref.get()
        likes_count = (snapshot.to_dict() or {}).get('likes_count', 0) if snapshot.exists else 0
        logging.info(f"좋아요 토글 ({self.subject_field}={subject_id}, user_id={user_id}): liked={liked}, likes_count={likes_count}")
        return {"liked": liked, "likes_count": max(0, likes_count)}

    def has_liked(self, subject_id: str, user_id: Optional[str]) -> bool:
        """로그인하지 않은 사용자는 항상 False."""
        if not user_id:
            return False
        return self.likes_ref.document(like_document_id(user_id, subject_id)).get().exists

    def liked_ids(self, user_id: Optional[str], subject_ids: Iterable[str]) -> Set[str]:
        """주어진 대상 ID 목록 중 사용자가 좋아요한 ID 집합을 일괄 조회합니다."""
        subject_ids = list(subject_ids)
        if not user_id or not subject_ids:
            return set()

        liked: Set[str] = set()
        for i in range(0, len(subject_ids), self.CHUNK_SIZE):
            chunk_ids = subject_ids[i:i + self.CHUNK_SIZE]
            refs = [self.likes_ref.document(like_document_id(user_id, sid)) for sid in chunk_ids]
            for doc in self.db.get_all(refs):
                if doc.exists:
                    liked.add(doc.to_dict().get(self.subject_field))
        return liked

    def like_refs_for(self, subject_ids: List[str]) -> list:
        """대상들에 달린 모든 좋아요 문서의 참조 목록 (연쇄 삭제용)."""
        refs = []
        for i in range(0, len(subject_ids), self.CHUNK_SIZE):
            chunk_ids = subject_ids[i:i + self.CHUNK_SIZE]
            for doc in self.likes_ref.where(self.subject_field, 'in', chunk_ids).stream():
                refs.append(doc.reference)
        return refs
