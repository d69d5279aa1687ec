# remixtree/api/comments/services.py

import logging
import uuid
from dataclasses import asdict
from typing import Optional, Dict, Any, List

from firebase_admin import firestore

from remixtree.api.comments.tree import build_tree, flatten, collect_subtree_ids
from remixtree.core.exceptions import (
    NotFoundError, PermissionDeniedError, RequestValidationError,
    SourceNotReadyError, UnauthorizedError, UpstreamFailureError
)
from remixtree.models.comment import Comment, CommentStatus, can_transition
from remixtree.services.like_service import LikeLedger
from remixtree.utils.datetime_utils import DateTimeUtils

UNKNOWN_GENERATION_ERROR = "Unknown error during generation"
GENERATION_TIMEOUT_ERROR = "Generation timed out"


def _first_image_url(images) -> Optional[str]:
    """결과 목록의 첫 이미지 URL. 형식이 맞지 않으면 None (= 생성 실패로 처리)."""
    if not images or not isinstance(images, list):
        return None
    first = images[0]
    if not isinstance(first, dict):
        return None
    url = first.get('url')
    return url if isinstance(url, str) and url else None


class CommentService:
    """
    댓글(= 이미지 편집 요청) 관련 비즈니스 로직을 담당하는 서비스 클래스.

    댓글 하나의 생명주기:
        pending -> generating -> completed | failed
    - pending 문서는 공급자 호출 전에 먼저 저장되어, 호출이 실패해도 사용자의 입력이 남습니다.
    - 공급자 접수 자체가 실패하면 generating을 건너뛰고 바로 failed가 됩니다.
    - completed/failed는 종료 상태로, 중복 콜백이 와도 다시 전이하지 않습니다.
    """
    BATCH_LIMIT = 500

    def __init__(self, post_service, fal_service, db=None, generation_timeout_seconds: int = 0):
        self.db = db or firestore.client()
        self.comments_ref = self.db.collection('comments')
        self.post_service = post_service
        self.fal_service = fal_service
        self.generation_timeout_seconds = generation_timeout_seconds
        self.likes = LikeLedger(self.db, 'comments', 'comment_likes', 'comment_id')

    # ------------------------------------------------------------------
    # 원본 이미지 결정
    # ------------------------------------------------------------------
    def resolve_source_image(self, post_id: str, parent_id: Optional[str] = None) -> str:
        """
        생성에 사용할 원본 이미지 URL을 결정합니다.
        - parent_id가 없으면 게시물의 원본 이미지
        - parent_id가 있으면 부모 댓글의 생성 결과 이미지
        """
        if not parent_id:
            post = self.post_service.find_post(post_id)
            if post is None:
                raise NotFoundError("댓글을 작성할 게시물이 존재하지 않습니다.")
            return post.get('image_url', '')

        parent = self.find_comment(parent_id)
        if parent is None:
            raise NotFoundError("부모 댓글을 찾을 수 없습니다.")
        if parent.get('post_id') != post_id:
            raise RequestValidationError("부모 댓글이 같은 게시물에 속해 있지 않습니다.")
        if parent.get('status') != CommentStatus.COMPLETED.value or not parent.get('image_url'):
            raise SourceNotReadyError("부모 댓글의 이미지가 아직 생성되지 않았습니다.")
        return parent['image_url']

    # ------------------------------------------------------------------
    # 생성 요청 (submit)
    # ------------------------------------------------------------------
    def create_pending_comment(self, post_id: str, user_id: Optional[str], prompt: str,
                               parent_id: Optional[str] = None) -> Dict[str, Any]:
        """원본 이미지를 결정하고 pending 상태의 댓글을 저장합니다. 공급자는 호출하지 않습니다."""
        if not user_id:
            raise UnauthorizedError("로그인이 필요합니다.")
        if not prompt or not prompt.strip():
            raise RequestValidationError("편집 프롬프트는 필수입니다.")
        if not post_id:
            raise RequestValidationError("게시물 ID는 필수입니다.")

        source_image_url = self.resolve_source_image(post_id, parent_id)

        now = DateTimeUtils.now()
        comment_id = str(uuid.uuid4())
        new_comment = Comment(
            comment_id=comment_id,
            post_id=post_id,
            user_id=user_id,
            prompt=prompt.strip(),
            source_image_url=source_image_url,
            parent_id=parent_id or None,
            created_at=now,
            updated_at=now
        )
        comment_dict = asdict(new_comment)
        # Enum 멤버를 문자열 값으로 변환하여 저장
        comment_dict['status'] = new_comment.status.value

        self.comments_ref.document(comment_id).set(comment_dict)
        logging.info(f"댓글 생성 요청 저장됨 (comment_id: {comment_id}, post_id: {post_id}, parent_id: {parent_id})")
        return comment_dict

    def dispatch_generation(self, comment: Dict[str, Any]) -> Dict[str, Any]:
        """
        pending 댓글을 fal.ai에 접수합니다.
        - 접수 성공: fal_request_id 저장 후 generating
        - 접수 실패: 에러 메시지와 함께 바로 failed
        :return: 전이 이후 저장된 댓글
        """
        comment_id = comment['comment_id']
        try:
            result = self.fal_service.submit_image_edit(
                prompt=comment['prompt'],
                source_image_url=comment['source_image_url'],
                correlation_id=comment_id
            )
        except UpstreamFailureError as e:
            logging.error(f"이미지 생성 접수 실패 (comment_id: {comment_id}): {e}")
            return self._transition_or_current(comment_id, CommentStatus.FAILED, {'error': e.message or str(e)})
        except Exception as e:
            logging.error(f"이미지 생성 접수 중 예상치 못한 오류 (comment_id: {comment_id}): {e}", exc_info=True)
            return self._transition_or_current(comment_id, CommentStatus.FAILED,
                                               {'error': f"Generation request failed: {e}"})

        return self._transition_or_current(comment_id, CommentStatus.GENERATING,
                                           {'fal_request_id': result['job_id']})

    def submit(self, post_id: str, user_id: Optional[str], prompt: str,
               parent_id: Optional[str] = None) -> Dict[str, Any]:
        """pending 저장과 공급자 접수를 한 번에 처리합니다. 반환 시점의 상태는 generating 또는 failed입니다."""
        comment = self.create_pending_comment(post_id, user_id, prompt, parent_id)
        return self.dispatch_generation(comment)

    # ------------------------------------------------------------------
    # 공급자 콜백
    # ------------------------------------------------------------------
    def find_comment_for_callback(self, request_id: Optional[str],
                                  correlation_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """웹훅 URL의 correlation_id(댓글 ID)를 우선 사용하고, 없으면 fal request_id로 찾습니다."""
        if correlation_id:
            comment = self.find_comment(correlation_id)
            if comment is not None:
                stored_request_id = comment.get('fal_request_id')
                if request_id and stored_request_id and stored_request_id != request_id:
                    logging.warning(f"콜백 request_id 불일치 (comment_id: {correlation_id}, "
                                    f"stored: {stored_request_id}, received: {request_id})")
                return comment

        if not request_id:
            return None

        query = self.comments_ref.where('fal_request_id', '==', request_id).limit(1).stream()
        doc = next(iter(query), None)
        if doc is not None:
            return doc.to_dict()
        # request_id 자체가 correlation id로 전달된 경우
        return self.find_comment(request_id)

    def handle_callback(self, request_id: Optional[str], status: str, images: Optional[List[Dict[str, Any]]] = None,
                        error: Optional[str] = None, correlation_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        fal.ai 웹훅 결과를 댓글 상태로 반영합니다.
        :return: 반영 이후의 댓글. 대상 댓글이 없으면(삭제된 경우 등) None.
        """
        comment = self.find_comment_for_callback(request_id, correlation_id)
        if comment is None:
            logging.warning(f"콜백 대상 댓글을 찾을 수 없어 무시합니다. (request_id: {request_id}, correlation_id: {correlation_id})")
            return None

        comment_id = comment['comment_id']
        if CommentStatus(comment['status']).is_terminal:
            logging.info(f"이미 종료된 댓글에 대한 중복 콜백 무시 (comment_id: {comment_id}, status: {comment['status']})")
            return comment

        first_image_url = _first_image_url(images)

        updates: Dict[str, Any] = {}
        if request_id and not comment.get('fal_request_id'):
            updates['fal_request_id'] = request_id

        if comment['status'] == CommentStatus.PENDING.value:
            # 접수 응답보다 콜백이 먼저 도착한 경우. generating을 거쳐 종료 상태로 보냅니다.
            self._transition(comment_id, CommentStatus.GENERATING, dict(updates))

        if status == 'OK' and first_image_url:
            updates.update({'image_url': first_image_url, 'error': None})
            target = CommentStatus.COMPLETED
            logging.info(f"이미지 생성 성공 (comment_id: {comment_id})")
        else:
            updates['error'] = error or UNKNOWN_GENERATION_ERROR
            target = CommentStatus.FAILED
            logging.error(f"이미지 생성 실패 (comment_id: {comment_id}): {updates['error']}")

        return self._transition_or_current(comment_id, target, updates)

    # ------------------------------------------------------------------
    # 상태 전이
    # ------------------------------------------------------------------
    def _transition(self, comment_id: str, target: CommentStatus, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        트랜잭션 안에서 현재 상태를 읽고 허용된 전이일 때만 기록합니다.
        읽은 뒤 다른 쓰기(예: 동시에 도착한 콜백)가 끼어들면 트랜잭션이 재시도되어 새 상태로 다시 판단합니다.
        :return: 기록된 댓글, 허용되지 않거나 댓글이 없으면 None
        """
        comment_ref = self.comments_ref.document(comment_id)
        transaction = self.db.transaction()

        @firestore.transactional
        def _transition_in_transaction(transaction, comment_ref, target, updates):
            snapshot = comment_ref.get(transaction=transaction)
            if not snapshot.exists:
                return None, False
            current = CommentStatus(snapshot.to_dict().get('status'))
            if not can_transition(current, target):
                return current, False

            data = dict(updates)
            data['status'] = target.value
            data['updated_at'] = DateTimeUtils.now()
            transaction.update(comment_ref, data)
            return current, True

        current, applied = _transition_in_transaction(transaction, comment_ref, target, updates)
        if current is None:
            logging.warning(f"상태 전이 대상 댓글이 없습니다. (comment_id: {comment_id}, target: {target.value})")
            return None
        if not applied:
            logging.info(f"허용되지 않는 상태 전이 무시 (comment_id: {comment_id}, {current.value} -> {target.value})")
            return None

        logging.info(f"댓글 상태 전이 (comment_id: {comment_id}): {current.value} -> {target.value}")
        return comment_ref.get().to_dict()

    def _transition_or_current(self, comment_id: str, target: CommentStatus, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        updated = self._transition(comment_id, target, updates)
        if updated is not None:
            return updated
        return self.find_comment(comment_id)

    def expire_stale_generations(self, comments: List[Dict[str, Any]]) -> int:
        """
        pending/generating 상태로 제한 시간을 넘긴 댓글을 failed로 정리합니다.
        목록 조회 시 호출되며 comments 안의 항목을 갱신된 값으로 바꿉니다.
        :return: 정리한 댓글 수
        """
        if not self.generation_timeout_seconds:
            return 0

        expired = 0
        for index, comment in enumerate(comments):
            if CommentStatus(comment['status']).is_terminal:
                continue
            elapsed = DateTimeUtils.seconds_since(comment.get('created_at'))
            if elapsed is None or elapsed <= self.generation_timeout_seconds:
                continue
            updated = self._transition(comment['comment_id'], CommentStatus.FAILED, {'error': GENERATION_TIMEOUT_ERROR})
            if updated is not None:
                comments[index] = updated
                expired += 1
        if expired:
            logging.warning(f"제한 시간을 넘긴 생성 작업 {expired}건을 실패 처리했습니다.")
        return expired

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------
    def find_comment(self, comment_id: str) -> Optional[Dict[str, Any]]:
        doc = self.comments_ref.document(comment_id).get()
        return doc.to_dict() if doc.exists else None

    def get_comment(self, comment_id: str, current_user_id: Optional[str] = None) -> Dict[str, Any]:
        comment = self.find_comment(comment_id)
        if comment is None:
            raise NotFoundError("댓글을 찾을 수 없습니다.")
        comment['is_liked'] = self.likes.has_liked(comment_id, current_user_id)
        return comment

    def list_comments(self, post_id: str, current_user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """특정 게시물의 전체 댓글을 작성 시간 오름차순으로 조회합니다."""
        query = self.comments_ref.where('post_id', '==', post_id).order_by('created_at')
        comments = [doc.to_dict() for doc in query.stream()]
        self.expire_stale_generations(comments)

        liked_comment_ids = self.likes.liked_ids(current_user_id, [c['comment_id'] for c in comments])
        for comment in comments:
            comment['is_liked'] = comment['comment_id'] in liked_comment_ids
        return comments

    def get_comment_tree(self, post_id: str, current_user_id: Optional[str] = None) -> Dict[str, Any]:
        """목록 응답용 {tree, flattened, total, in_flight}를 만듭니다."""
        if self.post_service.find_post(post_id) is None:
            raise NotFoundError("게시물을 찾을 수 없습니다.")

        comments = self.list_comments(post_id, current_user_id)
        forest = build_tree(comments)
        return {
            "tree": [node.to_dict() for node in forest],
            "flattened": [node.to_flat_dict() for node in flatten(forest)],
            "total": len(comments),
            "in_flight": any(CommentStatus(c['status']).is_in_flight for c in comments),
        }

    # ------------------------------------------------------------------
    # 삭제 / 좋아요
    # ------------------------------------------------------------------
    def delete_comment(self, comment_id: str, requester_id: Optional[str]) -> List[str]:
        """
        댓글과 그 하위 댓글 전체, 그리고 삭제되는 모든 댓글의 좋아요를 함께 삭제합니다. (작성자 본인만 가능)
        :return: 삭제된 댓글 ID 목록
        """
        comment = self.find_comment(comment_id)
        if comment is None:
            raise NotFoundError("삭제할 댓글이 없습니다.")
        if not requester_id or comment.get('user_id') != requester_id:
            raise PermissionDeniedError("댓글을 삭제할 권한이 없습니다.")

        siblings = self.comments_ref.where('post_id', '==', comment['post_id']).order_by('created_at').stream()
        subtree_ids = collect_subtree_ids([doc.to_dict() for doc in siblings], comment_id) or [comment_id]

        refs = [self.comments_ref.document(cid) for cid in subtree_ids]
        refs.extend(self.likes.like_refs_for(subtree_ids))

        try:
            for i in range(0, len(refs), self.BATCH_LIMIT):
                batch = self.db.batch()
                for ref in refs[i:i + self.BATCH_LIMIT]:
                    batch.delete(ref)
                batch.commit()
        except Exception as e:
            logging.error(f"댓글 삭제 실패 (comment_id: {comment_id}): {e}", exc_info=True)
            raise

        logging.info(f"댓글 삭제됨 (comment_id: {comment_id}, 하위 포함 {len(subtree_ids)}건)")
        return subtree_ids

    def toggle_comment_like(self, comment_id: str, user_id: str) -> Dict[str, Any]:
        return self.likes.toggle(comment_id, user_id)

    def has_liked(self, comment_id: str, user_id: Optional[str]) -> bool:
        return self.likes.has_liked(comment_id, user_id)
