# remixtree/clients/comment_feed.py
"""
생성 중인 댓글의 완료를 감지하기 위한 폴링 클라이언트.

서버는 푸시 알림을 보내지 않으므로, 소비자는 화면의 댓글 중 하나라도 pending/generating이면
일정 간격으로 목록을 다시 조회하고, 모두 종료 상태가 되면 폴링을 멈춥니다.
서버가 응답하는 poll_interval_ms가 있으면 그 간격을 우선 사용합니다.
"""
import logging
import time
from typing import Any, Callable, Dict, Iterable, Iterator, Optional

import requests

from remixtree.models.comment import IN_FLIGHT_STATUSES

logger = logging.getLogger(__name__)


def has_in_flight(comments: Iterable[Dict[str, Any]]) -> bool:
    """pending 또는 generating 상태의 댓글이 하나라도 있는지 확인합니다."""
    return any(comment.get('status') in IN_FLIGHT_STATUSES for comment in comments)


class CommentFeedClient:
    """게시물 댓글 목록 API(/api/posts/<post_id>/comments)를 조회하고 폴링하는 클라이언트"""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None,
                 access_token: Optional[str] = None, default_interval: float = 3.0,
                 timeout: float = 10.0, sleep: Callable[[float], None] = time.sleep):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.default_interval = default_interval
        self.timeout = timeout
        self._sleep = sleep
        if access_token:
            self.session.headers['Authorization'] = f"Bearer {access_token}"

    def fetch(self, post_id: str) -> Dict[str, Any]:
        """댓글 트리 한 번 조회. 2xx가 아니면 requests.HTTPError를 그대로 올립니다."""
        response = self.session.get(f"{self.base_url}/api/posts/{post_id}/comments", timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def _next_interval(self, listing: Dict[str, Any], interval: Optional[float]) -> float:
        if interval is not None:
            return interval
        server_hint = listing.get('poll_interval_ms')
        if server_hint:
            return server_hint / 1000.0
        return self.default_interval

    def poll(self, post_id: str, interval: Optional[float] = None,
             max_rounds: Optional[int] = None) -> Iterator[Dict[str, Any]]:
        """
        목록을 조회해 yield하고, 생성 중인 댓글이 남아 있으면 잠시 쉬었다가 다시 조회합니다.
        max_rounds를 주지 않으면 모든 댓글이 종료 상태가 될 때까지 계속합니다.
        """
        rounds = 0
        while True:
            listing = self.fetch(post_id)
            rounds += 1
            yield listing

            if not has_in_flight(listing.get('flattened', [])):
                logger.info(f"생성 중인 댓글이 없어 폴링을 종료합니다. (post_id: {post_id}, rounds: {rounds})")
                return
            if max_rounds is not None and rounds >= max_rounds:
                logger.warning(f"최대 폴링 횟수에 도달했습니다. (post_id: {post_id}, rounds: {rounds})")
                return
            self._sleep(self._next_interval(listing, interval))

    def wait_until_settled(self, post_id: str, interval: Optional[float] = None,
                           max_rounds: Optional[int] = None) -> Dict[str, Any]:
        """poll을 끝까지 돌리고 마지막 목록을 반환합니다."""
        listing: Dict[str, Any] = {}
        for listing in self.poll(post_id, interval=interval, max_rounds=max_rounds):
            pass
        return listing
