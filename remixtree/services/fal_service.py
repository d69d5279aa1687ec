# remixtree/services/fal_service.py
import hmac
import logging
from typing import Optional, Dict, Any
from urllib.parse import urlencode

import requests
from flask import Flask

from remixtree.core.exceptions import UpstreamFailureError


class FalService:
    """
    fal.ai 큐 API 연동을 담당하는 서비스 클래스.
    이미지 편집 작업을 접수만 하고, 결과는 웹훅(/api/fal/webhook)으로 비동기 수신합니다.
    """

    WEBHOOK_PATH = '/api/fal/webhook'

    def __init__(self, session: Optional[requests.Session] = None):
        """
        설정값은 None으로 초기화합니다.
        실제 값은 init_app 메서드를 통해 설정됩니다.
        """
        self.session = session or requests.Session()
        self.api_key = None
        self.queue_base_url = None
        self.model_endpoint = None
        self.public_base_url = None
        self.webhook_secret = None
        self.timeout = None

    def init_app(self, app: Flask):
        """
        Flask 앱 초기화 과정에서 호출되어 fal.ai 접속 정보를 설정합니다.

        :param app: Flask 애플리케이션 객체
        """
        api_key = app.config.get('FAL_API_KEY')
        if not api_key:
            raise ValueError("FAL_API_KEY 설정이 .env 파일에 필요합니다.")

        self.api_key = api_key
        self.queue_base_url = app.config.get('FAL_QUEUE_BASE_URL', 'https://queue.fal.run').rstrip('/')
        self.model_endpoint = app.config.get('FAL_MODEL_ENDPOINT', 'fal-ai/reve/edit').strip('/')
        self.public_base_url = (app.config.get('PUBLIC_BASE_URL') or '').rstrip('/')
        self.webhook_secret = app.config.get('FAL_WEBHOOK_SECRET')
        self.timeout = app.config.get('FAL_TIMEOUT_SECONDS', 15)
        logging.info(f"FalService: fal.ai 큐 서비스가 초기화되었습니다. (model: {self.model_endpoint})")

    def build_webhook_url(self, correlation_id: str) -> str:
        """콜백이 어느 댓글에 대한 것인지 알 수 있도록 correlation_id를 웹훅 URL에 싣습니다."""
        query = {'correlation_id': correlation_id}
        if self.webhook_secret:
            query['token'] = self.webhook_secret
        return f"{self.public_base_url}{self.WEBHOOK_PATH}?{urlencode(query)}"

    def submit_image_edit(self, prompt: str, source_image_url: str, correlation_id: str) -> Dict[str, Any]:
        """
        원본 이미지와 편집 프롬프트로 이미지 편집 작업을 큐에 접수합니다.

        :param prompt: 사용자가 입력한 자연어 편집 요청
        :param source_image_url: 편집할 원본 이미지 URL (부모 댓글 결과 또는 게시물 이미지)
        :param correlation_id: 콜백을 원래 댓글과 연결하기 위한 ID (댓글 ID)
        :return: {"job_id": fal.ai request_id}
        :raises UpstreamFailureError: 네트워크 오류, 2xx가 아닌 응답, request_id 없는 응답
        """
        if not self.api_key:
            raise RuntimeError("FalService가 초기화되지 않았습니다. init_app을 먼저 호출해주세요.")

        url = f"{self.queue_base_url}/{self.model_endpoint}"
        params = {'fal_webhook': self.build_webhook_url(correlation_id)}
        headers = {
            'Authorization': f"Key {self.api_key}",
            'Content-Type': 'application/json',
        }
        body = {
            'prompt': prompt,
            'image_url': source_image_url,
            'num_images': 1,
            'output_format': 'png',
        }

        try:
            response = self.session.post(url, params=params, headers=headers, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            logging.error(f"fal.ai 작업 접수 요청 실패 (correlation_id: {correlation_id}): {e}", exc_info=True)
            raise UpstreamFailureError(f"fal.ai request failed: {e}")

        if not response.ok:
            logging.error(f"fal.ai 작업 접수 거절 (correlation_id: {correlation_id}): {response.status_code} {response.text}")
            raise UpstreamFailureError(f"fal.ai API error ({response.status_code}): {response.text}")

        try:
            job_id = response.json().get('request_id')
        except ValueError:
            job_id = None
        if not job_id:
            raise UpstreamFailureError("fal.ai response did not include a request_id")

        logging.info(f"fal.ai 작업 접수 완료 (correlation_id: {correlation_id}, request_id: {job_id})")
        return {"job_id": job_id}

    def verify_webhook_token(self, token: Optional[str]) -> bool:
        """웹훅 비밀값이 설정되지 않았으면 항상 통과합니다."""
        if not self.webhook_secret:
            return True
        return hmac.compare_digest(token or '', self.webhook_secret)
