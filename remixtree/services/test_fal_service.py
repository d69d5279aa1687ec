# remixtree/services/test_fal_service.py
"""
fal.ai 큐 접수 클라이언트 테스트 (HTTP 세션은 MagicMock으로 대체)
"""
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest
import requests
from flask import Flask

from remixtree.core.exceptions import UpstreamFailureError
from remixtree.services.fal_service import FalService


def _make_service(session, **overrides):
    app = Flask(__name__)
    app.config.update({
        'FAL_API_KEY': 'secret-key',
        'FAL_QUEUE_BASE_URL': 'https://queue.fal.run/',
        'FAL_MODEL_ENDPOINT': 'fal-ai/reve/edit',
        'PUBLIC_BASE_URL': 'https://remix.example.com/',
        'FAL_WEBHOOK_SECRET': None,
        'FAL_TIMEOUT_SECONDS': 15,
    })
    app.config.update(overrides)
    service = FalService(session=session)
    service.init_app(app)
    return service


def _response(status_code=200, payload=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.json.return_value = payload if payload is not None else {}
    response.text = text
    return response


def test_submit_posts_job_with_webhook_and_returns_job_id():
    session = MagicMock()
    session.post.return_value = _response(payload={"request_id": "req-123", "status": "IN_QUEUE"})
    service = _make_service(session)

    result = service.submit_image_edit("add rainbow", "https://cdn.example.com/x.png", correlation_id="comment-1")

    assert result == {"job_id": "req-123"}
    args, kwargs = session.post.call_args
    assert args[0] == "https://queue.fal.run/fal-ai/reve/edit"
    assert kwargs['headers']['Authorization'] == "Key secret-key"
    assert kwargs['json']['prompt'] == "add rainbow"
    assert kwargs['json']['image_url'] == "https://cdn.example.com/x.png"
    assert kwargs['timeout'] == 15

    webhook = urlparse(kwargs['params']['fal_webhook'])
    assert webhook.netloc == "remix.example.com"
    assert webhook.path == "/api/fal/webhook"
    assert parse_qs(webhook.query) == {"correlation_id": ["comment-1"]}


def test_submit_non_2xx_raises_upstream_failure():
    session = MagicMock()
    session.post.return_value = _response(status_code=422, text="invalid image_url")
    service = _make_service(session)

    with pytest.raises(UpstreamFailureError) as exc_info:
        service.submit_image_edit("add rainbow", "not-a-url", correlation_id="comment-1")

    assert "422" in exc_info.value.message


def test_submit_network_error_raises_upstream_failure():
    session = MagicMock()
    session.post.side_effect = requests.ConnectionError("connection refused")
    service = _make_service(session)

    with pytest.raises(UpstreamFailureError):
        service.submit_image_edit("add rainbow", "https://cdn.example.com/x.png", correlation_id="comment-1")


def test_submit_without_request_id_raises_upstream_failure():
    session = MagicMock()
    session.post.return_value = _response(payload={"status": "IN_QUEUE"})
    service = _make_service(session)

    with pytest.raises(UpstreamFailureError):
        service.submit_image_edit("add rainbow", "https://cdn.example.com/x.png", correlation_id="comment-1")


def test_init_app_requires_api_key():
    with pytest.raises(ValueError):
        _make_service(MagicMock(), FAL_API_KEY=None)


def test_submit_before_init_raises():
    with pytest.raises(RuntimeError):
        FalService(session=MagicMock()).submit_image_edit("p", "u", correlation_id="c")


def test_webhook_token_is_embedded_and_verified():
    service = _make_service(MagicMock(), FAL_WEBHOOK_SECRET="hook-secret")

    query = parse_qs(urlparse(service.build_webhook_url("comment-1")).query)

    assert query["token"] == ["hook-secret"]
    assert service.verify_webhook_token("hook-secret") is True
    assert service.verify_webhook_token("wrong") is False
    assert service.verify_webhook_token(None) is False


def test_webhook_token_not_required_without_secret():
    service = _make_service(MagicMock())

    assert service.verify_webhook_token(None) is True
