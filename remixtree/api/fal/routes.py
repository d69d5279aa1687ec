# remixtree/api/fal/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from marshmallow import ValidationError

from remixtree.api.comments.schemas import FalWebhookSchema


fal_bp = Blueprint('fal_bp', __name__)

INVALID_RESULT_PAYLOAD_ERROR = "Invalid result payload"


def _load_webhook_body(body):
    """
    웹훅 본문을 검증합니다.
    request_id/status는 올바른데 결과(payload)만 형식이 잘못된 경우에는 본문을 버리지 않고
    payload 오류 메시지와 함께 돌려줍니다. 같은 본문이 재전송되어도 결과는 같으므로 생성 실패로 기록합니다.
    :return: (data, payload_error)
    :raises ValidationError: request_id/status 등 본문 자체가 잘못된 경우
    """
    try:
        return FalWebhookSchema().load(body), None
    except ValidationError as err:
        valid_data = err.valid_data if isinstance(err.valid_data, dict) else {}
        payload_only = isinstance(err.messages, dict) and set(err.messages) == {'payload'}
        if not payload_only or not valid_data.get('request_id') or not valid_data.get('status'):
            raise
        logging.warning(f"웹훅 결과 형식 오류 (request_id: {valid_data['request_id']}): {err.messages['payload']}")
        data = dict(valid_data)
        data['payload'] = None
        return data, INVALID_RESULT_PAYLOAD_ERROR


@fal_bp.route('/webhook', methods=['POST'])
def receive_webhook():
    """
    fal.ai 작업 완료 콜백을 수신합니다.
    - 대상 댓글이 없으면(삭제된 댓글 등) 404를 반환하고 이벤트는 버립니다.
    - 대상 댓글을 찾은 뒤에는 반영 중 오류가 나더라도 200을 반환해 공급자의 재전송 반복을 막습니다.
    """
    fal_service = current_app.services['fal']
    comment_service = current_app.services['comments']

    if not fal_service.verify_webhook_token(request.args.get('token')):
        logging.warning("웹훅 토큰 검증 실패")
        return jsonify({"error_code": "INVALID_WEBHOOK_TOKEN", "message": "웹훅 토큰이 올바르지 않습니다."}), 401

    try:
        data, payload_error = _load_webhook_body(request.get_json(silent=True))
    except ValidationError as err:
        logging.warning(f"잘못된 웹훅 본문: {err.messages}")
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    request_id = data['request_id']
    correlation_id = request.args.get('correlation_id')
    try:
        comment = comment_service.find_comment_for_callback(request_id, correlation_id)
    except Exception as e:
        logging.error(f"웹훅 대상 댓글 조회 실패 (request_id: {request_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "웹훅 처리 중 오류가 발생했습니다."}), 500

    if comment is None:
        logging.error(f"웹훅 대상 댓글을 찾을 수 없습니다. (request_id: {request_id}, correlation_id: {correlation_id})")
        return jsonify({"error_code": "COMMENT_NOT_FOUND", "message": "Comment not found"}), 404

    images = (data.get('payload') or {}).get('images') or []
    try:
        comment_service.handle_callback(
            request_id=request_id,
            status=data['status'],
            images=images,
            error=payload_error or data.get('error'),
            correlation_id=comment['comment_id']
        )
    except Exception as e:
        logging.error(f"웹훅 결과 반영 실패 (comment_id: {comment['comment_id']}): {e}", exc_info=True)

    return jsonify({"success": True}), 200
