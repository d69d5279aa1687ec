# remixtree/api/comments/routes.py
import logging
import threading
from flask import Blueprint, request, jsonify, Response, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from remixtree.api.comments.schemas import (
    CommentCreateSchema, CommentCreateWithPostSchema, CommentResponseSchema,
    CommentTreeNodeSchema, CommentFlatNodeSchema
)
from remixtree.api.posts.schemas import LikeToggleResponseSchema
from remixtree.core.exceptions import (
    NotFoundError, PermissionDeniedError, RequestValidationError, SourceNotReadyError, UnauthorizedError
)


comments_bp = Blueprint('comments_bp', __name__)

def dispatch_generation_in_background(app, comment: dict):
    """
    백그라운드에서 fal.ai 작업 접수를 처리하는 함수.
    요청/응답과 분리되어 실행되며, 결과는 웹훅으로 들어옵니다.
    """
    with app.app_context():
        comment_service = app.services['comments']
        try:
            comment_service.dispatch_generation(comment)
        except Exception as e:
            # dispatch_generation은 접수 실패를 failed 상태로 기록하므로, 여기까지 오는 건 저장소 오류입니다.
            logging.error(f"백그라운드 생성 접수 중 오류: {comment['comment_id']} - {e}", exc_info=True)


def _submit_comment(post_id: str, user_id: str, prompt: str, parent_id):
    """pending 댓글을 저장하고 설정에 따라 생성 요청을 즉시 또는 백그라운드로 보냅니다."""
    comment_service = current_app.services['comments']
    new_comment = comment_service.create_pending_comment(post_id, user_id, prompt, parent_id)

    if current_app.config.get('GENERATION_ASYNC_DISPATCH', True):
        app = current_app._get_current_object() # 실제 Flask app 객체를 가져옵니다.
        thread = threading.Thread(
            target=dispatch_generation_in_background,
            args=[app, new_comment]
        )
        thread.daemon = True
        thread.start()
        return jsonify(CommentResponseSchema().dump(new_comment)), 202

    dispatched = comment_service.dispatch_generation(new_comment)
    return jsonify(CommentResponseSchema().dump(dispatched)), 201


def _create_comment_response(post_id: str, data_loader):
    user_id = get_jwt_identity()
    try:
        data = data_loader()
        return _submit_comment(data.get('post_id', post_id), user_id, data['prompt'], data.get('parent_id'))
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except UnauthorizedError as e:
        return jsonify(e.to_dict()), e.status_code
    except RequestValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e: # 게시물 또는 부모 댓글이 없는 경우
        return jsonify({"error_code": "RESOURCE_NOT_FOUND", "message": str(e)}), 404
    except SourceNotReadyError as e:
        return jsonify(e.to_dict()), 409
    except Exception as e:
        logging.error(f"댓글 생성 중 오류 발생 (post_id: {post_id}): {e}", exc_info=True)
        return jsonify({"error_code": "COMMENT_CREATION_FAILED", "message": "댓글 생성 중 오류가 발생했습니다."}), 500


@comments_bp.route('/posts/<string:post_id>/comments', methods=['POST'])
@jwt_required()
def create_comment(post_id: str):
    """
    특정 게시물에 이미지 편집 댓글을 작성합니다.
    - parent_id가 있으면 부모 댓글의 결과 이미지를, 없으면 게시물 이미지를 편집합니다.
    - 비동기 접수 모드에서는 pending 상태로 202를, 동기 모드에서는 접수 결과와 함께 201을 반환합니다.
    """
    return _create_comment_response(post_id, lambda: CommentCreateSchema().load(request.get_json(silent=True)))


@comments_bp.route('/comments', methods=['POST'])
@jwt_required()
def create_comment_with_post():
    """본문에 post_id를 담아 댓글을 작성합니다. 동작은 create_comment와 같습니다."""
    return _create_comment_response(None, lambda: CommentCreateWithPostSchema().load(request.get_json(silent=True)))


@comments_bp.route('/posts/<string:post_id>/comments', methods=['GET'])
@jwt_required(optional=True)
def get_comments(post_id: str):
    """
    특정 게시물의 댓글 트리를 조회합니다.
    - tree: 중첩 트리, flattened: 전위 순회 목록(키보드 탐색용), total: 댓글 수
    - poll_interval_ms: 생성 중인 댓글이 있을 때만 값이 있으며, 클라이언트는 이 값이 null이 될 때까지 다시 조회합니다.
    """
    comment_service = current_app.services['comments']
    user_id = get_jwt_identity()
    try:
        result = comment_service.get_comment_tree(post_id, user_id)
        poll_interval_ms = current_app.config.get('COMMENT_POLL_INTERVAL_MS') if result['in_flight'] else None
        return jsonify({
            "tree": CommentTreeNodeSchema(many=True).dump(result['tree']),
            "flattened": CommentFlatNodeSchema(many=True).dump(result['flattened']),
            "total": result['total'],
            "poll_interval_ms": poll_interval_ms
        }), 200
    except NotFoundError as e:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"댓글 목록 조회 중 오류 발생 (post_id: {post_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "댓글 목록 조회 중 오류가 발생했습니다."}), 500


@comments_bp.route('/comments/<string:comment_id>', methods=['GET'])
@jwt_required(optional=True)
def get_comment(comment_id: str):
    """단일 댓글의 현재 상태를 조회합니다."""
    comment_service = current_app.services['comments']
    user_id = get_jwt_identity()
    try:
        comment = comment_service.get_comment(comment_id, user_id)
        return jsonify(CommentResponseSchema().dump(comment)), 200
    except NotFoundError as e:
        return jsonify({"error_code": "COMMENT_NOT_FOUND", "message": str(e)}), 404


@comments_bp.route('/comments/<string:comment_id>', methods=['DELETE'])
@jwt_required()
def delete_comment(comment_id: str):
    """
    특정 댓글을 삭제합니다. (작성자 본인만 가능)
    - 하위 댓글 전체와 그 좋아요도 함께 삭제됩니다.
    """
    comment_service = current_app.services['comments']
    user_id = get_jwt_identity()
    try:
        comment_service.delete_comment(comment_id, user_id)
        return Response(status=204)
    except PermissionDeniedError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error_code": "NOT_FOUND", "message": str(e)}), 404


@comments_bp.route('/comments/<string:comment_id>/like', methods=['POST'])
@jwt_required()
def toggle_comment_like(comment_id: str):
    """
    특정 댓글의 좋아요를 누르거나 취소합니다.
    """
    comment_service = current_app.services['comments']
    user_id = get_jwt_identity()
    try:
        result = comment_service.toggle_comment_like(comment_id, user_id)
        return jsonify(LikeToggleResponseSchema().dump(result)), 200
    except NotFoundError as e:
        return jsonify({"error_code": "COMMENT_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"댓글 좋아요 토글 실패 (comment_id: {comment_id}): {e}", exc_info=True)
        return jsonify({"error_code": "LIKE_TOGGLE_FAILED", "message": "좋아요 처리 중 오류가 발생했습니다."}), 500
