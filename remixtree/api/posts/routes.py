# remixtree/api/posts/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from remixtree.api.posts.schemas import PostCreateSchema, PostResponseSchema, LikeToggleResponseSchema
from remixtree.core.exceptions import NotFoundError


posts_bp = Blueprint('posts_bp', __name__)

@posts_bp.route('/', methods=['POST'])
@jwt_required()
def create_post():
    """
    새로운 게시물을 생성합니다.
    - 업로드는 외부 스토리지가 처리하고, 여기서는 공개 이미지 URL만 받습니다.
    - 성공 시, 생성된 게시물 정보를 201 Created 상태 코드와 함께 반환합니다.
    """
    post_service = current_app.services['posts']
    user_id = get_jwt_identity()
    try:
        data = PostCreateSchema().load(request.get_json(silent=True))
        new_post = post_service.create_post(user_id, data['title'], data['image_url'])
        return jsonify(PostResponseSchema().dump(new_post)), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except Exception as e:
        logging.error(f"게시물 생성 중 오류 발생: {e}", exc_info=True)
        return jsonify({"error_code": "POST_CREATION_FAILED", "message": "게시물 생성 중 오류가 발생했습니다."}), 500

@posts_bp.route('/', methods=['GET'])
@jwt_required(optional=True) # 비로그인 사용자도 피드는 볼 수 있도록 허용
def get_posts():
    """
    게시물 피드를 조회합니다. sort=likes(기본, 인기순) | date(최신순)
    """
    post_service = current_app.services['posts']
    user_id = get_jwt_identity()
    sort = request.args.get('sort', 'likes', type=str)
    limit = request.args.get('limit', 20, type=int)
    offset = request.args.get('offset', 0, type=int)
    try:
        posts = post_service.list_posts(sort=sort, limit=limit, offset=offset, current_user_id=user_id)
        return jsonify({"posts": PostResponseSchema(many=True).dump(posts)}), 200
    except Exception as e:
        logging.error(f"게시물 목록 조회 중 오류 발생: {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "게시물 목록 조회 중 오류가 발생했습니다."}), 500


@posts_bp.route('/<string:post_id>', methods=['GET'])
@jwt_required(optional=True)
def get_post(post_id: str):
    """
    특정 게시물의 상세 정보를 조회합니다.
    """
    post_service = current_app.services['posts']
    user_id = get_jwt_identity()
    try:
        post = post_service.get_post(post_id, user_id)
        return jsonify(PostResponseSchema().dump(post)), 200
    except NotFoundError as e:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": str(e)}), 404


@posts_bp.route('/<string:post_id>/like', methods=['POST'])
@jwt_required()
def toggle_post_like(post_id: str):
    """
    특정 게시물의 좋아요를 누르거나 취소합니다.
    - likes_count는 토글 직후 다시 읽은 값이며, 동시 요청이 있으면 어긋날 수 있습니다.
    """
    post_service = current_app.services['posts']
    user_id = get_jwt_identity()
    try:
        result = post_service.toggle_post_like(post_id, user_id)
        return jsonify(LikeToggleResponseSchema().dump(result)), 200
    except NotFoundError as e:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"게시물 좋아요 토글 실패 (post_id: {post_id}): {e}", exc_info=True)
        return jsonify({"error_code": "LIKE_TOGGLE_FAILED", "message": "좋아요 처리 중 오류가 발생했습니다."}), 500


@posts_bp.route('/<string:post_id>/liked', methods=['GET'])
@jwt_required(optional=True)
def get_post_liked(post_id: str):
    """
    현재 사용자가 게시물에 좋아요를 눌렀는지 확인합니다. 비로그인 사용자는 항상 false.
    """
    post_service = current_app.services['posts']
    user_id = get_jwt_identity()
    return jsonify({"liked": post_service.has_liked(post_id, user_id)}), 200
