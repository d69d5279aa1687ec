# remixtree/api/posts/schemas.py
from marshmallow import Schema, fields, validate


class PostCreateSchema(Schema):
    """POST /api/posts 요청 본문의 유효성을 검사합니다."""
    title = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    image_url = fields.URL(required=True, error_messages={"required": "게시물 이미지 URL은 필수입니다."})


class PostResponseSchema(Schema):
    """게시물 정보 응답을 위한 최종 JSON 형식을 정의합니다."""
    post_id = fields.Str(dump_only=True)
    user_id = fields.Str(required=True)
    title = fields.Str(required=True)
    image_url = fields.Str(required=True)
    likes_count = fields.Int(required=True)
    created_at = fields.DateTime(required=True)
    is_liked = fields.Bool(dump_only=True, dump_default=False)


class LikeToggleResponseSchema(Schema):
    """게시물/댓글 좋아요 토글 응답"""
    liked = fields.Bool(required=True)
    likes_count = fields.Int(required=True)
