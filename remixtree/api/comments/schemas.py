# remixtree/api/comments/schemas.py
from marshmallow import Schema, fields, validate, EXCLUDE

from remixtree.models.comment import CommentStatus


class CommentCreateSchema(Schema):
    """
    POST /api/posts/{post_id}/comments
    이미지 편집 댓글 생성을 요청할 때의 데이터 형식을 정의하고 유효성을 검사합니다.
    """
    prompt = fields.Str(required=True, validate=validate.Length(min=1, max=1000, error="프롬프트는 1~1000자 사이여야 합니다."))
    parent_id = fields.Str(required=False, allow_none=True, load_default=None)


class CommentCreateWithPostSchema(CommentCreateSchema):
    """POST /api/comments: 게시물 ID를 본문으로 받는 형태"""
    post_id = fields.Str(required=True, validate=validate.Length(min=1), error_messages={"required": "게시물 ID는 필수입니다."})


class CommentResponseSchema(Schema):
    """
    댓글 정보 응답을 위한 최종 JSON 형식을 정의합니다.
    """
    comment_id = fields.Str(required=True)
    post_id = fields.Str(required=True)
    parent_id = fields.Str(allow_none=True)
    user_id = fields.Str(required=True)
    prompt = fields.Str(required=True)
    image_url = fields.Str(dump_default="")
    source_image_url = fields.Str(allow_none=True)
    status = fields.Str(required=True, validate=validate.OneOf([s.value for s in CommentStatus]))
    error = fields.Str(allow_none=True)
    fal_request_id = fields.Str(allow_none=True)
    likes_count = fields.Int(dump_default=0)
    created_at = fields.DateTime(required=True)
    updated_at = fields.DateTime(allow_none=True)

    # 서비스 로직에서 채워주는 응답 전용 필드
    is_liked = fields.Bool(dump_only=True, dump_default=False)


class CommentTreeNodeSchema(CommentResponseSchema):
    """트리 응답: 댓글 + 깊이 + 중첩된 자식 노드"""
    depth = fields.Int(required=True)
    children = fields.List(fields.Nested(lambda: CommentTreeNodeSchema()), dump_default=list)


class CommentFlatNodeSchema(CommentResponseSchema):
    """전위 순회로 펼친 목록의 항목: 자식은 개수만 포함"""
    depth = fields.Int(required=True)
    child_count = fields.Int(dump_default=0)


class FalImageSchema(Schema):
    """생성 결과 이미지 한 장. url 외의 필드(width, height, content_type 등)는 무시합니다."""
    class Meta:
        unknown = EXCLUDE

    url = fields.Str(required=True, validate=validate.Length(min=1))


class FalResultPayloadSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    images = fields.List(fields.Nested(FalImageSchema), load_default=list)


class FalWebhookSchema(Schema):
    """
    POST /api/fal/webhook
    fal.ai가 작업 완료 시 보내는 콜백 본문. 알 수 없는 필드는 무시합니다.
    """
    class Meta:
        unknown = EXCLUDE

    request_id = fields.Str(required=True)
    status = fields.Str(required=True, validate=validate.OneOf(["OK", "ERROR"]))
    payload = fields.Nested(FalResultPayloadSchema, allow_none=True, load_default=None)
    error = fields.Str(allow_none=True, load_default=None)
