# remixtree/core/exceptions.py
"""
서비스 계층에서 발생시키고 라우트/전역 핸들러에서 HTTP 응답으로 변환하는 도메인 예외 모음.
"""


class RemixError(Exception):
    """모든 도메인 예외의 기반 클래스. error_code와 HTTP 상태 코드를 함께 가집니다."""
    error_code = "INTERNAL_SERVER_ERROR"
    status_code = 500

    def __init__(self, message: str = "", error_code: str = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> dict:
        return {"error_code": self.error_code, "message": self.message}


class UnauthorizedError(RemixError):
    """인증된 사용자 정보 없이 변경 작업을 시도한 경우"""
    error_code = "UNAUTHORIZED"
    status_code = 401


class PermissionDeniedError(UnauthorizedError):
    """다른 사용자의 리소스를 변경하려고 한 경우"""
    error_code = "FORBIDDEN"
    status_code = 403


class NotFoundError(RemixError):
    error_code = "RESOURCE_NOT_FOUND"
    status_code = 404


class RequestValidationError(RemixError):
    """필수 입력 누락 등 요청 자체가 잘못된 경우 (marshmallow 검증 이후의 도메인 검증)"""
    error_code = "VALIDATION_ERROR"
    status_code = 400


class ConflictError(RemixError):
    error_code = "CONFLICT"
    status_code = 409


class SourceNotReadyError(ConflictError):
    """부모 댓글의 이미지 생성이 아직 끝나지 않아 원본 이미지로 쓸 수 없는 경우"""
    error_code = "SOURCE_NOT_READY"


class UpstreamFailureError(RemixError):
    """이미지 생성 공급자(fal.ai) 호출이 거절되었거나 실패한 경우"""
    error_code = "UPSTREAM_FAILURE"
    status_code = 502
