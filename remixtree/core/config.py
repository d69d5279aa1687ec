# remixtree/core/config.py

import os # 환경 변수를 읽기 위해 사용합니다.


def _env_bool(key: str, default: bool) -> bool:
    """'1', 'true', 'yes' 형태의 환경 변수를 bool 값으로 변환합니다."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """모든 환경 설정의 기반이 되는 공통 설정 클래스입니다."""
    # JWT 토큰 서명 키. 토큰 발급 자체는 외부 인증 서비스가 담당하고, 여기서는 검증만 합니다.
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')

    FIREBASE_CREDENTIALS_PATH = os.getenv('FIREBASE_CREDENTIALS_PATH')

    # --- fal.ai 이미지 생성 큐 ---
    FAL_API_KEY = os.getenv('FAL_API_KEY')
    FAL_QUEUE_BASE_URL = os.getenv('FAL_QUEUE_BASE_URL', 'https://queue.fal.run')
    FAL_MODEL_ENDPOINT = os.getenv('FAL_MODEL_ENDPOINT', 'fal-ai/reve/edit')
    FAL_TIMEOUT_SECONDS = float(os.getenv('FAL_TIMEOUT_SECONDS', '15'))
    # 웹훅 URL 조립에 사용되는 외부 공개 주소 (예: https://remix.example.com)
    PUBLIC_BASE_URL = os.getenv('PUBLIC_BASE_URL', 'http://localhost:5000')
    # 설정된 경우 웹훅 URL에 token 쿼리로 실려 가고, 콜백 수신 시 일치 여부를 검사합니다.
    FAL_WEBHOOK_SECRET = os.getenv('FAL_WEBHOOK_SECRET')

    # --- 댓글 생성 파이프라인 ---
    # True면 생성 요청을 백그라운드 Thread에서 보내고 즉시 202를 반환합니다.
    GENERATION_ASYNC_DISPATCH = _env_bool('GENERATION_ASYNC_DISPATCH', True)
    # pending/generating 상태로 이 시간(초)을 넘긴 댓글은 목록 조회 시 failed로 정리됩니다. 0이면 비활성화.
    GENERATION_TIMEOUT_SECONDS = int(os.getenv('GENERATION_TIMEOUT_SECONDS', '600'))
    # 생성 중인 댓글이 있을 때 클라이언트에 안내할 폴링 간격
    COMMENT_POLL_INTERVAL_MS = int(os.getenv('COMMENT_POLL_INTERVAL_MS', '3000'))


class DevelopmentConfig(Config):
    """개발 환경을 위한 설정 클래스입니다."""
    DEBUG = True
    FIREBASE_CREDENTIALS_PATH = os.getenv('DEV_FIREBASE_CREDENTIALS_PATH', Config.FIREBASE_CREDENTIALS_PATH)


class TestingConfig(Config):
    """테스트 환경을 위한 설정 클래스입니다."""
    TESTING = True
    DEBUG = False
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'remixtree-test-secret-key-0123456789')
    FIREBASE_CREDENTIALS_PATH = os.getenv('TEST_FIREBASE_CREDENTIALS_PATH')
    FAL_API_KEY = 'test-fal-key'
    PUBLIC_BASE_URL = 'http://testserver'
    FAL_WEBHOOK_SECRET = None
    # 테스트에서는 생성 요청을 요청 스레드 안에서 바로 처리합니다.
    GENERATION_ASYNC_DISPATCH = False


class ProductionConfig(Config):
    """운영 환경을 위한 설정 클래스입니다."""
    DEBUG = False


# FLASK_ENV 값에 따라 create_app에서 설정 클래스를 선택합니다.
config_by_name = dict(
    development=DevelopmentConfig,
    testing=TestingConfig,
    production=ProductionConfig
)
