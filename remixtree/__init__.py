# remixtree/__init__.py

# =====================================================================================
# 1. 환경 변수 로드 (가장 먼저 실행)
# =====================================================================================
from dotenv import load_dotenv
load_dotenv()

# =====================================================================================
# 2. 모듈 임포트 (Module Imports)
# =====================================================================================
import os
import logging
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from flask_jwt_extended import JWTManager
import firebase_admin
from firebase_admin import credentials, firestore

# - 설정 / 예외
from remixtree.core.config import config_by_name
from remixtree.core.exceptions import RemixError

# - API 블루프린트
from remixtree.api.posts.routes import posts_bp
from remixtree.api.comments.routes import comments_bp
from remixtree.api.fal.routes import fal_bp

# - 서비스 모듈
from remixtree.services.fal_service import FalService
from remixtree.api.posts.services import PostService
from remixtree.api.comments.services import CommentService


def create_app(config_name: str = None, db=None, fal_service: FalService = None):
    """
    Flask 애플리케이션 팩토리 함수.

    :param config_name: 'development' | 'testing' | 'production' (기본: FLASK_ENV)
    :param db: 주입할 Firestore 클라이언트. 없으면 Firebase 앱을 초기화하고 firestore.client()를 사용합니다.
    :param fal_service: 주입할 이미지 생성 공급자. 없으면 FalService를 생성해 init_app합니다.
    """
    # =====================================================================================
    # 3. Flask 앱 생성 및 기본 설정
    # =====================================================================================
    config_name = config_name or os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    app.json.ensure_ascii = False

    # =====================================================================================
    # 4. 확장 기능 및 외부 서비스 초기화
    # =====================================================================================
    JWTManager(app)

    if db is None:
        if not firebase_admin._apps:
            cred_path = app.config['FIREBASE_CREDENTIALS_PATH']
            if not cred_path or not os.path.exists(cred_path):
                raise FileNotFoundError(f"Firebase 인증 파일을 찾을 수 없습니다: {cred_path}")
            cred = credentials.Certificate(cred_path)
            firebase_admin.initialize_app(cred)
        db = firestore.client()

    # =====================================================================================
    # 5. 서비스 인스턴스 생성 및 'app.services'에 저장 (의존성 주입)
    # =====================================================================================
    app.services = {}

    if fal_service is None:
        try:
            fal_service = FalService()
            fal_service.init_app(app)
        except Exception as e:
            logging.error(f"Failed to initialize fal service: {e}")
            raise
    app.services['fal'] = fal_service

    app.services['posts'] = PostService(db=db)
    app.services['comments'] = CommentService(
        post_service=app.services['posts'],
        fal_service=app.services['fal'],
        db=db,
        generation_timeout_seconds=app.config.get('GENERATION_TIMEOUT_SECONDS', 0)
    )
    logging.info("Comment service initialized successfully")

    # =====================================================================================
    # 6. 블루프린트 등록
    # =====================================================================================
    app.register_blueprint(posts_bp, url_prefix='/api/posts')
    app.register_blueprint(comments_bp, url_prefix='/api')
    app.register_blueprint(fal_bp, url_prefix='/api/fal')

    # =====================================================================================
    # 7. 전역 에러 핸들러 설정
    # =====================================================================================
    @app.errorhandler(ValidationError)
    def handle_marshmallow_validation(err):
        response = {"error_code": "VALIDATION_ERROR", "details": err.messages}
        return jsonify(response), 400

    @app.errorhandler(RemixError)
    def handle_domain_error(err):
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(Exception)
    def handle_generic_exception(err):
        if isinstance(err, HTTPException):
            return err
        # 다른 핸들러에서 처리되지 않은 모든 예외를 여기서 처리
        logging.error(f"An unhandled exception occurred: {err}", exc_info=True)
        response = {"error_code": "INTERNAL_SERVER_ERROR", "message": "서버 내부에서 예상치 못한 오류가 발생했습니다."}
        return jsonify(response), 500

    # =====================================================================================
    # 8. 로깅 및 앱 반환
    # =====================================================================================
    if not app.debug:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]')

    logging.info(f"Flask app created for '{config_name}' environment.")

    return app
