from flask import Flask, jsonify, request
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_compress import Compress
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from quizmaster.config import Config
from dotenv import load_dotenv
import pytz

# Extensions
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
compress = Compress()
cors = CORS()


def create_app(config_class=Config):
    """Factory function tạo Flask app cho Quiz Master API"""
    app = Flask(__name__)
    load_dotenv()

    # ==================== CONFIG ====================
    app.config.from_object(config_class)
    app.config['APP_TZ'] = pytz.timezone(app.config.get('APP_TIMEZONE') or 'UTC')

    # ==================== INIT EXTENSIONS ====================
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    compress.init_app(app)
    cors.init_app(app, resources={r'/api/*': {'origins': app.config['CORS_ORIGINS']}})

    # ==================== FLASK-LOGIN ====================
    # Token auth: không dùng cookie session, user lấy từ header Authorization
    login_manager.session_protection = None
    from quizmaster.auth import tokens  # noqa: F401  (đăng ký request_loader)

    # ==================== REGISTER BLUEPRINTS ====================
    from quizmaster.main.routes import main_bp
    from quizmaster.auth.routes import auth_bp
    from quizmaster.admin.routes import admin_bp
    from quizmaster.quiz import quiz_bp, quiz_admin_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(admin_bp, url_prefix='/api')
    app.register_blueprint(quiz_bp, url_prefix='/api')
    app.register_blueprint(quiz_admin_bp, url_prefix='/api')

    # ==================== CLI COMMANDS ====================
    from quizmaster.commands import register_commands
    register_commands(app)

    # Logging, v.v.
    config_class.init_app(app)

    # ==================== ERROR HANDLERS ====================
    from quizmaster.utils import ApiError

    @app.errorhandler(ApiError)
    def api_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'message': error.description}), error.code

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        app.logger.error(f'Internal server error on {request.path}: {error}')
        return jsonify({'message': 'Internal server error'}), 500

    # ==================== AFTER/TEARDOWN ====================
    @app.after_request
    def after_request(response):
        """Thêm security headers cơ bản"""
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'SAMEORIGIN'
        response.headers['X-XSS-Protection'] = '1; mode=block'
        return response

    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Đảm bảo đóng session sau mỗi request"""
        db.session.remove()

    return app
