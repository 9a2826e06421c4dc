import os
from dotenv import load_dotenv

# Load biến môi trường từ file .env
load_dotenv()


class Config:
    """Cấu hình chung cho Quiz Master API"""

    # ==================== CƠ BẢN ====================
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # ==================== DATABASE ====================
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
                              'sqlite:///' + os.path.join(os.path.abspath(os.path.dirname(__file__)), '../quizmaster.db')

    # Fix lỗi với PostgreSQL URL kiểu cũ (Heroku/Render)
    if SQLALCHEMY_DATABASE_URI and SQLALCHEMY_DATABASE_URI.startswith('postgres://'):
        SQLALCHEMY_DATABASE_URI = SQLALCHEMY_DATABASE_URI.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_recycle': 300,  # Recycle connection sau 5 phút
        'pool_pre_ping': True,
    }

    # ==================== AUTH (TOKEN) ====================
    TOKEN_ALGORITHM = 'HS256'
    TOKEN_EXPIRES_HOURS = int(os.environ.get('TOKEN_EXPIRES_HOURS', '24'))
    LOGIN_LOCKOUT_MINUTES = 30

    # API dùng token, không dùng CSRF cookie
    WTF_CSRF_ENABLED = False

    # Admin mặc định (tạo lúc init-db / startup)
    ADMIN_USERNAME = os.environ.get('ADMIN_USERNAME') or 'admin'
    ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD') or 'admin123'
    ADMIN_FULL_NAME = os.environ.get('ADMIN_FULL_NAME') or 'Quiz Master Admin'

    # ==================== QUIZ DEFAULTS ====================
    DEFAULT_TIME_DURATION = '00:30'
    DEFAULT_PASS_PERCENTAGE = 60

    # ==================== CORS / TIMEZONE ====================
    CORS_ORIGINS = (os.environ.get('CORS_ORIGINS') or '*').split(',')
    APP_TIMEZONE = os.environ.get('APP_TIMEZONE') or 'UTC'

    # ==================== FLASK-COMPRESS ====================
    COMPRESS_MIMETYPES = ['application/json']
    COMPRESS_LEVEL = 6
    COMPRESS_MIN_SIZE = 500

    # ==================== PAGINATION ====================
    RECENT_SCORES_LIMIT = 5

    @staticmethod
    def init_app(app):
        """Khởi tạo logging cho app"""
        import logging
        from logging.handlers import RotatingFileHandler

        if not app.debug and not app.testing:
            # File handler với rotation để tránh log quá lớn
            if not os.path.exists('logs'):
                os.mkdir('logs')
            file_handler = RotatingFileHandler(
                'logs/quizmaster.log',
                maxBytes=1024 * 1024,  # 1MB
                backupCount=3
            )
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
            ))
            file_handler.setLevel(logging.INFO)
            app.logger.addHandler(file_handler)
            app.logger.setLevel(logging.INFO)
            app.logger.info('Quiz Master startup')


class DevelopmentConfig(Config):
    """Cấu hình cho môi trường development"""
    DEBUG = True
    SQLALCHEMY_ECHO = True  # Log tất cả SQL queries


class ProductionConfig(Config):
    """Cấu hình cho production"""
    DEBUG = False
    SQLALCHEMY_ECHO = False


class TestingConfig(Config):
    """Cấu hình cho pytest: SQLite in-memory"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SECRET_KEY = 'test-secret-key'
    ADMIN_PASSWORD = 'admin123'


# Chọn config dựa trên environment
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': Config
}
