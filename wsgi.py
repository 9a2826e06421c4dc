"""
Entry point cho gunicorn / flask CLI

    gunicorn -c gunicorn.conf.py wsgi:app
    flask --app wsgi run
"""
import os

from quizmaster import create_app, db
from quizmaster.config import config
from quizmaster.commands import ensure_admin

app = create_app(config[os.environ.get('FLASK_ENV', 'default')])

# Tạo bảng + admin mặc định khi khởi động (an toàn khi chạy lại)
with app.app_context():
    db.create_all()
    ensure_admin()


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', '5000')))
