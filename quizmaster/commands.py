"""
Flask CLI commands

    flask --app wsgi init-db
    flask --app wsgi create-admin --username admin --password secret
    flask --app wsgi import-quizzes quizmaster/data/sample_quizzes.json
"""
import click
from flask import current_app

from quizmaster import db


def ensure_admin(username=None, password=None, full_name=None):
    """
    Tạo tài khoản admin mặc định nếu chưa có

    Returns:
        tuple: (User, created)
    """
    from quizmaster.models import User, ROLE_ADMIN

    config = current_app.config
    username = username or config['ADMIN_USERNAME']

    user = User.query.filter_by(username=username).first()
    if user:
        return user, False

    user = User(
        username=username,
        full_name=full_name or config['ADMIN_FULL_NAME'],
        role=ROLE_ADMIN
    )
    user.set_password(password or config['ADMIN_PASSWORD'])
    db.session.add(user)
    db.session.commit()

    current_app.logger.info(f'Admin user {username} created')
    return user, True


def register_commands(app):
    @app.cli.command('init-db')
    def init_db():
        """Tạo bảng và admin mặc định"""
        db.create_all()
        user, created = ensure_admin()
        click.echo('✅ Database initialized')
        click.echo(f'{"✅ Created" if created else "ℹ️ Found"} admin user: {user.username}')

    @app.cli.command('create-admin')
    @click.option('--username', default=None, help='Username (mặc định ADMIN_USERNAME)')
    @click.option('--password', default=None, help='Password (mặc định ADMIN_PASSWORD)')
    @click.option('--full-name', default=None)
    def create_admin(username, password, full_name):
        """Tạo tài khoản admin"""
        user, created = ensure_admin(username, password, full_name)
        if created:
            click.echo(f'✅ Created admin user: {user.username}')
        else:
            click.echo(f'⚠️ User {user.username} already exists')

    @app.cli.command('import-quizzes')
    @click.argument('json_file', type=click.Path(exists=True, dir_okay=False))
    def import_quizzes(json_file):
        """Import môn/chương/quiz/câu hỏi từ file JSON"""
        from quizmaster.data.importer import QuizImporter

        importer = QuizImporter(json_file)
        stats = importer.run()
        click.echo('📊 Import summary:')
        for key, value in stats.items():
            click.echo(f'   - {key}: {value}')
