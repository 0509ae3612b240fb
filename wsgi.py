"""
WSGI entry point and Flask-Migrate / Alembic target.

Usage:
    flask --app wsgi seed-demo          # demo hierarchy + access tokens
    flask --app wsgi db migrate -m "description"
    flask --app wsgi db upgrade
    gunicorn wsgi:app
"""

from cith import create_app

app = create_app()
