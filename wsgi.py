"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi seed-admin --email ops@example.com --name "Ops Admin"
    gunicorn wsgi:app
"""

from app import create_app

app = create_app()
