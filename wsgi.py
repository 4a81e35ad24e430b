"""WSGI entry point, e.g. ``gunicorn wsgi:app``."""
from stockcount.app import create_app

app = create_app()
