"""WSGI entrypoint: ``gunicorn -c gunicorn.conf.py wsgi:app``."""

from authgate.factory import create_app

app = create_app()
