# backend/wsgi.py
# Entry point for `flask run` / gunicorn: FLASK_APP=wsgi.py
from counterpos import create_app

app = create_app()
