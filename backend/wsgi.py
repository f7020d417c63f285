# backend/wsgi.py
from shoptally import create_app

app = create_app()
