# backend/wsgi.py
from tokopos import create_app

app = create_app()
