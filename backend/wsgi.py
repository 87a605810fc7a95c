# backend/wsgi.py
from teranga import create_app

app = create_app()
