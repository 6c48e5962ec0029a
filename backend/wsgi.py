# backend/wsgi.py
from pasal import create_app

app = create_app()
