# backend/wsgi.py
from unitops import create_app

app = create_app()
