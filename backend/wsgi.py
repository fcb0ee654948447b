# backend/wsgi.py
from genepos import create_app

app = create_app()
