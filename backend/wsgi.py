# backend/wsgi.py
from commerce_ledger import create_app

app = create_app()
