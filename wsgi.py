# wsgi.py
from socialconnect import create_app

application = create_app()
