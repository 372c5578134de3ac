"""WSGI entrypoint for Gunicorn.

The event stream holds a connection open per player, so use threaded workers:
  gunicorn -k gthread -w 2 --threads 16 -b 0.0.0.0:8000 wsgi:app
"""

from tambola import create_app

app = create_app()
