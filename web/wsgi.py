"""WSGI entrypoint for serving the generated PAC.

Run from the web/ directory: `gunicorn -b 0.0.0.0:8080 wsgi:app`
"""

from app import app as app

# Common WSGI convention for other servers/tools.
application = app
