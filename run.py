# run.py
import os

from chatdesk import create_app

# Configuration is picked from FLASK_ENV; .env is loaded by chatdesk.config
app = create_app()

if __name__ == '__main__':
    # Development server only. Use Gunicorn in production (see wsgi.py).
    host = os.environ.get('FLASK_RUN_HOST', '127.0.0.1')
    port = int(os.environ.get('FLASK_RUN_PORT', 5000))
    app.run(host=host, port=port)
