"""WSGI entry point: `gunicorn wsgi:app`."""
import os

from backoffice import create_app

# BACKOFFICE_CONFIG selects the config class, e.g. config.TestingConfig
app = create_app(os.getenv('BACKOFFICE_CONFIG', 'config.Config'))

if __name__ == "__main__":
    app.run(port=int(os.getenv('PORT', '5000')))
