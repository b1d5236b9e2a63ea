"""
WSGI Entry Point

Usage:
    # Production WSGI deployment
    gunicorn --config gunicorn.conf.py "app:application"

    # Development server
    export FLASK_ENV=development
    python app.py
"""

import os

from src.app import create_app

application = create_app(os.getenv('FLASK_ENV'))


if __name__ == '__main__':
    application.run(
        host=os.getenv('HOST', '0.0.0.0'),
        port=int(os.getenv('PORT', '5000')),
        debug=application.config.get('DEBUG', False)
    )
