"""
Entry point for the RxSafe backend.
Run with: python wsgi.py  (or: gunicorn wsgi:app)
"""

from app.main import create_app

app = create_app()

if __name__ == "__main__":
    app.run(host="127.0.0.1", port=3001, debug=app.config.get("DEBUG", False), threaded=True)
