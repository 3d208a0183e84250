"""
asgi.py -- ASGI entry point for the employee portal.

Builds the app once from the process environment (.env + env vars). This is
the only place, besides main.py, that turns the environment into Settings.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import create_app
from core.config import get_settings

app = create_app(get_settings())
