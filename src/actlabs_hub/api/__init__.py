"""
actlabs_hub.api

HTTP API package.

Responsibilities:
- FastAPI app factory (`app.py`), dependency wiring (`deps.py`), and routers.
"""
