"""
actlabs_hub.db.repositories

Repository package.

Responsibilities:
- SQL-backed implementations of the `ServerStore` and `EventRecorder` ports.
"""

# Package marker; repositories are imported directly from submodules.


# --- Module Notes -----------------------------------------------------------
# Repositories are intentionally thin; lifecycle decisions belong in services.
