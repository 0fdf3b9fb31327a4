"""
actlabs_hub.db

Persistence package (SQLAlchemy async).

Responsibilities:
- Provide ORM models, engine/session setup, and the store implementations
  behind `ServerStore` and `EventRecorder`.
"""

# Package marker.
