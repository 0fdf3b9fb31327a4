"""
actlabs_hub.domain

Domain model package.

Responsibilities:
- Server record and status enum.
- Lifecycle event model.
"""

# Package marker.
