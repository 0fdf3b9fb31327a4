"""
actlabs_hub.services

Service layer.

Responsibilities:
- Own server lifecycle decisions and persistence ordering.
- Keep routers and reconcilers thin.
"""
