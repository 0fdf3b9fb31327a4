"""
actlabs_hub

Control plane for per-user lab servers.

Responsibilities:
- Expose package version metadata.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
