"""
actlabs_hub.domain.events

Operator-facing lifecycle events.

Responsibilities:
- Describe one deployment, destroy or failure occurrence as a typed record.
- Serialize with the wire field names operators read (`timeStamp`).
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

REPORTER = "actlabs-hub"


class Event(BaseModel):
    """Lifecycle event shown to operators (deployments, destroys, failures)."""

    type: Literal["Normal", "Warning"] = "Normal"
    reason: str
    message: str
    reporter: str = REPORTER
    object: str = ""
    timestamp: str = Field(default="", alias="timeStamp")

    model_config = {"populate_by_name": True}
