"""
Session Models

The identity provider is an external collaborator. The core only
consumes the resolved handle below and never mutates it.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SessionContext(BaseModel):
    """Handle to the authenticated identity for one signed-in session."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    user_id: str = Field(
        ...,
        min_length=1,
        description="Identifier every persistence call is scoped by"
    )
    display_name: str = Field(
        ...,
        min_length=1,
        description="Name shown to the user"
    )
    credential: Optional[str] = Field(
        default=None,
        repr=False,
        description="Durable-store credential handle (e.g. access token)"
    )


class UserSettings(BaseModel):
    """User-scoped settings persisted alongside the ledger."""
    model_config = ConfigDict(populate_by_name=True)

    persona_text: str = Field(
        default="",
        alias="personaText",
        max_length=2000,
        description="Personality override for the assistant"
    )
