"""Pydantic schemas for webhook responses."""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class Attachment(BaseModel):
    """One attachment entry of a posted message."""
    model_config = ConfigDict(extra="ignore")

    url: str
    id: Optional[str] = None
    filename: Optional[str] = None
    size: Optional[int] = None


class WebhookMessage(BaseModel):
    """Message body returned by the webhook after a successful upload."""
    model_config = ConfigDict(extra="ignore")

    id: str
    attachments: List[Attachment]
