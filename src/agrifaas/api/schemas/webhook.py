"""Payment webhook response schema."""

from typing import Literal

from pydantic import BaseModel, Field


class WebhookAck(BaseModel):
    """Body returned to the payment provider for every delivery."""

    status: Literal["success", "error"] = Field(description="Whether the delivery was accepted")
    message: str | None = Field(default=None, description="Reason, for rejected deliveries")

    model_config = {
        "json_schema_extra": {
            "example": {"status": "error", "message": "Invalid signature"},
        }
    }
