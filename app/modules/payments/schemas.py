"""Payment webhook schemas."""

from pydantic import BaseModel


class WebhookAck(BaseModel):
    """Acknowledgement returned to the payment provider."""

    received: bool = True
