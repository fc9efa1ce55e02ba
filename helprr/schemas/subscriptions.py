"""Push subscription schemas."""

from pydantic import BaseModel, Field


class SubscriptionKeys(BaseModel):
    """Encryption material supplied by the browser's PushManager."""

    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class SubscriptionCreate(BaseModel):
    """Registration body for a device."""

    endpoint: str = Field(min_length=1)
    keys: SubscriptionKeys
    device_name: str | None = Field(default=None, max_length=255)


class PreferenceUpdate(BaseModel):
    """Toggle a single event type for one device."""

    event_type: str = Field(min_length=1, max_length=50)
    enabled: bool
