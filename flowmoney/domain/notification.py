"""
Fan-out payload shared by push and persisted notifications
"""
from dataclasses import dataclass, field
from typing import Any


@dataclass
class NotificationPayload:
    """
    {title, body, icon?, tag?, data?}

    ``tag`` lets clients coalesce/replace notifications; ``data["type"]`` is the
    routing discriminator, the rest are entity ids.
    """
    title: str
    body: str
    icon: str | None = None
    tag: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> str:
        return str(self.data.get("type", "generic"))

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"title": self.title, "body": self.body}
        if self.icon:
            payload["icon"] = self.icon
        if self.tag:
            payload["tag"] = self.tag
        if self.data:
            payload["data"] = self.data
        return payload

    def string_data(self) -> dict[str, str]:
        """FCM data messages only accept string values."""
        result = {k: str(v) for k, v in self.data.items() if v is not None}
        if self.tag:
            result["tag"] = self.tag
        return result
