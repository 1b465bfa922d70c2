"""SQLModel data models persisted by the plugin engine."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel


class SavedQuery(SQLModel, table=True):
    """A user-saved query bound to one plugin instance."""

    __tablename__ = "saved_queries"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, nullable=False)
    plugin_name: str = Field(index=True, max_length=64)
    instance_id: str = Field(index=True, max_length=255)
    name: str = Field(max_length=255)
    query: str = Field(sa_column=Column(Text, nullable=False))
    method: str = Field(default="GET", max_length=16)
    description: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "pluginName": self.plugin_name,
            "instanceId": self.instance_id,
            "name": self.name,
            "query": self.query,
            "method": self.method,
            "description": self.description,
            "createdAt": self.created_at.isoformat(),
        }
