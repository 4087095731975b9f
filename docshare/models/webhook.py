"""
Team webhook endpoints. Each row subscribes one URL to a set of event triggers.
"""

from sqlalchemy import String, Text, JSON
from sqlalchemy.orm import Mapped, mapped_column

from .base import TeamBase


class Webhook(TeamBase):
    __tablename__ = "webhooks"

    name: Mapped[str] = mapped_column(String, nullable=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    secret: Mapped[str] = mapped_column(String, nullable=False)
    triggers: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    # ["document.created", "link.created", ...]
