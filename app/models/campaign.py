# app/models/campaign.py
from sqlalchemy import Column, String, Text
from sqlalchemy.orm import relationship

from app.models.base import Base
from app.utils.ids import IDPrefix, generate_prefixed_id


class Campaign(Base):
    """Outreach campaign that prospects are imported into."""

    id = Column(String, primary_key=True, index=True, default=lambda: generate_prefixed_id(IDPrefix.CAMPAIGN))

    # Tenant scope
    organisation_id = Column(String, nullable=False, index=True)

    # Basic campaign information
    name = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="draft", index=True)  # draft, active, paused, completed

    # Relationships
    prospects = relationship("Prospect", back_populates="campaign", cascade="all, delete-orphan")
