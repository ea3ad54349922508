# app/models/prospect.py
from sqlalchemy import Column, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.models.base import Base
from app.utils.email import normalize_email
from app.utils.ids import IDPrefix, generate_prefixed_id


def _normalized_contact_email(context) -> str:
    return normalize_email(context.get_current_parameters()["contact_email"])


class Prospect(Base):
    """A company contact imported into a campaign."""

    __table_args__ = (
        UniqueConstraint(
            "organisation_id",
            "campaign_id",
            "contact_email_normalized",
            name="uq_prospect_org_campaign_email",
        ),
        Index("ix_prospect_org_email", "organisation_id", "contact_email_normalized"),
    )

    id = Column(String, primary_key=True, index=True, default=lambda: generate_prefixed_id(IDPrefix.PROSPECT))

    # Tenant scope
    organisation_id = Column(String, nullable=False, index=True)
    campaign_id = Column(String, ForeignKey("campaign.id", ondelete="CASCADE"), nullable=False, index=True)

    # Prospect data
    company_name = Column(String(200), nullable=False)
    contact_email = Column(String, nullable=False)  # As uploaded, trimmed
    contact_email_normalized = Column(String, nullable=False, default=_normalized_contact_email)
    contact_name = Column(String(100), nullable=True)
    website_url = Column(String, nullable=True)

    # Pipeline status
    status = Column(String, nullable=False, default="New", index=True)

    # Relationships
    campaign = relationship("Campaign", back_populates="prospects")
