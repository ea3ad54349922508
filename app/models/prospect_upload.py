# app/models/prospect_upload.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, LargeBinary, String

from app.models.base import Base, utc_now
from app.utils.ids import IDPrefix, generate_prefixed_id


class ProspectUpload(Base):
    """An uploaded prospect file awaiting column mapping, validation and import."""

    __tablename__ = "prospect_upload"

    id = Column(String, primary_key=True, index=True, default=lambda: generate_prefixed_id(IDPrefix.UPLOAD))

    # Tenant scope
    organisation_id = Column(String, nullable=False, index=True)
    campaign_id = Column(String, ForeignKey("campaign.id", ondelete="CASCADE"), nullable=False, index=True)

    # File information
    filename = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    file_content = Column(LargeBinary, nullable=False)
    row_count = Column(Integer, nullable=False, default=0)

    # Mapping state
    detected_columns = Column(JSON, nullable=True)  # List of normalized headers
    column_mappings = Column(JSON, nullable=True)   # Detected header -> canonical field

    uploaded_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
