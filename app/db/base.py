"""
Import all models here to ensure they are registered with SQLAlchemy.
"""
# Import Base
from app.models.base import Base

# Import all models
from app.models.campaign import Campaign
from app.models.prospect import Prospect
from app.models.prospect_upload import ProspectUpload

# Base.metadata.create_all needs every model imported first
