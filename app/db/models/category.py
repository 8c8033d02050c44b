# app/db/models/category.py
from sqlalchemy import Boolean, Column, Integer, String
from sqlalchemy.orm import relationship
from app.db.base import Base

class Category(Base):
    """A kind of service providers offer, e.g. Plumbing."""
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True)
    description = Column(String, nullable=True)
    icon = Column(String, nullable=True)

    # retired categories stay linked but no longer match searches
    is_active = Column(Boolean, nullable=False, default=True)

    providers = relationship(
        "User",
        secondary="provider_categories",
        back_populates="categories",
    )
