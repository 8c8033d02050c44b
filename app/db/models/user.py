# app/db/models/user.py
from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, Numeric, String, Table, func
from sqlalchemy.orm import relationship
from app.db.base import Base
from app.db.models.category import Category

# providers <-> categories they offer
provider_categories = Table(
    "provider_categories",
    Base.metadata,
    Column("provider_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default="customer", server_default="customer", index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    phone = Column(String, nullable=True)
    profile_image = Column(String, nullable=True)
    description = Column(String, nullable=True)

    # location, providers without coordinates never show up on the map
    city = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    hourly_rate = Column(Numeric(10, 2), nullable=True)

    # derived: recomputed from visible reviews
    avg_rating = Column(Float, nullable=False, default=0)
    rating_count = Column(Integer, nullable=False, default=0)

    # derived: atomically incremented on every completed settlement
    total_earnings = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # if this user is a provider, this relationship links to categories
    categories = relationship(
        Category,
        secondary=provider_categories,
        back_populates="providers",
        lazy="selectin"
    )
