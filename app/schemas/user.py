from pydantic import BaseModel, EmailStr
from typing import Optional


# Public fields shown to the other party of a booking
class PartyProfile(BaseModel):
    id: int
    name: str
    email: EmailStr
    phone: Optional[str] = None
    profile_image: Optional[str] = None

    class Config:
        from_attributes = True


class ProviderProfile(PartyProfile):
    hourly_rate: Optional[float] = None
    avg_rating: float = 0
    rating_count: int = 0
