# app/schemas/search.py
from pydantic import BaseModel
from typing import Optional

class SimpleCategory(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True

class ProviderSearchItem(BaseModel):
    id: int
    name: str
    city: Optional[str] = None
    hourly_rate: Optional[float] = None
    avg_rating: float = 0
    rating_count: int = 0
    profile_image: Optional[str] = None
    categories: list[SimpleCategory] = []

    class Config:
        from_attributes = True

class SearchResponse(BaseModel):
    total: int
    page: int
    per_page: int
    items: list[ProviderSearchItem]

class MapProvider(BaseModel):
    id: int
    name: str
    lat: float
    lng: float
    city: Optional[str] = None
    rating: float = 0
    rate: Optional[float] = None
    distance_km: Optional[float] = None
