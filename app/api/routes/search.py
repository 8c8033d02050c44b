# app/api/routes/search.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.config import MAP_DEFAULT_RADIUS_KM, SEARCH_PAGE_SIZE
from app.db.base import get_db
from app.schemas.search import MapProvider, ProviderSearchItem, SearchResponse
from app.services.search_service import providers_for_map, search_providers

router = APIRouter(prefix="/search", tags=["search"])


@router.get("/providers", response_model=SearchResponse)
def search_provider_listing(
    category: Optional[str] = Query(None, description="Category name, case-insensitive"),
    location: Optional[str] = Query(None, description="City, partial match"),
    min_rating: Optional[float] = Query(None, ge=0.0, le=5.0),
    max_rate: Optional[float] = Query(None, ge=0.0, description="Upper bound for the hourly rate"),
    page: int = Query(1, ge=1),
    db: Session = Depends(get_db),
):
    """
    Active providers matching every given filter, best rated first.
    """
    total, rows = search_providers(
        db,
        category=category,
        location=location,
        min_rating=min_rating,
        max_rate=max_rate,
        page=page,
        per_page=SEARCH_PAGE_SIZE,
    )
    items = [ProviderSearchItem.model_validate(p) for p in rows]
    return SearchResponse(total=int(total or 0), page=page, per_page=SEARCH_PAGE_SIZE, items=items)


@router.get("/providers/map", response_model=List[MapProvider])
def provider_map(
    lat: Optional[float] = Query(None),
    lng: Optional[float] = Query(None),
    radius: float = Query(MAP_DEFAULT_RADIUS_KM, description="km"),
    category: Optional[str] = Query(None),
    min_rating: Optional[float] = Query(None, ge=0.0, le=5.0),
    max_rate: Optional[float] = Query(None, ge=0.0),
    db: Session = Depends(get_db),
):
    """
    Map pins for providers that have coordinates. With lat/lng only those
    within `radius` km are returned, nearest first.
    """
    rows = providers_for_map(
        db, lat=lat, lng=lng, radius_km=radius, category=category, min_rating=min_rating, max_rate=max_rate
    )
    return [
        MapProvider(
            id=p.id,
            name=p.name,
            lat=p.latitude,
            lng=p.longitude,
            city=p.city,
            rating=float(p.avg_rating or 0),
            rate=float(p.hourly_rate) if p.hourly_rate is not None else None,
            distance_km=round(distance, 2) if distance is not None else None,
        )
        for p, distance in rows
    ]
