"""Provider discovery - attribute filters and haversine proximity search"""

import logging
from typing import Iterable, Optional

from sqlalchemy import and_, func
from sqlalchemy.orm import Query, Session

from app.core.config import MAP_CANDIDATE_LIMIT, MAP_DEFAULT_RADIUS_KM, MAP_RESULT_LIMIT, SEARCH_PAGE_SIZE
from app.core.constants import UserRole
from app.core.exceptions import ValidationError
from app.db.models.category import Category
from app.db.models.user import User
from app.services.geo import haversine_km, is_valid_coordinate

logger = logging.getLogger(__name__)


def find_nearby(
    center_lat: float,
    center_lng: float,
    radius_km: float,
    candidates: Iterable,
    limit: int = MAP_RESULT_LIMIT,
) -> list[tuple[object, float]]:
    """
    Return (candidate, distance_km) pairs within radius_km of the centre,
    nearest first. Ties keep input order. Candidates without both
    coordinates are skipped.
    """
    if not is_valid_coordinate(center_lat, center_lng):
        raise ValidationError("Latitude must be within [-90, 90] and longitude within [-180, 180]")
    if radius_km is None or radius_km <= 0:
        raise ValidationError("Radius must be a positive number of kilometres")

    matches = []
    for candidate in candidates:
        lat = getattr(candidate, "latitude", None)
        lng = getattr(candidate, "longitude", None)
        if lat is None or lng is None:
            continue
        distance = haversine_km(center_lat, center_lng, lat, lng)
        if distance <= radius_km:
            matches.append((candidate, distance))

    # sorted() is stable, equal distances stay in input order
    matches = sorted(matches, key=lambda pair: pair[1])
    return matches[:limit]


def _active_providers(db: Session) -> Query:
    return db.query(User).filter(User.role == UserRole.PROVIDER, User.is_active.is_(True))


def apply_provider_filters(
    query: Query,
    category: Optional[str] = None,
    min_rating: Optional[float] = None,
    max_rate: Optional[float] = None,
    location: Optional[str] = None,
) -> Query:
    """Independent filters, each one only narrows the candidate set."""
    if category:
        wanted = category.strip().lower()
        query = query.filter(
            User.categories.any(and_(func.lower(Category.name) == wanted, Category.is_active.is_(True)))
        )
    if min_rating is not None:
        query = query.filter(func.coalesce(User.avg_rating, 0) >= min_rating)
    if max_rate is not None:
        query = query.filter(User.hourly_rate.isnot(None), User.hourly_rate <= max_rate)
    if location:
        query = query.filter(User.city.ilike(f"%{location.strip()}%"))
    return query


def search_providers(
    db: Session,
    category: Optional[str] = None,
    location: Optional[str] = None,
    min_rating: Optional[float] = None,
    max_rate: Optional[float] = None,
    page: int = 1,
    per_page: int = SEARCH_PAGE_SIZE,
) -> tuple[int, list[User]]:
    if page < 1:
        raise ValidationError("page must be >= 1")

    base = apply_provider_filters(_active_providers(db), category, min_rating, max_rate, location)
    total = base.count()
    rows = (
        base.order_by(User.avg_rating.desc(), User.id.asc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    logger.debug(f"Provider search matched {total} providers")
    return total, rows


def providers_for_map(
    db: Session,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    radius_km: float = MAP_DEFAULT_RADIUS_KM,
    category: Optional[str] = None,
    min_rating: Optional[float] = None,
    max_rate: Optional[float] = None,
) -> list[tuple[User, Optional[float]]]:
    """
    Providers with coordinates for the map. With a centre point the result is
    proximity-filtered and ordered nearest first; without one it is simply the
    first MAP_RESULT_LIMIT providers that have coordinates.
    """
    if (lat is None) != (lng is None):
        raise ValidationError("lat and lng must be given together")

    query = apply_provider_filters(_active_providers(db), category, min_rating, max_rate)
    query = query.filter(User.latitude.isnot(None), User.longitude.isnot(None)).order_by(User.id.asc())

    if lat is None:
        return [(provider, None) for provider in query.limit(MAP_RESULT_LIMIT).all()]

    candidates = query.limit(MAP_CANDIDATE_LIMIT).all()
    return find_nearby(lat, lng, radius_km, candidates, limit=MAP_RESULT_LIMIT)
