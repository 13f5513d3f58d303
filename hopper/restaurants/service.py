"""Restaurant management: creation, updates, operating hours and search."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence

DEFAULT_CURRENCY = "USD"
DEFAULT_SORT_BY = "name"
DEFAULT_SORT_ORDER = "asc"
DEFAULT_SEARCH_LIMIT = 20
MAX_SEARCH_LIMIT = 100

_EDITABLE_FIELDS = (
    "name",
    "description",
    "cuisine_type",
    "street_address",
    "city",
    "state",
    "postal_code",
    "country_code",
    "latitude",
    "longitude",
    "phone",
    "email",
    "timezone",
)


@dataclass
class Restaurant:
    """A restaurant listed on the platform."""

    id: uuid.UUID
    owner_id: uuid.UUID
    name: str
    description: str = ""
    cuisine_type: str = ""
    street_address: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country_code: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone: str = ""
    email: str = ""
    region_id: Optional[uuid.UUID] = None
    currency_code: str = ""
    timezone: str = ""
    is_active: bool = False
    is_approved: bool = False
    approved_at: Optional[str] = None


@dataclass
class RestaurantHour:
    """Opening hours of a restaurant for one day of the week."""

    id: Optional[uuid.UUID] = None
    restaurant_id: Optional[uuid.UUID] = None
    day_of_week: int = 0
    open_time: str = ""
    close_time: str = ""
    is_closed: bool = False


@dataclass
class CreateRestaurantRequest:
    """Details supplied when creating or updating a restaurant."""

    name: str
    description: str = ""
    cuisine_type: str = ""
    street_address: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country_code: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone: str = ""
    email: str = ""
    region_id: Optional[uuid.UUID] = None
    timezone: str = ""


@dataclass
class SearchRequest:
    """Filters, ordering and paging for a restaurant search."""

    region_id: Optional[uuid.UUID] = None
    cuisine_type: Optional[str] = None
    search_query: Optional[str] = None
    min_rating: Optional[float] = None
    max_price: Optional[int] = None
    min_price: Optional[int] = None
    is_open_now: Optional[bool] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    max_distance_km: Optional[float] = None
    sort_by: str = ""
    sort_order: str = ""
    limit: int = 0
    offset: int = 0


@dataclass
class SearchResponse:
    """One page of search results and the total number of matches."""

    restaurants: list[Restaurant] = field(default_factory=list)
    total: int = 0


class RestaurantError(Exception):
    """Raised when a restaurant operation fails."""


class _RestaurantStore(Protocol):
    def create(self, restaurant: Restaurant) -> None: ...

    def get_by_id(self, restaurant_id: uuid.UUID) -> Restaurant: ...

    def list_by_region(self, region_id: uuid.UUID, limit: int, offset: int) -> list[Restaurant]: ...

    def list_by_owner(self, owner_id: uuid.UUID, limit: int, offset: int) -> list[Restaurant]: ...

    def update(self, restaurant: Restaurant) -> None: ...

    def delete_hours(self, restaurant_id: uuid.UUID) -> None: ...

    def create_hour(self, hour: RestaurantHour) -> None: ...

    def list_hours(self, restaurant_id: uuid.UUID) -> list[RestaurantHour]: ...

    def search(self, request: SearchRequest) -> tuple[list[Restaurant], int]: ...

    def get_rating_stats(self, restaurant_id: uuid.UUID) -> dict[str, Any]: ...


class RestaurantService:
    """Business operations on restaurants."""

    def __init__(self, repo: _RestaurantStore) -> None:
        self._repo = repo

    def create_restaurant(
        self, owner_id: uuid.UUID, request: CreateRestaurantRequest
    ) -> Restaurant:
        """Create an active, not yet approved restaurant owned by ``owner_id``."""
        restaurant = Restaurant(
            id=uuid.uuid4(),
            owner_id=owner_id,
            name=request.name,
            description=request.description,
            cuisine_type=request.cuisine_type,
            street_address=request.street_address,
            city=request.city,
            state=request.state,
            postal_code=request.postal_code,
            country_code=request.country_code,
            latitude=request.latitude,
            longitude=request.longitude,
            phone=request.phone,
            email=request.email,
            region_id=request.region_id,
            currency_code=DEFAULT_CURRENCY,
            timezone=request.timezone,
            is_active=True,
            is_approved=False,
        )
        try:
            self._repo.create(restaurant)
        except Exception as exc:
            raise RestaurantError(f"failed to create restaurant: {exc}") from exc
        return restaurant

    def get_restaurant(self, restaurant_id: uuid.UUID) -> Restaurant:
        """Return the restaurant with the given id."""
        return self._repo.get_by_id(restaurant_id)

    def list_restaurants_in_region(
        self, region_id: uuid.UUID, limit: int, offset: int
    ) -> list[Restaurant]:
        """Return one page of the restaurants listed in a region."""
        return self._repo.list_by_region(region_id, limit, offset)

    def list_owner_restaurants(
        self, owner_id: uuid.UUID, limit: int, offset: int
    ) -> list[Restaurant]:
        """Return one page of the restaurants owned by a user."""
        return self._repo.list_by_owner(owner_id, limit, offset)

    def update_restaurant(
        self,
        restaurant_id: uuid.UUID,
        owner_id: uuid.UUID,
        request: CreateRestaurantRequest,
    ) -> Restaurant:
        """Update a restaurant's details; only its owner may do so."""
        try:
            restaurant = self._repo.get_by_id(restaurant_id)
        except Exception as exc:
            raise RestaurantError(f"failed to get restaurant: {exc}") from exc
        if restaurant is None:
            raise RestaurantError(f"failed to get restaurant: {restaurant_id} not found")

        if restaurant.owner_id != owner_id:
            raise RestaurantError("restaurant does not belong to owner")

        for name in _EDITABLE_FIELDS:
            setattr(restaurant, name, getattr(request, name))

        try:
            self._repo.update(restaurant)
        except Exception as exc:
            raise RestaurantError(f"failed to update restaurant: {exc}") from exc
        return restaurant

    def set_restaurant_hours(
        self, restaurant_id: uuid.UUID, hours: Sequence[RestaurantHour]
    ) -> None:
        """Replace all operating hours of a restaurant with ``hours``."""
        try:
            self._repo.delete_hours(restaurant_id)
        except Exception as exc:
            raise RestaurantError(f"failed to delete existing hours: {exc}") from exc

        for hour in hours:
            hour.restaurant_id = restaurant_id
            try:
                self._repo.create_hour(hour)
            except Exception as exc:
                raise RestaurantError(f"failed to create hour: {exc}") from exc

    def get_restaurant_hours(self, restaurant_id: uuid.UUID) -> list[RestaurantHour]:
        """Return the operating hours of a restaurant."""
        return self._repo.list_hours(restaurant_id)

    def search_restaurants(self, request: SearchRequest) -> SearchResponse:
        """Search restaurants, filling in default ordering and paging."""
        if not request.sort_by:
            request.sort_by = DEFAULT_SORT_BY
        if not request.sort_order:
            request.sort_order = DEFAULT_SORT_ORDER
        if request.limit == 0:
            request.limit = DEFAULT_SEARCH_LIMIT
        if request.limit > MAX_SEARCH_LIMIT:
            request.limit = MAX_SEARCH_LIMIT

        try:
            restaurants, total = self._repo.search(request)
        except Exception as exc:
            raise RestaurantError(f"failed to search restaurants: {exc}") from exc
        return SearchResponse(restaurants=list(restaurants), total=total)

    def get_restaurant_rating_stats(self, restaurant_id: uuid.UUID) -> dict[str, Any]:
        """Return review statistics for a restaurant."""
        return self._repo.get_rating_stats(restaurant_id)