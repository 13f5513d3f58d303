import uuid

import pytest

from hopper.restaurants.service import (
    CreateRestaurantRequest,
    Restaurant,
    RestaurantError,
    RestaurantHour,
    RestaurantService,
    SearchRequest,
)


class FakeRepo:
    def __init__(self):
        self.restaurants = {}
        self.hours = []
        self.deleted_hours_for = []
        self.updated = []
        self.search_requests = []
        self.fail = set()

    def _check(self, name):
        if name in self.fail:
            raise RuntimeError(f"{name} broke")

    def create(self, restaurant):
        self._check("create")
        self.restaurants[restaurant.id] = restaurant

    def get_by_id(self, restaurant_id):
        self._check("get_by_id")
        try:
            return self.restaurants[restaurant_id]
        except KeyError:
            raise LookupError("not found") from None

    def list_by_region(self, region_id, limit, offset):
        matches = [r for r in self.restaurants.values() if r.region_id == region_id]
        return matches[offset : offset + limit]

    def list_by_owner(self, owner_id, limit, offset):
        matches = [r for r in self.restaurants.values() if r.owner_id == owner_id]
        return matches[offset : offset + limit]

    def update(self, restaurant):
        self._check("update")
        self.updated.append(restaurant)
        self.restaurants[restaurant.id] = restaurant

    def delete_hours(self, restaurant_id):
        self._check("delete_hours")
        self.deleted_hours_for.append(restaurant_id)
        self.hours = [h for h in self.hours if h.restaurant_id != restaurant_id]

    def create_hour(self, hour):
        self._check("create_hour")
        self.hours.append(hour)

    def list_hours(self, restaurant_id):
        return [h for h in self.hours if h.restaurant_id == restaurant_id]

    def search(self, request):
        self._check("search")
        self.search_requests.append(request)
        items = list(self.restaurants.values())
        return items[: request.limit], len(items)

    def get_rating_stats(self, restaurant_id):
        return {"total_reviews": 0, "restaurant": restaurant_id}


@pytest.fixture
def repo():
    return FakeRepo()


@pytest.fixture
def service(repo):
    return RestaurantService(repo)


def _request(name="Noodle Bar", region_id=None):
    return CreateRestaurantRequest(
        name=name,
        description="Hand-pulled noodles",
        cuisine_type="chinese",
        city="Springfield",
        region_id=region_id,
        latitude=1.5,
        longitude=2.5,
        email="owner@example.com",
        timezone="UTC",
    )


def test_create_restaurant_sets_defaults_and_stores(service, repo):
    owner = uuid.uuid4()
    region = uuid.uuid4()
    restaurant = service.create_restaurant(owner, _request(region_id=region))

    assert restaurant.owner_id == owner
    assert restaurant.region_id == region
    assert restaurant.name == "Noodle Bar"
    assert restaurant.currency_code == "USD"
    assert restaurant.is_active is True
    assert restaurant.is_approved is False
    assert repo.restaurants[restaurant.id] is restaurant


def test_create_restaurant_assigns_distinct_ids(service):
    owner = uuid.uuid4()
    first = service.create_restaurant(owner, _request())
    second = service.create_restaurant(owner, _request())
    assert first.id != second.id


def test_create_restaurant_wraps_storage_failure(service, repo):
    repo.fail.add("create")
    with pytest.raises(RestaurantError, match="failed to create restaurant"):
        service.create_restaurant(uuid.uuid4(), _request())


def test_get_restaurant_returns_stored(service):
    created = service.create_restaurant(uuid.uuid4(), _request())
    assert service.get_restaurant(created.id) is created


def test_get_restaurant_passes_through_errors(service):
    with pytest.raises(LookupError):
        service.get_restaurant(uuid.uuid4())


def test_list_in_region_and_by_owner(service):
    owner = uuid.uuid4()
    region = uuid.uuid4()
    a = service.create_restaurant(owner, _request("A", region))
    b = service.create_restaurant(owner, _request("B", uuid.uuid4()))
    assert service.list_restaurants_in_region(region, 50, 0) == [a]
    assert service.list_owner_restaurants(owner, 50, 0) == [a, b]
    assert service.list_owner_restaurants(owner, 50, 1) == [b]


def test_update_restaurant_by_owner(service, repo):
    owner = uuid.uuid4()
    region = uuid.uuid4()
    created = service.create_restaurant(owner, _request(region_id=region))
    change = CreateRestaurantRequest(name="Renamed", city="Shelbyville", region_id=uuid.uuid4())

    updated = service.update_restaurant(created.id, owner, change)

    assert updated.name == "Renamed"
    assert updated.city == "Shelbyville"
    assert updated.latitude is None
    # The region is not among the editable fields.
    assert updated.region_id == region
    assert repo.updated == [updated]


def test_update_restaurant_rejects_other_owner(service, repo):
    created = service.create_restaurant(uuid.uuid4(), _request())
    with pytest.raises(RestaurantError, match="restaurant does not belong to owner"):
        service.update_restaurant(created.id, uuid.uuid4(), _request("Other"))
    assert repo.updated == []
    assert created.name == "Noodle Bar"


def test_update_restaurant_missing(service):
    with pytest.raises(RestaurantError, match="failed to get restaurant"):
        service.update_restaurant(uuid.uuid4(), uuid.uuid4(), _request())


def test_update_restaurant_wraps_update_failure(service, repo):
    owner = uuid.uuid4()
    created = service.create_restaurant(owner, _request())
    repo.fail.add("update")
    with pytest.raises(RestaurantError, match="failed to update restaurant"):
        service.update_restaurant(created.id, owner, _request())


def test_set_restaurant_hours_replaces_existing(service, repo):
    restaurant_id = uuid.uuid4()
    service.set_restaurant_hours(restaurant_id, [RestaurantHour(day_of_week=1)])
    new_hours = [
        RestaurantHour(day_of_week=2, open_time="09:00", close_time="17:00"),
        RestaurantHour(day_of_week=3, is_closed=True),
    ]
    service.set_restaurant_hours(restaurant_id, new_hours)

    listed = service.get_restaurant_hours(restaurant_id)
    assert [h.day_of_week for h in listed] == [2, 3]
    assert all(h.restaurant_id == restaurant_id for h in listed)
    assert repo.deleted_hours_for == [restaurant_id, restaurant_id]


def test_set_restaurant_hours_delete_failure(service, repo):
    repo.fail.add("delete_hours")
    with pytest.raises(RestaurantError, match="failed to delete existing hours"):
        service.set_restaurant_hours(uuid.uuid4(), [RestaurantHour()])
    assert repo.hours == []


def test_set_restaurant_hours_create_failure(service, repo):
    repo.fail.add("create_hour")
    with pytest.raises(RestaurantError, match="failed to create hour"):
        service.set_restaurant_hours(uuid.uuid4(), [RestaurantHour()])


def test_search_fills_defaults(service, repo):
    service.create_restaurant(uuid.uuid4(), _request())
    request = SearchRequest()
    response = service.search_restaurants(request)

    assert request.sort_by == "name"
    assert request.sort_order == "asc"
    assert request.limit == 20
    assert response.total == 1
    assert len(response.restaurants) == 1
    assert repo.search_requests == [request]


def test_search_caps_limit_and_keeps_given_values(service):
    request = SearchRequest(sort_by="rating", sort_order="desc", limit=500, offset=7)
    service.search_restaurants(request)
    assert request.limit == 100
    assert request.sort_by == "rating"
    assert request.sort_order == "desc"
    assert request.offset == 7


def test_search_keeps_limit_within_range(service):
    request = SearchRequest(limit=35)
    service.search_restaurants(request)
    assert request.limit == 35


def test_search_wraps_failure(service, repo):
    repo.fail.add("search")
    with pytest.raises(RestaurantError, match="failed to search restaurants"):
        service.search_restaurants(SearchRequest())


def test_rating_stats_pass_through(service):
    restaurant_id = uuid.uuid4()
    stats = service.get_restaurant_rating_stats(restaurant_id)
    assert stats == {"total_reviews": 0, "restaurant": restaurant_id}


def test_restaurant_defaults():
    restaurant = Restaurant(id=uuid.uuid4(), owner_id=uuid.uuid4(), name="X")
    assert restaurant.approved_at is None
    assert restaurant.latitude is None
    assert restaurant.is_approved is False