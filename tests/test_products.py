"""Tests for the product catalog."""

import uuid

import httpx
import pytest

from cubord.exceptions import (
    BusinessRuleViolationError,
    ConflictError,
    ExternalServiceError,
    InsufficientPermissionError,
    NotFoundError,
    ValidationError,
)
from cubord.models import Product
from cubord.models.enums import ProductDataSource
from cubord.schemas.product import ProductCreate, ProductUpdate
from cubord.services.product_service import ProductService, is_valid_upc

NUTELLA_UPC = "3017620422003"
UNKNOWN_UPC = "0000000000017"


@pytest.fixture
def service(db, upc_api, settings):
    return ProductService(db, upc_api, settings=settings)


@pytest.fixture
def make_product(db):
    """Insert a product directly, bypassing enrichment."""

    def _make(upc: str, name: str = "Thing", **fields) -> Product:
        product = Product(upc=upc, name=name, **fields)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


# Creation and enrichment


def test_create_enriches_from_lookup(service, user):
    response = service.create_product(user, ProductCreate(upc=NUTELLA_UPC, name="hazelnut spread"))

    assert response.name == "Nutella"
    assert response.brand == "Ferrero"
    assert response.category == "Spreads"
    assert response.data_source == ProductDataSource.EXTERNAL_API
    assert response.requires_api_retry is False
    assert response.retry_attempts == 0


def test_create_keeps_manual_fields_when_lookup_finds_nothing(service, user):
    response = service.create_product(
        user, ProductCreate(upc=UNKNOWN_UPC, name="Mystery jam", brand="Nan", default_expiration_days=30)
    )

    assert response.name == "Mystery jam"
    assert response.brand == "Nan"
    assert response.default_expiration_days == 30
    assert response.data_source == ProductDataSource.MANUAL
    assert response.requires_api_retry is True
    assert response.retry_attempts == 1
    assert response.last_retry_attempt is not None


@pytest.mark.parametrize("failure", ["unavailable", "rate_limited", "garbage"])
def test_create_survives_lookup_failures(service, user, off, failure):
    """Test a failing lookup still saves the product for a later retry."""
    if failure == "unavailable":
        off.status_code = 503
    elif failure == "rate_limited":
        off.status_code = 429
    else:
        off.body = "<html>maintenance</html>"

    response = service.create_product(user, ProductCreate(upc=NUTELLA_UPC, name="Spread"))

    assert response.name == "Spread"
    assert response.data_source == ProductDataSource.MANUAL
    assert response.requires_api_retry is True
    assert response.retry_attempts == 0


def test_create_with_unprintable_upc_falls_back_to_manual(service, user, off):
    response = service.create_product(user, ProductCreate(upc="12345\n", name="Salt"))

    assert response.upc == "12345\n"
    assert response.name == "Salt"
    assert response.data_source == ProductDataSource.MANUAL
    assert response.requires_api_retry is True
    assert off.requests[0].url.raw_path.startswith(b"/api/v2/product/12345%0A?")


def test_create_survives_unexpected_lookup_error(service, user, off):
    off.error = httpx.InvalidURL("bad url")

    response = service.create_product(user, ProductCreate(upc="12345", name="Salt"))

    assert response.data_source == ProductDataSource.MANUAL
    assert response.requires_api_retry is True
    assert response.retry_attempts == 0


def test_create_does_not_take_data_from_a_prefix_upc(service, user, off):
    off.products["12"] = {"product_name": "Wrong", "brands": "Other"}

    response = service.create_product(user, ProductCreate(upc="12#34", name="Right"))

    assert response.name == "Right"
    assert response.brand is None
    assert response.data_source == ProductDataSource.MANUAL


def test_create_duplicate_upc_conflicts(db, service, user, off, make_product):
    make_product(NUTELLA_UPC)

    with pytest.raises(ConflictError):
        service.create_product(user, ProductCreate(upc=NUTELLA_UPC, name="Again"))
    assert off.requests == []
    assert db.query(Product).count() == 1


@pytest.mark.parametrize(
    "request_data",
    [
        None,
        ProductCreate(name="No code"),
        ProductCreate(upc="  ", name="Blank code"),
        ProductCreate(upc="123"),
        ProductCreate(upc="123", name=" "),
        ProductCreate(upc="123", name="Milk", default_expiration_days=0),
    ],
)
def test_create_validation(service, user, off, request_data):
    with pytest.raises(ValidationError):
        service.create_product(user, request_data)
    assert off.requests == []


# Reads


def test_get_product_and_by_upc(service, user, make_product):
    product = make_product("111", "Oat milk")

    assert service.get_product(user, product.id).name == "Oat milk"
    assert service.get_product_by_upc(user, "111").id == product.id


def test_get_missing_product(service, user):
    with pytest.raises(NotFoundError):
        service.get_product(user, uuid.uuid4())
    with pytest.raises(NotFoundError):
        service.get_product_by_upc(user, "999")


def test_search_and_filters(service, user, make_product):
    make_product("1", "Whole Milk", brand="Dairyland", category="Dairy")
    make_product("2", "Oat milk", brand="Oatly", category="Dairy alternatives")
    make_product("3", "Rye bread", brand="Dairyland", category="Bakery", data_source="EXTERNAL_API")

    assert [p.name for p in service.search_products_by_name(user, "MILK")] == ["Oat milk", "Whole Milk"]
    assert [p.name for p in service.get_products_by_category(user, "Dairy")] == ["Whole Milk"]
    assert [p.name for p in service.get_products_by_brand(user, "Dairyland")] == ["Rye bread", "Whole Milk"]
    assert [p.name for p in service.get_products_by_data_source(user, ProductDataSource.EXTERNAL_API)] == [
        "Rye bread"
    ]


def test_search_treats_wildcards_literally(service, user, make_product):
    make_product("1", "100% juice")
    make_product("2", "Apple juice")
    make_product("3", "snake_bites")
    make_product("4", "Snakebites")

    assert [p.name for p in service.search_products_by_name(user, "100%")] == ["100% juice"]
    assert [p.name for p in service.search_products_by_name(user, "e_")] == ["snake_bites"]


def test_search_requires_term(service, user):
    with pytest.raises(ValidationError):
        service.search_products_by_name(user, "")


def test_list_products_pages(service, user, make_product):
    for index, name in enumerate(["Cumin", "Anise", "Basil", "Dill", "Fennel"]):
        make_product(str(index), name)

    first = service.list_products(user, page=0, size=2)
    second = service.list_products(user, page=1, size=2, sort_by="name")
    last = service.list_products(user, page=0, size=2, descending=True)

    assert first.total == 5
    assert [p.name for p in first.items] == ["Anise", "Basil"]
    assert [p.name for p in second.items] == ["Cumin", "Dill"]
    assert [p.name for p in last.items] == ["Fennel", "Dill"]


@pytest.mark.parametrize(
    "page,size,sort_by",
    [(-1, 20, "name"), (0, 0, "name"), (0, 101, "name"), (0, 20, "retry_attempts")],
)
def test_list_products_rejects_bad_paging(service, user, page, size, sort_by):
    with pytest.raises(ValidationError):
        service.list_products(user, page=page, size=size, sort_by=sort_by)


def test_statistics(service, user, make_product):
    make_product("1", data_source="EXTERNAL_API")
    make_product("2", requires_api_retry=True)
    make_product("3")

    stats = service.get_product_statistics(user)

    assert (stats.total, stats.manual, stats.api, stats.requires_retry) == (3, 2, 1, 1)


def test_upc_availability(service, user, make_product):
    make_product("111")

    assert service.is_upc_available(user, "111") is False
    assert service.is_upc_available(user, "222") is True


@pytest.mark.parametrize(
    "upc,valid",
    [
        ("036000291452", True),
        ("3017620422003", True),
        (" 3017620422003 ", True),
        ("12345", False),
        ("30176204220031", False),
        ("3017620422003\n1", False),
        ("abc123456789", False),
        ("", False),
        (None, False),
    ],
)
def test_is_valid_upc(upc, valid):
    assert is_valid_upc(upc) is valid


def test_retry_listings(service, user, make_product):
    make_product("1", "Fresh", requires_api_retry=True, retry_attempts=0)
    make_product("2", "Worn out", requires_api_retry=True, retry_attempts=3)
    make_product("3", "Done")

    assert [p.name for p in service.get_products_requiring_retry(user)] == ["Fresh", "Worn out"]
    assert [p.name for p in service.get_products_eligible_for_retry(user, 3)] == ["Fresh"]


# Admin-only writes


def test_update_requires_admin_before_lookup(service, user):
    """Test a non-admin learns nothing about whether the product exists."""
    with pytest.raises(InsufficientPermissionError):
        service.update_product(user, uuid.uuid4(), ProductUpdate(name="New"))


def test_admin_update_missing_product(service, admin):
    with pytest.raises(NotFoundError):
        service.update_product(admin, uuid.uuid4(), ProductUpdate(name="New"))


def test_admin_patch_missing_product(service, admin):
    with pytest.raises(NotFoundError):
        service.patch_product(admin, uuid.uuid4(), {"name": "New"})


def test_admin_delete_missing_product(service, admin):
    with pytest.raises(NotFoundError):
        service.delete_product(admin, uuid.uuid4())


def test_admin_update(service, admin, make_product):
    product = make_product("1", "Milk", brand="Old")

    response = service.update_product(admin, product.id, ProductUpdate(name="Milk 2%", default_expiration_days=10))

    assert response.name == "Milk 2%"
    assert response.brand == "Old"
    assert response.default_expiration_days == 10


def test_patch_product(service, admin, make_product):
    product = make_product("1", "Milk", brand="Old", category="Dairy")

    response = service.patch_product(admin, product.id, {"brand": "New", "category": None, "unknown": 1})

    assert response.name == "Milk"
    assert response.brand == "New"
    assert response.category is None


@pytest.mark.parametrize(
    "patch",
    [{"name": ""}, {"name": 5}, {"brand": 5}, {"default_expiration_days": "ten"}, {"default_expiration_days": -1}],
)
def test_patch_rejects_invalid_values(service, admin, make_product, patch):
    product = make_product("1", "Milk")

    with pytest.raises(ValidationError):
        service.patch_product(admin, product.id, patch)


def test_patch_requires_admin(service, user, make_product):
    product = make_product("1", "Milk")

    with pytest.raises(InsufficientPermissionError):
        service.patch_product(user, product.id, {"name": "Cream"})


def test_delete_product(db, service, admin, user, make_product):
    product = make_product("1")

    with pytest.raises(InsufficientPermissionError):
        service.delete_product(user, product.id)
    service.delete_product(admin, product.id)

    assert db.query(Product).count() == 0


def test_bulk_import_skips_duplicates(service, admin, make_product):
    make_product(NUTELLA_UPC)
    requests = [
        ProductCreate(upc=NUTELLA_UPC, name="Duplicate"),
        ProductCreate(upc="200", name="Flour"),
        ProductCreate(upc="300", name=""),
    ]

    imported = service.bulk_import_products(admin, requests)

    assert [p.name for p in imported] == ["Flour"]


def test_bulk_import_survives_bad_entries(service, admin):
    requests = [ProductCreate(upc="12345\n", name="Salt"), None, ProductCreate(upc="200", name="Flour")]

    imported = service.bulk_import_products(admin, requests)

    assert [p.name for p in imported] == ["Salt", "Flour"]


def test_bulk_import_requires_admin(service, user):
    with pytest.raises(InsufficientPermissionError):
        service.bulk_import_products(user, [ProductCreate(upc="1", name="Salt")])


def test_bulk_delete(db, service, admin, make_product):
    first = make_product("1")
    make_product("2")

    assert service.bulk_delete_products(admin, [first.id, uuid.uuid4()]) == 1
    assert db.query(Product).count() == 1


# Enrichment retries


def test_retry_enriches_product(db, service, admin, make_product):
    product = make_product(NUTELLA_UPC, "Spread", requires_api_retry=True, retry_attempts=2)

    response = service.retry_api_enrichment(admin, product.id)

    assert response.name == "Nutella"
    assert response.data_source == ProductDataSource.EXTERNAL_API
    assert response.requires_api_retry is False
    assert response.retry_attempts == 0


def test_retry_not_found_counts_attempt(service, admin, make_product):
    product = make_product(UNKNOWN_UPC, "Jam", requires_api_retry=True, retry_attempts=1)

    response = service.retry_api_enrichment(admin, product.id)

    assert response.name == "Jam"
    assert response.requires_api_retry is True
    assert response.retry_attempts == 2
    assert response.last_retry_attempt is not None


def test_retry_failure_counts_attempt_and_raises(db, service, admin, off, make_product):
    product = make_product(NUTELLA_UPC, "Spread", requires_api_retry=True, retry_attempts=0)
    off.status_code = 503

    with pytest.raises(ExternalServiceError):
        service.retry_api_enrichment(admin, product.id)

    db.refresh(product)
    assert product.retry_attempts == 1
    assert product.requires_api_retry is True


def test_retry_ceiling(service, admin, off, make_product):
    product = make_product(NUTELLA_UPC, requires_api_retry=True, retry_attempts=3)

    with pytest.raises(BusinessRuleViolationError):
        service.retry_api_enrichment(admin, product.id)
    assert off.requests == []


def test_retry_requires_admin(service, user, make_product):
    product = make_product(NUTELLA_UPC, requires_api_retry=True)

    with pytest.raises(InsufficientPermissionError):
        service.retry_api_enrichment(user, product.id)


def test_batch_retry(db, service, admin, make_product):
    known = make_product(NUTELLA_UPC, "Spread", requires_api_retry=True, retry_attempts=1)
    unknown = make_product(UNKNOWN_UPC, "Jam", requires_api_retry=True, retry_attempts=0)
    exhausted = make_product("555", "Old", requires_api_retry=True, retry_attempts=3)

    assert service.process_batch_retry(admin, 3) == 1

    for product in (known, unknown, exhausted):
        db.refresh(product)
    assert known.data_source == ProductDataSource.EXTERNAL_API.value
    assert known.requires_api_retry is False
    assert unknown.retry_attempts == 1
    assert exhausted.retry_attempts == 3


def test_batch_retry_keeps_going_after_failures(db, service, off, make_product):
    first = make_product("1", requires_api_retry=True)
    second = make_product("2", requires_api_retry=True)
    off.status_code = 502

    assert service.retry_pending_products() == 0

    db.refresh(first)
    db.refresh(second)
    assert (first.retry_attempts, second.retry_attempts) == (1, 1)


def test_batch_retry_requires_admin(service, user):
    with pytest.raises(InsufficientPermissionError):
        service.process_batch_retry(user, 3)


# API


def test_product_api(client, auth_headers, admin_headers):
    """Test creating, reading and administering products over HTTP."""
    response = client.post(
        "/api/v1/products", headers=auth_headers, json={"upc": NUTELLA_UPC, "name": "spread"}
    )
    assert response.status_code == 201
    product = response.json()
    assert product["name"] == "Nutella"
    assert product["data_source"] == "EXTERNAL_API"

    response = client.get(f"/api/v1/products/upc/{NUTELLA_UPC}/available", headers=auth_headers)
    assert response.json() == {"upc": NUTELLA_UPC, "available": False, "valid_format": True}

    response = client.put(f"/api/v1/products/{product['id']}", headers=auth_headers, json={"name": "Mine"})
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "INSUFFICIENT_PERMISSION"

    response = client.patch(f"/api/v1/products/{product['id']}", headers=admin_headers, json={"brand": "Ferrero SpA"})
    assert response.status_code == 200
    assert response.json()["brand"] == "Ferrero SpA"

    response = client.get("/api/v1/products/statistics", headers=auth_headers)
    assert response.json() == {"total": 1, "manual": 0, "api": 1, "requires_retry": 0}

    response = client.get("/api/v1/products", headers=auth_headers, params={"size": 10})
    assert response.json()["total"] == 1

    response = client.delete(f"/api/v1/products/{product['id']}", headers=admin_headers)
    assert response.status_code == 204


def test_product_api_lookup(client, auth_headers, off):
    response = client.get(f"/api/v1/products/lookup/{NUTELLA_UPC}", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["brand"] == "Ferrero"
    assert response.json()["data_source"] == "EXTERNAL_API"

    off.status_code = 503
    response = client.get(f"/api/v1/products/lookup/{NUTELLA_UPC}", headers=auth_headers)
    assert response.status_code == 503
    assert response.json()["error"]["code"] == "SERVICE_UNAVAILABLE"


def test_product_api_batch_retry(client, admin_headers, make_product):
    make_product(NUTELLA_UPC, requires_api_retry=True)

    response = client.post("/api/v1/products/retry", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"enriched": 1}


def test_product_api_retry_ceiling(client, admin_headers, make_product):
    product = make_product(NUTELLA_UPC, requires_api_retry=True, retry_attempts=5)

    response = client.post(f"/api/v1/products/{product.id}/retry", headers=admin_headers)

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "BUSINESS_RULE_VIOLATION"


def test_product_api_rejects_bad_page_size(client, auth_headers):
    response = client.get("/api/v1/products", headers=auth_headers, params={"size": 0})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
