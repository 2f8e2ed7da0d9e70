"""Product catalog API endpoints."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status

from cubord.api.dependencies import get_current_user, get_product_service, get_upc_api_service
from cubord.models.enums import ProductDataSource
from cubord.models.user import User
from cubord.schemas.product import (
    BatchRetryResponse,
    BulkDeleteRequest,
    BulkDeleteResponse,
    BulkImportRequest,
    LookupHealthResponse,
    ProductCreate,
    ProductPage,
    ProductResponse,
    ProductStatistics,
    ProductUpdate,
    UpcAvailabilityResponse,
    UpcLookupResponse,
)
from cubord.services.product_service import MAX_PAGE_SIZE, ProductService, is_valid_upc
from cubord.services.upc_api import UpcApiService

router = APIRouter(prefix="/api/v1/products", tags=["products"])


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
def create_product(
    product_data: ProductCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
):
    """Create a product, filling in details from Open Food Facts when available."""
    return service.create_product(current_user, product_data)


@router.get("", response_model=ProductPage)
def list_products(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
    page: Annotated[int, Query(ge=0)] = 0,
    size: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 20,
    sort_by: str = "name",
    descending: bool = False,
):
    return service.list_products(current_user, page, size, sort_by, descending)


@router.get("/search", response_model=list[ProductResponse])
def search_products(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
    q: Annotated[str, Query(description="Text matched against the product name")],
):
    return service.search_products_by_name(current_user, q)


@router.get("/category/{category}", response_model=list[ProductResponse])
def list_products_by_category(
    category: str,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
):
    return service.get_products_by_category(current_user, category)


@router.get("/brand/{brand}", response_model=list[ProductResponse])
def list_products_by_brand(
    brand: str,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
):
    return service.get_products_by_brand(current_user, brand)


@router.get("/data-source/{data_source}", response_model=list[ProductResponse])
def list_products_by_data_source(
    data_source: ProductDataSource,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
):
    return service.get_products_by_data_source(current_user, data_source)


@router.get("/statistics", response_model=ProductStatistics)
def get_product_statistics(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
):
    return service.get_product_statistics(current_user)


@router.get("/retry", response_model=list[ProductResponse])
def list_products_requiring_retry(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
):
    return service.get_products_requiring_retry(current_user)


@router.get("/retry/eligible", response_model=list[ProductResponse])
def list_products_eligible_for_retry(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
    max_attempts: Annotated[int | None, Query(ge=0)] = None,
):
    ceiling = service.max_retry_attempts if max_attempts is None else max_attempts
    return service.get_products_eligible_for_retry(current_user, ceiling)


@router.post("/retry", response_model=BatchRetryResponse)
def process_batch_retry(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
    max_attempts: Annotated[int | None, Query(ge=0)] = None,
):
    """Retry enrichment of every product still waiting for lookup data."""
    ceiling = service.max_retry_attempts if max_attempts is None else max_attempts
    return BatchRetryResponse(enriched=service.process_batch_retry(current_user, ceiling))


@router.post("/bulk", response_model=list[ProductResponse], status_code=status.HTTP_201_CREATED)
def bulk_import_products(
    request: BulkImportRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
):
    return service.bulk_import_products(current_user, request.products)


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
def bulk_delete_products(
    request: BulkDeleteRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
):
    return BulkDeleteResponse(deleted=service.bulk_delete_products(current_user, request.product_ids))


@router.get("/lookup/health", response_model=LookupHealthResponse)
def lookup_health(
    current_user: Annotated[User, Depends(get_current_user)],
    upc_api: Annotated[UpcApiService, Depends(get_upc_api_service)],
):
    """Report whether Open Food Facts currently answers lookups."""
    return LookupHealthResponse(available=upc_api.is_service_available())


@router.get("/lookup/{upc}", response_model=UpcLookupResponse)
def lookup_upc(
    upc: str,
    current_user: Annotated[User, Depends(get_current_user)],
    upc_api: Annotated[UpcApiService, Depends(get_upc_api_service)],
):
    """Look a barcode up without saving anything."""
    return upc_api.fetch_product_data(upc)


@router.get("/lookup/{upc}/detailed", response_model=UpcLookupResponse)
def lookup_upc_detailed(
    upc: str,
    current_user: Annotated[User, Depends(get_current_user)],
    upc_api: Annotated[UpcApiService, Depends(get_upc_api_service)],
):
    return upc_api.fetch_detailed_product_data(upc)


@router.get("/upc/{upc}", response_model=ProductResponse)
def get_product_by_upc(
    upc: str,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
):
    return service.get_product_by_upc(current_user, upc)


@router.get("/upc/{upc}/available", response_model=UpcAvailabilityResponse)
def check_upc_available(
    upc: str,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
):
    """Report whether a barcode is unused and has the 12 or 13 digit format."""
    return UpcAvailabilityResponse(
        upc=upc,
        available=service.is_upc_available(current_user, upc),
        valid_format=is_valid_upc(upc),
    )


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
):
    return service.get_product(current_user, product_id)


@router.put("/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: UUID,
    product_data: ProductUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
):
    """Update a product. Requires the ADMIN role."""
    return service.update_product(current_user, product_id, product_data)


@router.patch("/{product_id}", response_model=ProductResponse)
def patch_product(
    product_id: UUID,
    patch_data: Annotated[dict[str, Any], Body()],
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
):
    """Patch a product. Requires the ADMIN role."""
    return service.patch_product(current_user, product_id, patch_data)


@router.post("/{product_id}/retry", response_model=ProductResponse)
def retry_product_enrichment(
    product_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
):
    return service.retry_api_enrichment(current_user, product_id)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ProductService, Depends(get_product_service)],
):
    """Delete a product. Requires the ADMIN role."""
    service.delete_product(current_user, product_id)
