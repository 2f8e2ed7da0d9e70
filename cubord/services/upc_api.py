"""Product lookup by barcode against the Open Food Facts API."""

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import httpx

from cubord.config import Settings, get_settings
from cubord.exceptions import (
    ExternalServiceError,
    ParsingError,
    RateLimitExceededError,
    ServiceUnavailableError,
    ValidationError,
)
from cubord.models.enums import ProductDataSource

logger = logging.getLogger(__name__)

SERVICE_NAME = "Open Food Facts API"

NOT_FOUND_NAME = "Product not found"
UNKNOWN_NAME = "Unknown Product"

# Coca-Cola, known to exist in every Open Food Facts environment
HEALTH_CHECK_UPC = "737628064502"

BASIC_FIELDS = ["product_name", "brands", "categories", "generic_name"]
DETAILED_FIELDS = BASIC_FIELDS + [
    "nutrition_grades",
    "nutriscore_data",
    "nutriments",
    "ingredients_text",
    "allergens",
    "labels",
]


@dataclass
class UpcLookupResult:
    """Normalized product description returned by a lookup."""

    upc: str
    name: str
    brand: str | None
    category: str | None
    data_source: ProductDataSource
    requires_api_retry: bool
    retry_attempts: int
    last_retry_attempt: datetime | None = None
    nutrition_grade: str | None = None
    ingredients_text: str | None = None
    allergens: str | None = None
    labels: str | None = None

    @property
    def found(self) -> bool:
        """Check if the lookup matched a product upstream."""
        return not self.requires_api_retry


class UpcApiService:
    """Service for resolving UPC barcodes through Open Food Facts.

    Each call issues exactly one GET. Nothing is retried here: a lookup that
    finds nothing returns a placeholder flagged with ``requires_api_retry`` so
    that the caller can schedule another attempt.
    """

    def __init__(self, settings: Settings | None = None, client: httpx.Client | None = None) -> None:
        self.settings = settings or get_settings()
        self.client = client

    @property
    def base_url(self) -> str:
        return self.settings.openfoodfacts_url

    def fetch_product_data(self, upc: str | None) -> UpcLookupResult:
        """Fetch the basic product description for a UPC.

        Raises:
            ValidationError: UPC is None or blank
            ExternalServiceError: the API could not be reached or answered an error
            ParsingError: the API answered with a body that is not a JSON object
        """
        self._validate_upc(upc, "fetch_product_data")
        logger.debug(f"Fetching product data for UPC {upc} from {SERVICE_NAME}")

        response = self._request(upc, BASIC_FIELDS)
        return self._parse_response(response.text, upc, detailed=False)

    def fetch_detailed_product_data(self, upc: str | None) -> UpcLookupResult:
        """Fetch the product description plus nutrition and ingredient fields."""
        self._validate_upc(upc, "fetch_detailed_product_data")
        logger.debug(f"Fetching detailed product data for UPC {upc} from {SERVICE_NAME}")

        response = self._request(upc, DETAILED_FIELDS)
        return self._parse_response(response.text, upc, detailed=True)

    def is_service_available(self) -> bool:
        """Check if the API answers a lookup for a known product."""
        url = self._product_url(HEALTH_CHECK_UPC)
        try:
            response = self._get(url, params=None)
        except httpx.HTTPError as e:
            logger.warning(f"{SERVICE_NAME} health check failed: {e}")
            return False

        available = response.is_success
        logger.debug(f"{SERVICE_NAME} health check: {'AVAILABLE' if available else 'UNAVAILABLE'}")
        return available

    def _validate_upc(self, upc: str | None, operation: str) -> None:
        if upc is None:
            logger.warning(f"Null UPC provided to {operation}")
            raise ValidationError("UPC cannot be null")
        if not upc.strip():
            logger.warning(f"Empty or whitespace-only UPC provided to {operation}")
            raise ValidationError("UPC cannot be empty or whitespace")

    def _headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.settings.openfoodfacts_user_agent,
            "Accept": "application/json",
            "Cache-Control": "no-cache",
        }

    def _auth(self) -> httpx.BasicAuth | None:
        # The staging environment sits behind a fixed basic-auth gate
        if self.settings.openfoodfacts_use_staging:
            return httpx.BasicAuth("off", "off")
        return None

    def _get(self, url: str, params: dict[str, str] | None) -> httpx.Response:
        if self.client is not None:
            return self.client.get(
                url,
                params=params,
                headers=self._headers(),
                auth=self._auth(),
                timeout=self.settings.openfoodfacts_timeout,
            )

        with httpx.Client(timeout=self.settings.openfoodfacts_timeout) as client:
            return client.get(url, params=params, headers=self._headers(), auth=self._auth())

    def _product_url(self, upc: str) -> str:
        # The whole barcode is sent as a single path segment
        return f"{self.base_url}/api/v2/product/{quote(upc, safe='')}"

    def _request(self, upc: str, fields: list[str]) -> httpx.Response:
        url = self._product_url(upc)
        try:
            response = self._get(url, params={"fields": ",".join(fields)})
        except httpx.TimeoutException as e:
            logger.error(f"Timeout calling {SERVICE_NAME} for UPC {upc}", exc_info=True)
            raise ServiceUnavailableError(SERVICE_NAME, "Request timed out") from e
        except httpx.TransportError as e:
            logger.error(f"Network error calling {SERVICE_NAME} for UPC {upc}", exc_info=True)
            raise ServiceUnavailableError(SERVICE_NAME, f"Network connectivity issues: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP error calling {SERVICE_NAME} for UPC {upc}", exc_info=True)
            raise ExternalServiceError(SERVICE_NAME, f"HTTP client error: {e}") from e
        except Exception as e:
            logger.error(f"Unexpected error calling {SERVICE_NAME} for UPC {upc!r}", exc_info=True)
            raise ExternalServiceError(SERVICE_NAME, f"Unexpected error during API call: {e}") from e

        logger.debug(f"Received status {response.status_code} for UPC {upc}")
        self._check_status(response, upc)

        if not response.text.strip():
            logger.warning(f"Empty response body from {SERVICE_NAME} for UPC {upc}")
            raise ExternalServiceError(SERVICE_NAME, "Empty response received")
        return response

    def _check_status(self, response: httpx.Response, upc: str) -> None:
        code = response.status_code
        if response.is_success:
            return
        # Unknown barcodes come back as 404 with a regular {"status": 0} body
        if code == 404 and response.text.strip():
            return

        logger.error(f"Error response from {SERVICE_NAME} for UPC {upc}: {code}")
        if code == 429:
            raise RateLimitExceededError(SERVICE_NAME, "Rate limit exceeded")
        if code >= 500:
            raise ServiceUnavailableError(SERVICE_NAME, f"Server error: {code} {response.reason_phrase}")
        raise ExternalServiceError(SERVICE_NAME, f"Client error: {code} {response.reason_phrase}")

    def _parse_response(self, body: str, upc: str, detailed: bool) -> UpcLookupResult:
        try:
            root = json.loads(body)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON from {SERVICE_NAME} for UPC {upc}", exc_info=True)
            raise ParsingError(f"{SERVICE_NAME} response is not valid JSON") from e

        if not isinstance(root, dict):
            logger.error(f"Unexpected {type(root).__name__} payload from {SERVICE_NAME} for UPC {upc}")
            raise ParsingError(f"{SERVICE_NAME} response is not a JSON object")

        try:
            return self._normalize(root, upc, detailed)
        except (AttributeError, TypeError, ValueError) as e:
            logger.error(f"Unexpected error parsing {SERVICE_NAME} response for UPC {upc}", exc_info=True)
            raise ParsingError(f"{SERVICE_NAME} response could not be parsed: {e}") from e

    def _normalize(self, root: dict[str, Any], upc: str, detailed: bool) -> UpcLookupResult:
        status = root.get("status")
        if type(status) is not int or status != 1:
            logger.info(f"Product not found in {SERVICE_NAME} for UPC {upc} (status: {status})")
            return self._not_found(upc)

        product = root.get("product")
        if not isinstance(product, dict):
            logger.warning(f"Product data missing in {SERVICE_NAME} response for UPC {upc}")
            return self._not_found(upc)

        result = UpcLookupResult(
            upc=upc,
            name=extract_product_name(product),
            brand=first_listed(product, "brands"),
            category=first_listed(product, "categories"),
            data_source=ProductDataSource.EXTERNAL_API,
            requires_api_retry=False,
            retry_attempts=0,
        )
        if detailed:
            result.nutrition_grade = text_field(product, "nutrition_grades") or None
            result.ingredients_text = text_field(product, "ingredients_text") or None
            result.allergens = text_field(product, "allergens") or None
            result.labels = text_field(product, "labels") or None

        logger.debug(f"Parsed product data for UPC {upc}: {result.name}")
        return result

    def _not_found(self, upc: str) -> UpcLookupResult:
        return UpcLookupResult(
            upc=upc,
            name=NOT_FOUND_NAME,
            brand=None,
            category=None,
            data_source=ProductDataSource.EXTERNAL_API,
            requires_api_retry=True,
            retry_attempts=1,
            last_retry_attempt=datetime.now(UTC),
        )


def text_field(node: dict[str, Any], field: str) -> str:
    """Return a field's value when it is a string, otherwise an empty string."""
    value = node.get(field)
    if isinstance(value, str):
        return value
    if value is not None:
        logger.debug(f"Field '{field}' is not textual ({type(value).__name__}), ignoring")
    return ""


def extract_product_name(product: dict[str, Any]) -> str:
    """Pick product_name, then generic_name, then a fixed fallback."""
    name = text_field(product, "product_name").strip()
    if not name:
        name = text_field(product, "generic_name").strip()
    return name or UNKNOWN_NAME


def first_listed(product: dict[str, Any], field: str) -> str | None:
    """Return the first entry of a comma-separated field, trimmed."""
    first = text_field(product, field).split(",")[0].strip()
    return first or None
