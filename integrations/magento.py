"""
Magento 2 REST client.

Bearer-token access to store views, orders and products. Search criteria
are sent as query parameters in Magento's searchCriteria[...] form.
Nothing is retried; failures raise MagentoError with the HTTP status and
response text.
"""

from typing import Optional
import requests
import structlog

from config import settings
from exceptions import MagentoError, IntegrationNotConfiguredError

logger = structlog.get_logger(__name__)

REQUEST_TIMEOUT = 30


def missing_credentials() -> list[str]:
    """Names of Magento settings that are not configured."""
    required = {
        "magento_store_url": settings.magento_store_url,
        "magento_api_key": settings.magento_api_key,
    }
    return [name for name, value in required.items() if not value]


def search_criteria(
    filters: list[tuple[str, str, str]],
    page_size: Optional[int] = None,
    current_page: Optional[int] = None
) -> dict:
    """
    Build searchCriteria query params.

    Each (field, value, condition) becomes its own filter group, so the
    filters are ANDed.
    """
    params = {}
    for group, (field, value, condition) in enumerate(filters):
        prefix = f"searchCriteria[filter_groups][{group}][filters][0]"
        params[f"{prefix}[field]"] = field
        params[f"{prefix}[value]"] = value
        params[f"{prefix}[condition_type]"] = condition
    if page_size:
        params["searchCriteria[pageSize]"] = page_size
    if current_page:
        params["searchCriteria[currentPage]"] = current_page
    return params


class MagentoClient:
    """Magento REST endpoints used by order import, product sync and status push."""

    def __init__(
        self,
        store_url: str,
        api_key: str,
        page_size: int = 100,
        session: Optional[requests.Session] = None
    ):
        self.base_url = f"{store_url.rstrip('/')}/rest/V1"
        self.store_url = store_url
        self.api_key = api_key
        self.page_size = page_size
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls) -> "MagentoClient":
        missing = missing_credentials()
        if missing:
            logger.warning("magento_not_configured", missing=missing)
            raise IntegrationNotConfiguredError("magento", missing)
        return cls(
            store_url=settings.magento_store_url,
            api_key=settings.magento_api_key,
            page_size=settings.magento_page_size,
        )

    def _request(self, method: str, path: str, **kwargs):
        """Send one request and return the decoded JSON body."""
        url = f"{self.base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self.session.request(
                method, url, headers=headers, timeout=REQUEST_TIMEOUT, **kwargs
            )
        except requests.exceptions.RequestException as e:
            logger.error("magento_request_failed", method=method, path=path, error=str(e))
            raise MagentoError(f"Magento request failed: {e}", details={"path": path})

        if not response.ok:
            logger.error(
                "magento_request_rejected",
                method=method,
                path=path,
                status_code=response.status_code
            )
            raise MagentoError(
                f"Magento {method} {path} failed: {response.status_code}",
                details={"path": path, "status_code": response.status_code, "body": response.text[:500]}
            )

        if not response.content:
            return None
        return response.json()

    # ===================
    # READ OPERATIONS
    # ===================

    def test_connection(self) -> int:
        """
        Check credentials against the store views endpoint.

        Returns:
            Number of store views visible to the token
        """
        views = self._request("GET", "/store/storeViews") or []
        logger.info("magento_connected", store_views=len(views))
        return len(views)

    def _paginate(self, path: str, filters: list, max_pages: int) -> tuple[list[dict], int]:
        """Fetch pages until a short page or the page cap."""
        items: list[dict] = []
        page = 1
        pages = 0

        while page <= max_pages:
            params = search_criteria(filters, page_size=self.page_size, current_page=page)
            data = self._request("GET", path, params=params) or {}
            batch = data.get("items") or []
            pages += 1

            logger.debug("magento_page_fetched", path=path, page=page, count=len(batch))

            items.extend(batch)
            if len(batch) < self.page_size:
                break
            page += 1

        return items, pages

    def fetch_orders(
        self,
        status: str,
        created_since: str,
        max_pages: int
    ) -> tuple[list[dict], int]:
        """
        Orders in one Magento status created on or after a timestamp.

        Returns:
            (orders, pages fetched)
        """
        filters = [
            ("status", status, "eq"),
            ("created_at", created_since, "gteq"),
        ]
        return self._paginate("/orders", filters, max_pages)

    def fetch_products(
        self,
        updated_since: Optional[str],
        max_pages: int
    ) -> list[dict]:
        """Products, optionally only those updated after a timestamp."""
        filters = [("updated_at", updated_since, "gt")] if updated_since else []
        items, _ = self._paginate("/products", filters, max_pages)
        return items

    def find_order(self, increment_id: str) -> Optional[dict]:
        """Look an order up by its customer-facing number."""
        params = search_criteria([("increment_id", increment_id, "eq")])
        data = self._request("GET", "/orders", params=params) or {}
        items = data.get("items") or []
        return items[0] if items else None

    # ===================
    # WRITE OPERATIONS
    # ===================

    def update_order(self, entity_id: int, updates: dict) -> None:
        """Overwrite order fields (status, extension attributes)."""
        self._request(
            "PUT",
            f"/orders/{entity_id}",
            json={"entity": {"entity_id": entity_id, **updates}},
        )

    def add_order_comment(self, entity_id: int, comment: str, status: str) -> None:
        """Record a status change as an order history comment."""
        self._request(
            "POST",
            f"/orders/{entity_id}/comments",
            json={
                "statusHistory": {
                    "comment": comment,
                    "status": status,
                    "is_customer_notified": 0,
                    "is_visible_on_front": 0,
                }
            },
        )
