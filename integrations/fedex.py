"""
FedEx Ship API client.

OAuth2 client-credentials token, label purchase and package validation.
Every call is a single request; nothing is retried here.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional
import requests
import structlog

from config import settings
from models.base import Address
from models.shipment import PackageRequest
from exceptions import FedExError, IntegrationNotConfiguredError

logger = structlog.get_logger(__name__)

TOKEN_PATH = "/oauth/token"
SHIP_PATH = "/ship/v1/shipments"
VALIDATE_PATH = "/ship/v1/shipments/packages/validate"

REQUEST_TIMEOUT = 30


@dataclass
class LabelResult:
    """Tracking number and label URL of a purchased label."""
    tracking_number: str
    label_url: str


def missing_credentials() -> list[str]:
    """Names of FedEx settings that are not configured."""
    required = {
        "fedex_api_key": settings.fedex_api_key,
        "fedex_secret_key": settings.fedex_secret_key,
        "fedex_account_number": settings.fedex_account_number,
    }
    return [name for name, value in required.items() if not value]


def _party(address: Address, fallback_name: str, residential: bool = False) -> dict:
    """Contact and address block for shipper or recipient."""
    party = {
        "contact": {
            "personName": address.name or address.company_name or fallback_name,
            "phoneNumber": address.phone or "0000000000",
        },
        "address": {
            "streetLines": [line for line in (address.street1, address.street2) if line],
            "city": address.city,
            "stateOrProvinceCode": address.state,
            "postalCode": address.zip,
            "countryCode": address.country or "US",
        },
    }
    if address.company_name:
        party["contact"]["companyName"] = address.company_name
    if residential:
        party["address"]["residential"] = True
    return party


def build_shipment_payload(
    package: PackageRequest,
    ship_from: Address,
    account_number: str,
    ship_date: Optional[date] = None
) -> dict:
    """
    Request body shared by label purchase and validation.

    PDF 4x6 label, sender pays, customer packaging, residential recipient.
    """
    requested = {
        "shipper": _party(ship_from, "Shipper"),
        "recipients": [_party(package.ship_to_address, "Recipient", residential=True)],
        "serviceType": package.service_type,
        "packagingType": "YOUR_PACKAGING",
        "pickupType": "USE_SCHEDULED_PICKUP",
        "shippingChargesPayment": {"paymentType": "SENDER"},
        "labelSpecification": {
            "imageType": "PDF",
            "labelStockType": "PAPER_4X6",
        },
        "requestedPackageLineItems": [{
            "weight": {"units": "LB", "value": package.weight},
            "dimensions": {
                "length": package.dimensions.length,
                "width": package.dimensions.width,
                "height": package.dimensions.height,
                "units": "IN",
            },
        }],
    }
    if ship_date:
        requested["shipDatestamp"] = ship_date.isoformat()

    return {
        "requestedShipment": requested,
        "accountNumber": {"value": account_number},
    }


def _error_messages(response: requests.Response) -> list[str]:
    """Readable messages from a FedEx error body."""
    try:
        body = response.json()
    except ValueError:
        return [response.text or f"HTTP {response.status_code}"]

    errors = body.get("errors") or []
    messages = [e.get("message") for e in errors if e.get("message")]
    return messages or [f"HTTP {response.status_code}"]


class FedExClient:
    """
    Thin wrapper over the FedEx REST endpoints.

    Construct with from_settings(); raises IntegrationNotConfiguredError
    before any network call when credentials are missing.
    """

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        account_number: str,
        base_url: str = "https://apis.fedex.com",
        session: Optional[requests.Session] = None
    ):
        self.api_key = api_key
        self.secret_key = secret_key
        self.account_number = account_number
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls) -> "FedExClient":
        missing = missing_credentials()
        if missing:
            logger.warning("fedex_not_configured", missing=missing)
            raise IntegrationNotConfiguredError("fedex", missing)
        return cls(
            api_key=settings.fedex_api_key,
            secret_key=settings.fedex_secret_key,
            account_number=settings.fedex_account_number,
            base_url=settings.fedex_base_url,
        )

    def get_token(self) -> str:
        """
        Fetch an OAuth access token.

        Raises:
            FedExError: Auth rejected or unreachable
        """
        try:
            response = self.session.post(
                f"{self.base_url}{TOKEN_PATH}",
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.api_key,
                    "client_secret": self.secret_key,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            logger.error("fedex_auth_request_failed", error=str(e))
            raise FedExError(f"FedEx authentication failed: {e}")

        if not response.ok:
            logger.error("fedex_auth_failed", status_code=response.status_code)
            raise FedExError(
                f"FedEx authentication failed: {response.status_code}",
                details={"status_code": response.status_code, "body": response.text[:500]}
            )

        token = response.json().get("access_token")
        if not token:
            raise FedExError("FedEx authentication returned no access token")
        return token

    def _headers(self, token: str) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
            "X-locale": "en_US",
        }

    def create_label(self, package: PackageRequest, ship_from: Address) -> LabelResult:
        """
        Buy a label.

        A response without a tracking number or label URL is a failure.

        Raises:
            FedExError: Rejected request or incomplete response
        """
        token = self.get_token()

        payload = build_shipment_payload(package, ship_from, self.account_number, date.today())
        payload["labelResponseOptions"] = "URL_ONLY"

        logger.info(
            "fedex_label_requested",
            service_type=package.service_type,
            weight=package.weight,
            country=package.ship_to_address.country
        )

        try:
            response = self.session.post(
                f"{self.base_url}{SHIP_PATH}",
                json=payload,
                headers=self._headers(token),
                timeout=REQUEST_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            logger.error("fedex_label_request_failed", error=str(e))
            raise FedExError(f"FedEx shipping failed: {e}")

        if not response.ok:
            messages = _error_messages(response)
            logger.error("fedex_label_failed", status_code=response.status_code, errors=messages)
            raise FedExError(
                f"FedEx shipping failed: {response.status_code} - {', '.join(messages)}",
                details={"status_code": response.status_code, "errors": messages}
            )

        body = response.json()
        shipments = (body.get("output") or {}).get("transactionShipments") or [{}]
        first = shipments[0] or {}
        tracking_number = first.get("masterTrackingNumber")

        pieces = first.get("pieceResponses") or [{}]
        documents = (pieces[0] or {}).get("packageDocuments") or [{}]
        label_url = (documents[0] or {}).get("url")

        if not tracking_number or not label_url:
            logger.error(
                "fedex_label_incomplete",
                has_tracking=bool(tracking_number),
                has_label=bool(label_url)
            )
            raise FedExError("Failed to get tracking number or label URL from FedEx response")

        logger.info("fedex_label_created", tracking_number=tracking_number)

        return LabelResult(tracking_number=tracking_number, label_url=label_url)

    def validate(self, package: PackageRequest, ship_from: Address) -> dict:
        """
        Ask FedEx whether a package would be accepted.

        Carrier-side rejections come back as {"validated": False, ...};
        only auth or transport failures raise.
        """
        token = self.get_token()
        payload = build_shipment_payload(package, ship_from, self.account_number)

        try:
            response = self.session.post(
                f"{self.base_url}{VALIDATE_PATH}",
                json=payload,
                headers=self._headers(token),
                timeout=REQUEST_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            logger.error("fedex_validate_request_failed", error=str(e))
            raise FedExError(f"FedEx validation failed: {e}")

        if not response.ok:
            messages = _error_messages(response)
            logger.info("fedex_validation_rejected", errors=messages)
            return {
                "validated": False,
                "message": ", ".join(messages) or "Shipment validation failed",
                "errors": messages,
            }

        logger.info("fedex_validation_passed")
        return {
            "validated": True,
            "message": "Shipment validated successfully",
            "errors": [],
        }
