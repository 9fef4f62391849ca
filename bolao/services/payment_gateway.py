"""
Payment gateway providers for checkout creation and session status lookup
"""

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Any, Optional

import httpx

from bolao.core.config import settings
from bolao.core.errors import GatewayUnavailable, GatewayError
from bolao.models.enums import GatewayPaymentStatus

# Configure logging
logger = logging.getLogger(__name__)

# Payment intent states after which a delayed payment will never settle
FAILED_INTENT_STATES = {"requires_payment_method", "canceled"}


@dataclass
class CheckoutSession:
    """Checkout created at the gateway"""
    session_id: str
    redirect_url: str


@dataclass
class GatewaySessionStatus:
    """Authoritative status of a checkout session"""
    session_id: str
    payment_status: GatewayPaymentStatus
    payment_intent_id: Optional[str] = None
    # False once the gateway will never collect money for this session
    session_open: bool = True


class PaymentGateway:
    """Base payment gateway interface"""
    
    async def create_checkout_session(
        self,
        contest_id: uuid.UUID,
        quota_count: int,
        unit_amount: Decimal,
        description: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str]
    ) -> CheckoutSession:
        """
        Create a hosted checkout for `quota_count` quotas at `unit_amount` each.
        
        Raises:
            GatewayUnavailable on timeouts and transient failures
            GatewayError when the gateway rejects the request
        """
        raise NotImplementedError
    
    async def get_session_status(self, session_id: str) -> GatewaySessionStatus:
        """
        Fetch the authoritative payment status of a checkout session.
        
        Raises:
            GatewayUnavailable on timeouts and transient failures
            GatewayError when the gateway rejects the request
        """
        raise NotImplementedError


def to_minor_units(amount: Decimal) -> int:
    """Convert a currency amount to integer cents."""
    return int((amount * 100).to_integral_value())


class StripeGateway(PaymentGateway):
    """Stripe Checkout provider over the Stripe REST API"""
    
    def __init__(
        self,
        secret_key: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        currency: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.secret_key = secret_key or settings.stripe_secret_key
        self.api_base = (api_base or settings.stripe_api_base).rstrip("/")
        self.timeout = timeout or settings.gateway_timeout_seconds
        self.currency = currency or settings.currency
        self.transport = transport
        if not self.secret_key:
            raise GatewayError("Stripe secret key is not configured")
    
    async def _request(
        self,
        method: str,
        path: str,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        url = f"{self.api_base}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(
                    method,
                    url,
                    data=data,
                    params=params,
                    headers={"Authorization": f"Bearer {self.secret_key}"}
                )
        except httpx.TimeoutException as e:
            logger.warning(f"Stripe request timed out: {method} {path}")
            raise GatewayUnavailable(f"Payment gateway timed out: {e}")
        except httpx.TransportError as e:
            logger.warning(f"Stripe request failed: {method} {path}: {e}")
            raise GatewayUnavailable(f"Payment gateway unreachable: {e}")
        
        if response.status_code == 429 or response.status_code >= 500:
            retry_after = response.headers.get("Retry-After")
            logger.warning(f"Stripe returned {response.status_code} for {method} {path}")
            raise GatewayUnavailable(
                f"Payment gateway returned {response.status_code}",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None
            )
        
        try:
            body = response.json()
        except ValueError:
            raise GatewayError("Payment gateway returned an invalid response", response.status_code)
        
        if response.status_code >= 400:
            message = body.get("error", {}).get("message", "request rejected")
            logger.error(f"Stripe rejected {method} {path}: {response.status_code} {message}")
            raise GatewayError(f"Payment gateway rejected request: {message}", response.status_code)
        
        return body
    
    async def create_checkout_session(
        self,
        contest_id: uuid.UUID,
        quota_count: int,
        unit_amount: Decimal,
        description: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str]
    ) -> CheckoutSession:
        data = {
            "mode": "payment",
            "payment_method_types[0]": "card",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "line_items[0][quantity]": str(quota_count),
            "line_items[0][price_data][currency]": self.currency,
            "line_items[0][price_data][unit_amount]": str(to_minor_units(unit_amount)),
            "line_items[0][price_data][product_data][name]": description,
        }
        if "payment_id" in metadata:
            data["client_reference_id"] = metadata["payment_id"]
        for key, value in metadata.items():
            data[f"metadata[{key}]"] = str(value)
        
        body = await self._request("POST", "/checkout/sessions", data)
        logger.info(f"Stripe checkout session created: {body.get('id')} for contest {contest_id}")
        return CheckoutSession(session_id=body["id"], redirect_url=body["url"])
    
    async def get_session_status(self, session_id: str) -> GatewaySessionStatus:
        body = await self._request(
            "GET",
            f"/checkout/sessions/{session_id}",
            params={"expand[]": "payment_intent"}
        )
        return self.parse_session(body)
    
    @staticmethod
    def parse_session(body: Dict[str, Any]) -> GatewaySessionStatus:
        """
        Map a Stripe checkout session object onto the gateway status.
        
        A `complete` session can still be unpaid while a delayed method
        (boleto, PIX) settles; it only stops being collectable once its
        payment intent failed or was canceled.
        """
        session_state = body.get("status")
        payment_state = body.get("payment_status")
        payment_intent = body.get("payment_intent")
        intent_state = None
        if isinstance(payment_intent, dict):
            intent_state = payment_intent.get("status")
            payment_intent = payment_intent.get("id")
        
        if session_state == "open":
            session_open = True
        elif session_state == "complete" and payment_state == "unpaid":
            session_open = intent_state not in FAILED_INTENT_STATES
        else:
            session_open = False
        
        if payment_state == "paid":
            payment_status = GatewayPaymentStatus.PAID
        elif session_state == "expired":
            payment_status = GatewayPaymentStatus.EXPIRED
        else:
            payment_status = GatewayPaymentStatus.UNPAID
        
        return GatewaySessionStatus(
            session_id=body["id"],
            payment_status=payment_status,
            payment_intent_id=payment_intent,
            session_open=session_open
        )


@dataclass
class _MockSession:
    payment_status: GatewayPaymentStatus = GatewayPaymentStatus.UNPAID
    session_open: bool = True
    payment_intent_id: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


class MockGateway(PaymentGateway):
    """In-memory gateway for development and testing"""
    
    def __init__(self, base_url: str = "https://checkout.mock"):
        self.base_url = base_url
        self.sessions: Dict[str, _MockSession] = {}
        self.unavailable = False
        self.status_calls = 0
    
    def _check_available(self):
        if self.unavailable:
            raise GatewayUnavailable("Mock gateway is unavailable")
    
    async def create_checkout_session(
        self,
        contest_id: uuid.UUID,
        quota_count: int,
        unit_amount: Decimal,
        description: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str]
    ) -> CheckoutSession:
        self._check_available()
        session_id = f"cs_mock_{uuid.uuid4().hex}"
        self.sessions[session_id] = _MockSession(metadata=dict(metadata))
        logger.info(f"Mock checkout session {session_id}: {quota_count} x {unit_amount}")
        return CheckoutSession(session_id=session_id, redirect_url=f"{self.base_url}/{session_id}")
    
    async def get_session_status(self, session_id: str) -> GatewaySessionStatus:
        self.status_calls += 1
        self._check_available()
        mock = self.sessions.get(session_id)
        if mock is None:
            raise GatewayError(f"No such checkout session: {session_id}", 404)
        return GatewaySessionStatus(
            session_id=session_id,
            payment_status=mock.payment_status,
            payment_intent_id=mock.payment_intent_id,
            session_open=mock.session_open
        )
    
    def mark_paid(self, session_id: str) -> None:
        mock = self.sessions[session_id]
        mock.payment_status = GatewayPaymentStatus.PAID
        mock.session_open = False
        mock.payment_intent_id = f"pi_mock_{uuid.uuid4().hex[:12]}"
    
    def mark_expired(self, session_id: str) -> None:
        mock = self.sessions[session_id]
        mock.payment_status = GatewayPaymentStatus.EXPIRED
        mock.session_open = False
    
    def mark_abandoned(self, session_id: str) -> None:
        mock = self.sessions[session_id]
        mock.payment_status = GatewayPaymentStatus.UNPAID
        mock.session_open = False


# Global provider instance
_gateway: Optional[PaymentGateway] = None


def get_payment_gateway() -> PaymentGateway:
    """Get the configured payment gateway (FastAPI dependency)."""
    global _gateway
    if _gateway is None:
        if settings.payment_gateway == "mock":
            _gateway = MockGateway()
        else:
            _gateway = StripeGateway()
    return _gateway
