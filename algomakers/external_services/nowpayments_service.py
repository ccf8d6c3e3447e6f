import hashlib
import hmac
import json
import logging
from typing import Dict, Optional, Any, List
import requests

from algomakers.core.config import settings

logger = logging.getLogger(__name__)

# Local network name -> NOWPayments pay_currency code
CURRENCY_CODES = {
    "trc20": "usdttrc20",
    "erc20": "usdterc20",
    "bep20": "usdtbsc",
}
DEFAULT_CURRENCY_CODE = "usdttrc20"


class NowPaymentsError(Exception):
    pass


class NowPaymentsConfigError(NowPaymentsError):
    pass


class NowPaymentsAPIError(NowPaymentsError):
    def __init__(self, message: str, status_code: Optional[int] = None, response_data: Optional[Any] = None):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data
        super().__init__(self.message)


def get_currency_code(network: str) -> str:
    return CURRENCY_CODES.get(network.lower(), DEFAULT_CURRENCY_CODE)


class NowPaymentsService:
    def __init__(
        self,
        api_key: Optional[str] = None,
        ipn_key: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.NOWPAYMENTS_API_KEY
        self.ipn_key = ipn_key if ipn_key is not None else settings.NOWPAYMENTS_IPN_KEY
        self.api_url = (api_url or settings.NOWPAYMENTS_API_URL).rstrip("/")
        self.timeout = timeout or settings.NOWPAYMENTS_TIMEOUT

        if not self.api_key:
            logger.warning("NOWPayments API key is not configured")
        logger.info("NOWPayments service initialized for %s", self.api_url)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise NowPaymentsConfigError("NOWPayments API key not configured")
        return {
            "x-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    def _make_request(self, method: str, path: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.api_url}{path}"
        try:
            response = requests.request(
                method,
                url,
                json=data,
                headers=self._headers(),
                timeout=self.timeout
            )

            if not response.ok:
                logger.error(f"NOWPayments API error: {response.status_code} {response.text}")
                raise NowPaymentsAPIError(
                    f"NOWPayments API error: {response.status_code} {response.text}",
                    status_code=response.status_code,
                    response_data={"status_code": response.status_code, "text": response.text}
                )

            return response.json()

        except NowPaymentsAPIError:
            raise
        except requests.exceptions.Timeout:
            raise NowPaymentsAPIError("Request timeout")
        except requests.exceptions.ConnectionError:
            raise NowPaymentsAPIError("Connection error")
        except requests.exceptions.RequestException as e:
            raise NowPaymentsAPIError(f"Request failed: {str(e)}")
        except ValueError as e:
            raise NowPaymentsAPIError(f"Invalid JSON response: {str(e)}")

    def create_invoice(
        self,
        amount: float,
        network: str,
        order_id: str,
        description: str,
    ) -> Dict[str, Any]:
        """Create a hosted-checkout invoice.

        Raises NowPaymentsAPIError when the gateway rejects the request, so the
        caller can roll back whatever it staged for this order.
        """
        base_url = settings.NEXTAUTH_URL.rstrip("/")
        payload = {
            "price_amount": amount,
            "price_currency": "usd",
            "pay_currency": get_currency_code(network),
            "order_id": order_id,
            "order_description": description,
            "ipn_callback_url": f"{base_url}/api/payments/webhook",
            "success_url": f"{base_url}/dashboard?payment=success",
            "cancel_url": f"{base_url}/dashboard?payment=cancelled",
        }
        logger.info(f"Creating NOWPayments invoice for order {order_id}: {amount} USD via {payload['pay_currency']}")

        result = self._make_request("POST", "/v1/invoice", payload)

        invoice_id = result.get("id")
        if not invoice_id or not result.get("invoice_url"):
            raise NowPaymentsAPIError("No invoice data received", response_data=result)

        logger.info(f"NOWPayments invoice created: {invoice_id} for order {order_id}")
        return {
            "invoice_id": str(invoice_id),
            "invoice_url": result["invoice_url"],
            "pay_currency": result.get("pay_currency") or payload["pay_currency"],
            "created_at": result.get("created_at"),
            "data": result,
        }

    def get_payment_status(self, payment_id: str) -> Dict[str, Any]:
        try:
            if not payment_id:
                raise NowPaymentsError("Payment ID is required")

            result = self._make_request("GET", f"/v1/payment/{payment_id}")

            if not result or not result.get("payment_status"):
                return {
                    "success": False,
                    "error": "Payment not found",
                    "data": result
                }

            return {
                "success": True,
                "payment_id": str(result.get("payment_id") or payment_id),
                "payment_status": result["payment_status"],
                "pay_amount": result.get("pay_amount"),
                "pay_currency": result.get("pay_currency"),
                "actually_paid": result.get("actually_paid"),
                "tx_hash": result.get("payin_hash") or result.get("tx_hash"),
                "data": result
            }

        except NowPaymentsAPIError as e:
            if e.status_code == 404:
                logger.info(f"Payment {payment_id} not found - likely pending on hosted checkout")
            return {
                "success": False,
                "error": str(e),
                "data": e.response_data
            }
        except NowPaymentsError as e:
            return {
                "success": False,
                "error": str(e),
                "data": None
            }

    def _signing_keys(self) -> List[str]:
        return [key for key in (self.ipn_key, self.api_key) if key]

    def verify_ipn_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        """Check an x-nowpayments-sig header (HMAC-SHA512, hex).

        The digest is accepted over the raw body or over its key-sorted
        serialization, signed with either the IPN key or the API key.
        """
        if not signature:
            return False

        candidates = [raw_body]
        try:
            parsed = json.loads(raw_body)
            candidates.append(
                json.dumps(parsed, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
            )
        except ValueError:
            pass

        for key in self._signing_keys():
            for message in candidates:
                expected = hmac.new(key.encode("utf-8"), message, hashlib.sha512).hexdigest()
                if hmac.compare_digest(signature.lower().encode("utf-8"), expected.encode("utf-8")):
                    return True
        return False
