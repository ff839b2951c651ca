import httpx

from aquahome.errors import GatewayError


class RazorpayGateway:
    """
    Thin client for the Razorpay orders API.

    Only intent creation lives here; capture happens at the gateway and comes
    back to us as a signed confirmation handled by PaymentService.
    """

    def __init__(self, app=None):
        self.key_id = ""
        self.key_secret = ""
        self.base_url = "https://api.razorpay.com/v1"
        self.timeout = 10.0
        self.currency = "INR"
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.key_id = app.config.get("RAZORPAY_KEY_ID", "")
        self.key_secret = app.config.get("RAZORPAY_KEY_SECRET", "")
        self.base_url = app.config.get("PAYMENT_GATEWAY_URL", self.base_url).rstrip("/")
        self.timeout = float(app.config.get("PAYMENT_GATEWAY_TIMEOUT", self.timeout))
        self.currency = app.config.get("PAYMENT_CURRENCY", self.currency)
        app.extensions["payment_gateway"] = self

    def create_intent(self, amount_minor_units, currency, receipt, notes=None):
        payload = {
            "amount": int(amount_minor_units),
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    f"{self.base_url}/orders",
                    json=payload,
                    auth=(self.key_id, self.key_secret),
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            raise GatewayError(f"Payment gateway rejected the request ({exc.response.status_code}).") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise GatewayError("Payment gateway is unreachable.") from exc

        if not data.get("id"):
            raise GatewayError("Payment gateway returned no order id.")
        return data
