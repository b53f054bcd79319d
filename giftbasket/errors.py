"""
Error taxonomy. Every error knows the HTTP status the routers answer with.
"""

class GiftBasketError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

# ---------- install / OAuth ----------
class AuthError(GiftBasketError):
    status_code = 403

class InvalidSignature(AuthError):
    status_code = 403

class ExchangeFailed(AuthError):
    status_code = 500

class MissingParameter(AuthError):
    status_code = 400

# ---------- billing ----------
class BillingError(GiftBasketError):
    status_code = 502

# ---------- webhooks ----------
class WebhookError(GiftBasketError):
    status_code = 400

class Unauthorized(WebhookError):
    status_code = 403

class BadPayload(WebhookError):
    status_code = 400

class UpstreamFailure(WebhookError):
    status_code = 502

# ---------- remote platform ----------
class PlatformError(GiftBasketError):
    """Transport failure, non-2xx answer, or a body that failed validation."""
    status_code = 502

    def __init__(self, message: str, status: int | None = None, retryable: bool = False):
        super().__init__(message)
        self.status = status
        self.retryable = retryable
