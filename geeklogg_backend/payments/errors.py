from __future__ import annotations


class PaymentError(RuntimeError):
    """
    Payment flow failure carrying the HTTP status the API should answer with.
    """

    def __init__(self, message: str, status_code: int = 500) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class WebhookVerificationError(PaymentError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=400)
