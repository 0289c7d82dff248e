class ServiceError(Exception):
    """Base exception for all service-layer errors."""

    def __init__(self, detail: str, status_code: int = 500):
        self.detail = detail
        self.status_code = status_code
        super().__init__(self.detail)


class NotFoundError(ServiceError):
    """Raised when a requested resource is not found."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(detail, status_code=404)


class BadRequestError(ServiceError):
    """Raised for invalid client requests (e.g., bad input)."""

    def __init__(self, detail: str = "Bad request"):
        super().__init__(detail, status_code=400)


class ForbiddenError(ServiceError):
    """Raised when a mutation request fails the authenticity check."""

    def __init__(self, detail: str = "Forbidden"):
        super().__init__(detail, status_code=403)


class AjaxUnauthorizedError(ForbiddenError):
    """
    Raised when a background (XHR) request carries an invalid nonce.

    This aborts request handling outright: the application turns it into a
    `{"success": false, "data": ...}` JSON body and the caller never resumes.
    """

    def __init__(self, detail: str = "Unauthorized."):
        super().__init__(detail)
