# shopapi/errors.py
# Error taxonomy for the API. Each error carries the HTTP status it maps to.


class StoreAPIError(Exception):
    status_code = 500
    message = "Something went wrong!"

    def __init__(self, message: str = None):
        if message:
            self.message = message
        super().__init__(self.message)


class ValidationError(StoreAPIError):
    status_code = 400
    message = "Invalid request"


class InvalidCredentials(StoreAPIError):
    status_code = 401
    message = "Invalid credentials"


class Unauthorized(StoreAPIError):
    status_code = 401
    message = "Access token required"


class Forbidden(StoreAPIError):
    status_code = 403
    message = "Invalid or expired token"


class NotFound(StoreAPIError):
    status_code = 404
    message = "Product not found"


class StoreError(StoreAPIError):
    status_code = 500
    message = "Something went wrong!"


class QueryFailed(StoreError):
    message = "Failed to fetch products"
