# shopsdk/errors.py


class ApiError(Exception):
    """Non-2xx response from the storefront API."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"HTTP {status_code}: {message}")


class ResponseSchemaError(ApiError):
    """A 2xx response whose body does not match the expected schema."""

    def __init__(self, status_code: int, message: str):
        super().__init__(status_code, f"unexpected response: {message}")
