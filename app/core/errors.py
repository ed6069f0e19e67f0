"""Error taxonomy shared by services and routes.

Services raise these; ``app.main`` renders every one of them as a JSON
``{"error": ..., "details": ...}`` body with the matching status code.
"""


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, details: list[dict] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_body(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    """Bad or missing input; ``details`` lists ``{field, message}`` pairs."""

    status_code = 400


class AuthError(AppError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class PermissionDeniedError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    """Inventory exhausted or an illegal status transition."""

    status_code = 409


class UpstreamError(AppError):
    """Store or payment gateway failure."""

    status_code = 500


class SignatureError(AppError):
    """Webhook signature could not be verified. The reason stays in the server log."""

    status_code = 400

    def __init__(self, reason: str = ""):
        super().__init__("Invalid signature")
        self.reason = reason
