"""
Application exception hierarchy.

Services raise these instead of returning ``None`` so the router layer stays
free of status-code branching; ``register_exception_handlers`` in
``app.main`` maps each class to its HTTP status.

    BlogAPIError (base)      -> 500
    ├── NotFoundError        -> 404
    ├── ForbiddenError       -> 403
    ├── UnauthorizedError    -> 401
    └── ConflictError        -> 409
"""


class BlogAPIError(Exception):
    """Base class for all application errors."""

    status_code: int = 500
    error: str = "internal_error"

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(BlogAPIError):
    status_code = 404
    error = "not_found"

    def __init__(self, resource: str, resource_id: str) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f'{resource} with ID "{resource_id}" not found')


class ForbiddenError(BlogAPIError):
    """The caller is authenticated but does not own the target resource."""

    status_code = 403
    error = "forbidden"


class UnauthorizedError(BlogAPIError):
    status_code = 401
    error = "unauthorized"

    def __init__(self, message: str = "Invalid authentication credentials") -> None:
        super().__init__(message)


class ConflictError(BlogAPIError):
    status_code = 409
    error = "conflict"
