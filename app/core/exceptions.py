from fastapi import HTTPException, status


class ValidationError(HTTPException):
    """Exception raised when a request is missing or has malformed fields."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message
        )


class AuthenticationError(HTTPException):
    """Exception raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=message,
            headers={"WWW-Authenticate": "Bearer"}
        )


class AuthorizationError(HTTPException):
    """Exception raised for authorization failures."""

    def __init__(self, message: str = "Not authorized to access this resource"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=message
        )


class NotFoundError(HTTPException):
    """Exception raised when an entity does not exist."""

    def __init__(self, message: str = "Not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=message
        )


class ConflictError(HTTPException):
    """Exception raised when creating an entity that already exists."""

    def __init__(self, message: str = "Already exists"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=message
        )


class UpstreamError(HTTPException):
    """Exception raised when a provider call fails."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(
            status_code=status_code,
            detail=message
        )


class RunCancelledError(HTTPException):
    """Exception raised when the client goes away while an assistant run is pending."""

    def __init__(self, message: str = "Assistant run cancelled"):
        super().__init__(
            status_code=499,
            detail=message
        )
