from typing import Optional


class ELSError(Exception):
    """Base exception for all ELS client errors."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        if status_code is None:
            super().__init__(message)
        else:
            super().__init__(f"{message} (Status: {status_code})")


class NoCredentialError(ELSError):
    """Raised when a signer is built without an access key."""
    def __init__(self, message: str = "No Access Key"):
        super().__init__(message)


class NoRequestError(ELSError):
    """Raised when asked to sign a missing request."""
    def __init__(self, message: str = "No Request"):
        super().__init__(message)


class InvalidURLError(ELSError):
    """Raised when the request path does not begin with the API version."""
    def __init__(self, message: str = "Invalid URL"):
        super().__init__(message)


class ExpiredCredentialError(ELSError):
    """Raised when the access key has expired or is about to."""
    def __init__(self, message: str = "Expired Access Key"):
        super().__init__(message)


class UnexpectedStatusCode(ELSError):
    """Raised when the ELS answers with a status other than the one expected."""
    def __init__(self, status_code: int, message: str = "Unexpected Status Code"):
        super().__init__(message, status_code=status_code)


class ContextError(ELSError):
    """Raised when a context ends before the call it guards completes."""
    pass


class DeadlineExceeded(ContextError, TimeoutError):
    """Raised when a context deadline elapses."""
    def __init__(self, message: str = "context deadline exceeded"):
        super().__init__(message)


class Cancelled(ContextError):
    """Raised when a context is explicitly cancelled."""
    def __init__(self, message: str = "context canceled"):
        super().__init__(message)


class UnreadableBodyError(ELSError):
    """Raised when a request body can only be read asynchronously and was not buffered."""
    def __init__(self, message: str = "Request body must be read before signing"):
        super().__init__(message)
