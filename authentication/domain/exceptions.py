class AuthenticationError(Exception):
    """Raised when no usable session exists or the session can not be renewed."""
