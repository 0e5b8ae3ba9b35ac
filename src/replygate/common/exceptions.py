"""ReplyGate exception hierarchy."""


class ReplyGateError(Exception):
    """Base exception for all ReplyGate errors."""

    def __init__(self, message: str = "", code: str = "REPLYGATE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class UserNotFoundError(ReplyGateError):
    """Raised when a user cannot be found in the database."""

    def __init__(self, message: str = "User not found"):
        super().__init__(message, code="NOT_FOUND")


class InvalidPlanError(ReplyGateError):
    """Raised when a plan identifier is not one of the known plans."""

    def __init__(self, message: str = "Invalid plan"):
        super().__init__(message, code="INVALID_PLAN")


class UsageUnavailableError(ReplyGateError):
    """Raised when usage could not be counted, so the quota cannot be verified."""

    def __init__(self, message: str = "Unable to verify usage"):
        super().__init__(message, code="USAGE_UNAVAILABLE")


class GenerationError(ReplyGateError):
    """Raised when the upstream generation provider fails."""

    def __init__(self, message: str = "Failed to generate response", code: str = "GENERATION_FAILED"):
        super().__init__(message, code=code)


class GenerationQuotaError(GenerationError):
    """Raised when the upstream provider rejects the call for quota reasons."""

    def __init__(self, message: str = "Generation provider quota exceeded"):
        super().__init__(message, code="GENERATION_QUOTA")


class GenerationAuthError(GenerationError):
    """Raised when the upstream provider rejects our credentials."""

    def __init__(self, message: str = "Generation provider rejected the API key"):
        super().__init__(message, code="GENERATION_AUTH")
