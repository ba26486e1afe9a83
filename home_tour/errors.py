"""Exception hierarchy for the home tour engine"""

from typing import Optional


class HomeTourError(Exception):
    """Base class for every error raised by the engine"""


class InsufficientInputError(HomeTourError):
    """No images were supplied to the planner"""


class InvalidParametersError(HomeTourError):
    """A numeric or path parameter failed pre-flight validation"""


class ExternalServiceError(HomeTourError):
    """Non-retryable failure from the synthesis service (quota, permission, invalid argument)"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientServiceError(HomeTourError):
    """Retryable network or 5xx-class failure during submission"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class OperationFailed(HomeTourError):
    """The synthesis service reported a terminal error for an operation"""

    def __init__(self, message: str, operation_handle: Optional[str] = None, code: Optional[int] = None):
        super().__init__(message)
        self.operation_handle = operation_handle
        self.code = code


class OperationTimedOut(HomeTourError):
    """Poll attempts were exhausted before the operation reached a terminal state"""

    def __init__(self, message: str, operation_handle: Optional[str] = None, attempts: int = 0):
        super().__init__(message)
        self.operation_handle = operation_handle
        self.attempts = attempts


class ResponseParseError(HomeTourError):
    """A finished operation carried a response of unrecognized shape"""


class AssemblyError(HomeTourError):
    """The external video tool failed while building the output"""

    def __init__(self, message: str, diagnostics: str = ""):
        super().__init__(f"{message}: {diagnostics}" if diagnostics else message)
        self.diagnostics = diagnostics


# Substrings that mark a submission error as permanent
NON_RETRYABLE_MARKERS = (
    "quota",
    "resource_exhausted",
    "permission",
    "permission_denied",
    "invalid",
    "invalid_argument",
)


def is_non_retryable_message(message: str) -> bool:
    """True when an error message belongs to the quota/permission/invalid-argument classes"""
    lowered = message.lower()
    return any(marker in lowered for marker in NON_RETRYABLE_MARKERS)
