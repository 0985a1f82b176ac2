"""Custom exceptions for the Outlook Meetings Scheduler."""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .credentials import DeviceCodeInfo


class OutlookSchedulerError(Exception):
    """Base exception for scheduler errors."""


class ConfigurationError(OutlookSchedulerError):
    """Raised when a field required by the selected auth mode is missing."""


class UnsupportedModeError(OutlookSchedulerError):
    """Raised when the auth mode is not one of the known modes."""


class UnsupportedOperationError(OutlookSchedulerError):
    """Raised when an operation is not valid for the active auth mode."""


class NotInitializedError(OutlookSchedulerError):
    """Raised when authentication is used before initialize() succeeded."""


class AuthenticationError(OutlookSchedulerError):
    """Raised when a token could not be acquired."""

    def __init__(
        self,
        message: str,
        error: Optional[str] = None,
        error_codes: Optional[list] = None,
    ):
        super().__init__(message)
        self.error = error
        self.error_codes = list(error_codes or [])


class PendingUserActionError(OutlookSchedulerError):
    """Raised while a device code sign-in is waiting for the user."""

    def __init__(self, device_code_info: "DeviceCodeInfo"):
        super().__init__(device_code_info.message)
        self.device_code_info = device_code_info
