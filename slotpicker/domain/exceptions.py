"""
Domain-specific exception hierarchy for the slotpicker application.
"""


class SlotPickerError(Exception):
    """Base class for all application-level errors."""


class InvalidRangeError(SlotPickerError, ValueError):
    """Raised when a query window does not end after it starts."""


class SlotSizeError(SlotPickerError, ValueError):
    """Raised when a requested slot size lies outside the supported range."""


class ConfigurationError(SlotPickerError):
    """Raised when the configuration file is missing or invalid."""


class CalendarAPIError(SlotPickerError):
    """Raised when calendar data cannot be fetched or parsed."""


class AuthenticationError(SlotPickerError):
    """Raised when authentication or token handling fails."""


class NotificationError(SlotPickerError):
    """Raised when a proposal mail cannot be delivered."""


class EmptySelectionError(SlotPickerError):
    """Raised when a proposal is submitted without any selected interval."""


class InvalidProposalError(SlotPickerError, ValueError):
    """Raised when a proposal lacks the guest's name or email."""


class ProposalStoreError(SlotPickerError):
    """Raised when the proposal file cannot be read or written."""
