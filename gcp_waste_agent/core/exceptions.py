"""
Core exception classes for GCP Waste Agent.
"""
from typing import Optional


class GCPWasteAgentError(Exception):
    """Base exception for all GCP Waste Agent errors."""
    
    def __init__(self, message: str, details: str = None):
        super().__init__(message)
        self.message = message
        self.details = details


class AuthenticationError(GCPWasteAgentError):
    """Raised when GCP credentials are missing or rejected."""
    pass


class ConfigurationError(GCPWasteAgentError):
    """Raised when configuration is invalid or missing."""
    pass


class InventoryError(GCPWasteAgentError):
    """Raised when the resource inventory cannot be fetched. Fatal to a run."""
    pass


class InventoryPermissionError(InventoryError):
    """Raised when the provider denies access to an inventory API."""

    def __init__(self, message: str, remediation_url: Optional[str] = None, details: str = None):
        super().__init__(message, details=details)
        self.remediation_url = remediation_url


class InventoryNetworkError(InventoryError):
    """Raised when the provider API is unreachable."""
    pass


class InventoryFormatError(InventoryError):
    """Raised when an inventory response or file is malformed."""
    pass


class ReasoningError(GCPWasteAgentError):
    """Raised when the reasoning service fails at transport or protocol level."""
    pass


class StateError(GCPWasteAgentError):
    """Raised when run state transitions or persistence fail."""
    pass


class ValidationError(GCPWasteAgentError):
    """Raised when input validation fails."""
    pass


class UserCancelled(GCPWasteAgentError):
    """Raised when user cancels operation (Ctrl+C at a prompt)."""

    def __init__(self, message: str = "Operation cancelled by user"):
        super().__init__(message)
