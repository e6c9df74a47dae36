"""Custom exception types for the Sprint Health Card generator."""


class SprintHealthError(Exception):
    """Base exception for all recoverable sprint health errors."""


class ConfigurationError(SprintHealthError):
    """Raised when runtime configuration values are missing or invalid."""


class AuthenticationError(SprintHealthError):
    """Raised when GitHub authentication credentials are unavailable or invalid."""


class ApiError(SprintHealthError):
    """Raised when a GitHub API request fails or returns an unexpected response."""


class DataValidationError(SprintHealthError):
    """Raised when API payloads do not meet expected constraints."""
