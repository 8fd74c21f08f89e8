"""Exception types raised across the engine."""


class ConfigurationError(Exception):
    """Raised when the settings file cannot be read or fails validation."""


class InvalidAnsibleDocumentError(Exception):
    """
    Raised when the document being edited cannot be used as a completion prompt,
    either because it is not valid YAML or because its top level is not a list
    of plays or tasks.
    """


class LightspeedApiError(Exception):
    """Raised by the API client when a request fails or returns an unusable body."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
