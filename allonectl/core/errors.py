"""Domain-specific errors for allonectl."""


class AllOneError(Exception):
    """Base error for allonectl."""


class SettingsValidationError(AllOneError):
    """Raised when the settings file does not conform to schema or semantics."""


class SettingsLoadError(AllOneError):
    """Raised when reading the settings file fails."""


class PersistenceError(AllOneError):
    """Raised when the configuration document cannot be loaded or saved."""


class MalformedRequestError(AllOneError):
    """Raised when a request payload cannot be interpreted."""


class UnknownActionError(AllOneError):
    """Raised when a request names an action outside the accepted vocabulary."""

    def __init__(self, action: str) -> None:
        super().__init__(f"Unknown action: {action}")
        self.action = action


class DuplicateGroupError(AllOneError):
    """Raised when a code group with the same name already exists."""

    def __init__(self, name: str) -> None:
        super().__init__(f"A code group named '{name}' already exists")
        self.name = name


class LearningConflictError(AllOneError):
    """Raised when learning is armed while another session is still waiting."""


class DeviceSelectionError(AllOneError):
    """Raised when a device or stored code cannot be resolved to a single target."""


class TransportError(AllOneError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised when the UDP socket cannot be opened or bound."""


class TransportSendError(TransportError):
    """Raised when a packet cannot be sent."""


class TransportTimeoutError(TransportError):
    """Raised when a device does not acknowledge in time."""
