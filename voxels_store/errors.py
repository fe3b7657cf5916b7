"""
Voxels Store Exceptions

Defines the exception hierarchy for store error handling. Each error
carries a short code matching the status codes reported to the
surrounding application.
"""


class StoreError(Exception):
    """
    Base exception for all store errors.

    Attributes:
        code: str - Short error code (e.g., 'NOT_FOUND', 'NO_MEM')
    """

    code = 'FAIL'

    def __init__(self, message=None):
        """
        Initialize store error.

        Args:
            message: str - Error message (without code)
        """
        self.message = message
        if message:
            super().__init__(f'{self.code}: {message}')
        else:
            super().__init__(self.code)


class StorageNotPresentError(StoreError):
    """Raised when no storage medium is mounted or open."""

    code = 'NOT_PRESENT'

    def __init__(self, message='no storage medium available'):
        super().__init__(message)


class InvalidStateError(StoreError):
    """Raised when an operation is attempted while the store is not ready."""

    code = 'INVALID_STATE'

    def __init__(self, message='store is not ready'):
        super().__init__(message)


class NeedsFormatError(InvalidStateError):
    """
    Raised by CRUD calls while the medium is present but unformatted.

    Subclasses InvalidStateError so generic state handling still applies.
    """

    code = 'NEEDS_FORMAT'

    def __init__(self, message='storage present but not initialized; format required'):
        super().__init__(message)


class KeyNotFoundError(StoreError, KeyError):
    """Raised when a key is absent on get or delete."""

    code = 'NOT_FOUND'

    def __init__(self, key):
        self.key = key
        super().__init__(f'no such key {key!r}')

    def __str__(self):
        return Exception.__str__(self)


class CapacityExceededError(StoreError):
    """Raised when inserting a new key into a full table."""

    code = 'NO_MEM'

    def __init__(self, capacity):
        self.capacity = capacity
        super().__init__(f'database full ({capacity} entries)')


class StoreIOError(StoreError):
    """Raised when a file or namespace open, read, or write fails."""

    code = 'IO_FAILURE'


class InvalidArgumentError(StoreError, ValueError):
    """Raised for missing, empty or malformed keys and values."""

    code = 'INVALID_ARG'


class KeyTooLongError(InvalidArgumentError):
    """Raised when a key exceeds the configured byte bound."""

    def __init__(self, key, limit):
        self.key = key
        self.limit = limit
        super().__init__(f'key {key[:16]!r}... longer than {limit} bytes')


class ValueTooLongError(InvalidArgumentError):
    """Raised when a value exceeds the configured byte bound."""

    def __init__(self, key, limit):
        self.key = key
        self.limit = limit
        super().__init__(f'value for {key!r} longer than {limit} bytes')
