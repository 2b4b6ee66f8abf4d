class PersistenceError(Exception):
    """Base exception for the save subsystem.

    Expected failures (missing slot, invalid JSON, ...) are reported as result
    values. Exceptions are reserved for environment and programmer errors.
    """


class StorageError(PersistenceError):
    """Raised by storage adapters when the backing store cannot be read or written."""


class MigrationError(PersistenceError):
    """Raised by a schema upgrader when its input does not match the expected older shape."""


class ConfigError(PersistenceError):
    """Raised when a configuration file cannot be parsed or holds unknown keys."""
