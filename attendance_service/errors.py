"""
Error taxonomy for Attendance Service.
"""


class AttendanceError(Exception):
    """Base class for all service errors."""


class InvalidInput(AttendanceError):
    """Bad registration, name, record body or timestamp."""


class DimensionMismatch(AttendanceError):
    """Embedding length differs from the registered embeddings."""
    
    def __init__(self, expected: int, actual: int):
        super().__init__(f'Expected embedding of length {expected}, got {actual}')
        self.expected = expected
        self.actual = actual


class StorageFailure(AttendanceError):
    """Ledger read or write failed."""


class NotReady(AttendanceError):
    """Pipeline used before init() or after shutdown()."""
