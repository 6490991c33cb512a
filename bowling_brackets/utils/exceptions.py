"""
Custom exceptions for the bracket engine with user-friendly error messages.

Every exception carries a stable ``code`` and a ``details`` dict so that the
operations layer can turn it into a failure result without losing the numbers
a caller needs to act on (for example how many competitors are missing).
"""

from typing import Any, Dict, Optional


class ContractError(ValueError):
    """Raised when a caller breaks the calling contract (e.g. no session id).

    This is deliberately not a BracketEngineException: it is never turned into
    a failure result and always propagates to the caller.
    """
    pass


class BracketEngineException(Exception):
    """Base exception for bracket-engine errors."""
    code = 'engine_error'

    def __init__(self, message: str, user_message: str = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.user_message = user_message or message
        self.details = details or {}


class ValidationError(BracketEngineException):
    """Raised when input validation fails."""
    code = 'invalid_input'

    def __init__(self, field: str, reason: str):
        super().__init__(
            f"Invalid value for '{field}': {reason}",
            f"Invalid {field}: {reason}",
            {'field': field}
        )
        self.field = field


class InsufficientPoolError(BracketEngineException):
    """Raised when fewer competitors are eligible than one bracket holds."""
    code = 'insufficient_pool'

    def __init__(self, pool_size: int, bracket_size: int, bracket_type: str = None):
        needed = bracket_size - pool_size
        label = f"{bracket_type} brackets" if bracket_type else "a bracket"
        super().__init__(
            f"Pool of {pool_size} is below bracket size {bracket_size}",
            f"Need at least {bracket_size} competitors for {label}. "
            f"Currently have {pool_size}. Need {needed} more.",
            {'pool_size': pool_size, 'needed': needed}
        )
        self.pool_size = pool_size
        self.needed = needed


class UnevenPoolError(BracketEngineException):
    """Raised when the pool does not split into complete brackets."""
    code = 'uneven_pool'

    def __init__(self, pool_size: int, bracket_size: int):
        full_groups, remainder = divmod(pool_size, bracket_size)
        needed_to_complete = bracket_size - remainder
        bracket_word = "bracket" if full_groups == 1 else "brackets"
        super().__init__(
            f"Pool of {pool_size} leaves a remainder of {remainder}",
            f"Cannot create complete brackets. Have {pool_size} competitors, which creates "
            f"{full_groups} complete {bracket_word} with {remainder} remaining. "
            f"Need {needed_to_complete} more competitors or remove {remainder}.",
            {
                'pool_size': pool_size,
                'full_groups': full_groups,
                'remainder': remainder,
                'needed_to_complete': needed_to_complete,
                'to_remove': remainder,
            }
        )
        self.pool_size = pool_size
        self.full_groups = full_groups
        self.remainder = remainder
        self.needed_to_complete = needed_to_complete
        self.to_remove = remainder


class BracketFullError(BracketEngineException):
    """Raised when seeding into a bracket that has no free seat."""
    code = 'bracket_full'

    def __init__(self, bracket_id: int, capacity: int):
        super().__init__(
            f"Bracket {bracket_id} already holds {capacity} entries",
            f"This bracket is full ({capacity} of {capacity})."
        )


class PositionTakenError(BracketEngineException):
    """Raised when a bracket position is already occupied."""
    code = 'position_taken'

    def __init__(self, bracket_id: int, position: int):
        super().__init__(
            f"Position {position} in bracket {bracket_id} is occupied",
            f"Position {position} is already taken in this bracket.",
            {'position': position}
        )


class DuplicateEntryError(BracketEngineException):
    """Raised when a competitor is seeded twice into the same bracket."""
    code = 'duplicate_entry'

    def __init__(self, bracket_id: int, competitor_id: int):
        super().__init__(
            f"Competitor {competitor_id} already entered in bracket {bracket_id}",
            "This competitor is already in the bracket."
        )


class NotFoundError(BracketEngineException):
    """Raised when a referenced record does not exist."""
    code = 'not_found'

    def __init__(self, kind: str, record_id: Any):
        super().__init__(
            f"{kind} record {record_id} not found",
            f"No record {record_id} found in {kind.replace('_', ' ')}.",
            {'kind': kind, 'id': record_id}
        )


class NoBracketsError(BracketEngineException):
    """Raised when a session has no brackets of the requested type."""
    code = 'no_brackets'

    def __init__(self, session_id: int, bracket_type: str):
        super().__init__(
            f"No {bracket_type} brackets for session {session_id}",
            "No brackets found to progress."
        )


class NoEntriesError(BracketEngineException):
    """Raised when the eliminator has no active entries for a game."""
    code = 'no_entries'

    def __init__(self, session_id: int, game_number: int):
        super().__init__(
            f"No active eliminator entries for session {session_id}, game {game_number}",
            "No eliminator entries found for this game.",
            {'game_number': game_number}
        )


class StoreError(BracketEngineException):
    """Raised when the record store fails."""
    code = 'store_error'

    def __init__(self, operation: str, details: str = None):
        super().__init__(
            f"Store error during {operation}: {details}",
            "Storage error occurred. Please try again later."
        )
        self.operation = operation


class TransientStoreError(StoreError):
    """Raised for store failures that may succeed when retried."""
    code = 'store_unavailable'


class StoreValidationError(StoreError):
    """Raised when the store rejects a write as invalid. Never retried."""
    code = 'store_rejected'

    def __init__(self, operation: str, details: str = None):
        BracketEngineException.__init__(
            self,
            f"Store rejected {operation}: {details}",
            "The record was rejected by storage."
        )
        self.operation = operation


class RecordNotFoundError(NotFoundError):
    """Raised by a record store when a lookup by id misses."""
    pass


class BackendFailureError(BracketEngineException):
    """Raised when a store operation keeps failing after all retries."""
    code = 'backend_failure'

    def __init__(self, operation: str, attempts: int):
        super().__init__(
            f"Store operation {operation} failed after {attempts} attempts",
            "Storage is unavailable. Please try again later.",
            {'attempts': attempts}
        )


class OperationTimeoutError(BracketEngineException):
    """Raised when an operation exceeds its deadline."""
    code = 'timeout'

    def __init__(self, operation: str, timeout: float):
        super().__init__(
            f"{operation} exceeded its {timeout}s deadline",
            f"The operation timed out after {timeout} seconds. Records already written were kept.",
            {'timeout': timeout}
        )


class LockUnavailableError(BracketEngineException):
    """Raised when another caller holds the lock for a scope too long."""
    code = 'busy'

    def __init__(self, key: str, waited: float):
        super().__init__(
            f"Could not acquire lock {key} within {waited}s",
            "Another update for this session is in progress. Please try again shortly.",
            {'lock': key}
        )
