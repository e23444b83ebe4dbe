from quantum_orbitals.utils.error import (
    ErrorLevel,
    ErrorCode,
    CustomError,
    CriticalError,
    ValidationError,
    DomainError,
    ErrorHandler,
    raise_validation_error,
)
