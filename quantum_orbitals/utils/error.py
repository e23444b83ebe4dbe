from typing import Optional, List, Dict, Any, Union
import logging
import warnings
from enum import Enum, auto

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


class ErrorLevel(Enum):
    CRITICAL = auto()  # caller raises the returned exception
    ERROR = auto()     # logged and recorded, execution continues
    WARNING = auto()   # logged, recorded and emitted through warnings.warn


class ErrorCode(Enum):
    NOT_FOUND = "Missing file or unknown key"
    VALIDATION = "Invalid quantum state, count or setting"
    INVALID_INPUT = "Malformed input"
    DOMAIN = "Argument outside the function domain"
    SAMPLING_SHORTFALL = "Iteration cap reached before the requested sample size"
    PREFETCH_FAILURE = "Background computation failed"


class CustomError(Exception):
    """Exception carrying an ErrorCode and structured details"""

    def __init__(self, message: str, error_code: ErrorCode, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.error_code = error_code
        self.details: Dict[str, Any] = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.error_code.name}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {"error_code": self.error_code.name, "message": self.message, "details": self.details}


class CriticalError(CustomError):
    """Unrecoverable failure without a more specific type"""


class ValidationError(CustomError, ValueError):
    """A quantum state, atomic number, count or mode was rejected before computing"""


class DomainError(CustomError, ValueError):
    """A special function was called outside its domain"""


# exception type per code at CRITICAL level; anything else becomes CriticalError
critical_errors = {
    ErrorCode.VALIDATION: ValidationError,
    ErrorCode.INVALID_INPUT: ValidationError,
    ErrorCode.DOMAIN: DomainError,
}


class ErrorHandler:
    """
    Routes problems by severity.

    CRITICAL returns an exception for the caller to raise, so the raise stays
    visible at the call site. ERROR and WARNING are logged and kept in
    self.errors / self.warnings for later inspection.
    """

    def __init__(self) -> None:
        self.errors: List[Dict[str, Any]] = []
        self.warnings: List[Dict[str, Any]] = []

    def handle(self,
               message: str,
               error_code: ErrorCode,
               level: ErrorLevel,
               details: Optional[Dict[str, Any]] = None) -> Union[None, CustomError]:
        """
        Args:
            message: human readable description
            error_code: category of the problem
            level: severity
            details: values that help diagnose the problem

        Returns:
            the exception to raise for CRITICAL, otherwise None
        """
        if level == ErrorLevel.CRITICAL:
            return critical_errors.get(error_code, CriticalError)(message, error_code, details)

        record = {"message": message, "error_code": error_code, "details": details or {}}
        text = f"[{error_code.name}] {message}"
        if level == ErrorLevel.ERROR:
            self.errors.append(record)
            logger.error(text)
        else:
            self.warnings.append(record)
            logger.warning(text)
            warnings.warn(text, stacklevel=3)
        return None

    def has_errors(self) -> bool:
        return bool(self.errors)

    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def codes(self) -> List[ErrorCode]:
        """Codes of every recorded error and warning, in the order they occurred per level"""
        return [record["error_code"] for record in self.errors + self.warnings]

    def clear(self) -> None:
        self.errors = []
        self.warnings = []


def raise_validation_error(error_handler: ErrorHandler, message: str, details: Optional[Dict[str, Any]] = None) -> None:
    """Route a validation failure through the handler and raise it"""
    error = error_handler.handle(message, ErrorCode.VALIDATION, ErrorLevel.CRITICAL, details)
    if error:
        raise error
