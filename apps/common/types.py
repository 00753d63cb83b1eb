"""
Core type system for Tessera Platform
Rust-inspired Result pattern and business exceptions.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

# Type variables for generic Result
T = TypeVar('T')  # Success type
E = TypeVar('E')  # Error type

# ===============================================================================
# RESULT TYPES
# ===============================================================================

@dataclass(frozen=True)
class Ok(Generic[T]):
    """Success result containing a value"""
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the success value"""
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, func: Callable[[T], Any]) -> Result[Any, Any]:
        """Transform the success value"""
        try:
            return Ok(func(self.value))
        except Exception as e:
            return Err(str(e))


@dataclass(frozen=True)
class Err(Generic[E]):
    """Error result containing an error value"""
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> Any:
        """Raises an exception - use unwrap_or() for safe access"""
        raise ValueError(f"Called unwrap on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, func: Callable[[Any], Any]) -> Result[Any, E]:
        """No-op for error results"""
        return self


Result = Ok[T] | Err[E]

# ===============================================================================
# BUSINESS EXCEPTIONS
# ===============================================================================

class BusinessError(Exception):
    """Base business logic error"""

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(BusinessError):
    """Data validation error"""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}", "validation_error")


class NotFoundError(BusinessError):
    """Requested record does not exist within the tenant"""

    def __init__(self, entity: str, identifier: Any):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier} not found", "not_found")


class InsufficientStockError(BusinessError):
    """Stock decrement would oversell a product that disallows backorders"""

    def __init__(self, product_id: Any, country: str, available: int, requested: int):
        self.product_id = product_id
        self.country = country
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {product_id} in {country}: "
            f"available {available}, requested {requested}",
            "insufficient_stock",
        )


class ExternalServiceError(BusinessError):
    """Price or exchange-rate provider failed or returned unusable data"""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service}: {message}", "external_service_error")
