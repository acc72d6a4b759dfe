"""
Base Value Object Classes for Domain-Driven Design

Value Objects are immutable domain primitives that have no identity.
They are compared by their values, not by reference.
"""

from abc import ABC
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Self

# Smallest currency unit every monetary amount is quantized to
MONEY_QUANTUM = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert a numeric value to Decimal without float artifacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Decimal | int | float | str) -> Decimal:
    """Quantize an amount to the smallest currency unit (half-up)."""
    return to_decimal(value).quantize(MONEY_QUANTUM, ROUND_HALF_UP)


@dataclass(frozen=True)
class ValueObject(ABC):
    """
    Base class for all value objects.

    Value objects are:
    - Immutable (frozen=True)
    - Compared by value (dataclass equality)
    - Have no identity

    Example:
        ```python
        @dataclass(frozen=True)
        class PostalCode(ValueObject):
            value: str

            def _validate(self):
                if not self.value.isdigit():
                    raise ValueError("Invalid postal code")
        ```
    """

    def __post_init__(self):
        """Override to add validation logic."""
        self._validate()

    def _validate(self) -> None:
        """Validate the value object. Override in subclasses."""
        pass


@dataclass(frozen=True)
class Percentage(ValueObject):
    """
    Percentage value object.

    Represents a percentage value (0-100 or custom range).
    """

    value: Decimal
    min_value: Decimal = Decimal("0")
    max_value: Decimal = Decimal("100")

    def _validate(self) -> None:
        if not isinstance(self.value, Decimal):
            object.__setattr__(self, "value", to_decimal(self.value))
        if self.value < self.min_value or self.value > self.max_value:
            raise ValueError(f"Percentage must be between {self.min_value} and {self.max_value}")

    def as_decimal(self) -> Decimal:
        """Get percentage as decimal (0.0 - 1.0)."""
        return self.value / HUNDRED

    def apply_to(self, amount: Decimal) -> Decimal:
        """Apply percentage to an amount."""
        return amount * self.as_decimal()

    def __str__(self) -> str:
        return f"{self.value}%"


@dataclass(frozen=True)
class Address(ValueObject):
    """
    Shipping address snapshot.
    """

    receiver_name: str
    phone: str
    province: str
    city: str
    address: str
    postal_code: str

    def _validate(self) -> None:
        if not self.receiver_name or not self.address or not self.city:
            raise ValueError("Receiver name, city and address are required")
        digits = "".join(c for c in self.phone if c.isdigit())
        if len(digits) < 8:
            raise ValueError(f"Invalid phone number: {self.phone}")

    def get_full_address(self) -> str:
        """Get full formatted address."""
        parts = [self.address, self.city, self.province, self.postal_code]
        return ", ".join(p for p in parts if p)

    def to_dict(self) -> dict[str, str]:
        return {
            "receiver_name": self.receiver_name,
            "phone": self.phone,
            "province": self.province,
            "city": self.city,
            "address": self.address,
            "postal_code": self.postal_code,
        }

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> "Address":
        return cls(
            receiver_name=data["receiver_name"],
            phone=data["phone"],
            province=data.get("province", ""),
            city=data["city"],
            address=data["address"],
            postal_code=data.get("postal_code", ""),
        )

    def __str__(self) -> str:
        return self.get_full_address()


class StatusEnum(str, Enum):
    """
    Base class for status enums.

    Provides common functionality for all status value objects.
    """

    @classmethod
    def values(cls) -> list[str]:
        """Get all possible values."""
        return [e.value for e in cls]

    @classmethod
    def from_string(cls, value: str) -> Self:
        """Create from string value (case-insensitive)."""
        for member in cls:
            if member.value.lower() == value.lower():
                return member
        raise ValueError(f"Invalid {cls.__name__}: {value}")
