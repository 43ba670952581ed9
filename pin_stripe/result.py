"""Structured call results.

Client and verifier calls return ``Ok(value)`` or ``Err(error)`` instead of
raising. ``unwrap()`` is the single conversion point from a result to a raised
exception; it raises the carried error instance unchanged, so the error kind
survives the conversion.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from pin_stripe.errors import PinStripeError

T = TypeVar("T")
E = TypeVar("E", bound=PinStripeError)


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful result."""

    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Failed result carrying a (not raised) library error."""

    error: E

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        raise self.error


Result = Union[Ok[T], Err[E]]
