"""
Outcome types returned by every service operation.

The API layer inspects the outcome to pick a status code: ``Found`` is a
success, ``NotFound`` maps to 404 and ``Invalid`` maps to 400.
"""
from dataclasses import dataclass, field
from typing import Dict, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Found(Generic[T]):
    value: T


@dataclass(frozen=True)
class NotFound:
    entity: str
    id: str

    @property
    def message(self) -> str:
        return f"{self.entity} not found with id: {self.id}"


@dataclass(frozen=True)
class Invalid:
    message: str
    errors: Dict[str, str] = field(default_factory=dict)


Outcome = Union[Found[T], NotFound, Invalid]
