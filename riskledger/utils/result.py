"""Three-way result for lookups that may find nothing or find garbage."""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ResultStatus(str, Enum):
    OK = "ok"
    ABSENT = "absent"
    ERROR = "error"


@dataclass(frozen=True)
class Result(Generic[T]):
    status: ResultStatus
    value: T | None = None
    error: Exception | None = None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(ResultStatus.OK, value=value)

    @classmethod
    def absent(cls) -> "Result[T]":
        return cls(ResultStatus.ABSENT)

    @classmethod
    def failed(cls, error: Exception) -> "Result[T]":
        return cls(ResultStatus.ERROR, error=error)

    @property
    def is_ok(self) -> bool:
        return self.status is ResultStatus.OK

    @property
    def is_absent(self) -> bool:
        return self.status is ResultStatus.ABSENT

    @property
    def is_error(self) -> bool:
        return self.status is ResultStatus.ERROR

    def value_or(self, default: T) -> T:
        return self.value if self.is_ok else default

    def unwrap(self) -> T:
        """Return the value, raise the stored error, or raise LookupError when absent."""
        if self.is_ok:
            return self.value
        if self.is_error:
            raise self.error
        raise LookupError("no value stored")
