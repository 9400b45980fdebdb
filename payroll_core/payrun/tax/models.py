"""
Value objects describing a statutory tax configuration snapshot.

A configuration is immutable and validated on construction, so any
calculation holding one can assume the brackets are contiguous and every
rate is within 0..100.
"""
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple

from payrun.core.exceptions import ConfigurationError
from payrun.core.utils import is_valid_date, to_decimal

HUNDRED = Decimal(100)


def _rate(value, key: str) -> Decimal:
    try:
        rate = to_decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ConfigurationError(f"rate {value!r} is not a number", config_key=key) from e
    if not rate.is_finite():
        raise ConfigurationError(f"rate {value!r} is not a finite number", config_key=key)
    return rate


def _check_rate(rate: Decimal, key: str):
    if rate < 0 or rate > HUNDRED:
        raise ConfigurationError(f"rate {rate} outside 0..100", config_key=key)


@dataclass(frozen=True)
class PayeTaxBracket:
    min: int
    max: Optional[int]
    rate: Decimal

    def __post_init__(self):
        object.__setattr__(self, "rate", _rate(self.rate, "paye_brackets.rate"))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PayeTaxBracket":
        return cls(min=data["min"], max=data["max"], rate=data["rate"])

    def to_dict(self) -> Dict[str, Any]:
        return {"min": self.min, "max": self.max, "rate": str(self.rate)}


def validate_brackets(brackets) -> Tuple[PayeTaxBracket, ...]:
    """Check a PAYE schedule is usable and return it as a tuple.

    Brackets must be ordered by ``min``, contiguous in whole currency units
    (the next ``min`` equals the previous ``max`` or ``max + 1``), and end
    with the single unbounded bracket.
    """
    brackets = tuple(brackets or ())
    if not brackets:
        raise ConfigurationError("at least one bracket is required", config_key="paye_brackets")

    for i, bracket in enumerate(brackets):
        key = f"paye_brackets[{i}]"
        if not isinstance(bracket.min, int) or bracket.min < 0:
            raise ConfigurationError(f"min must be a non-negative integer, got {bracket.min!r}", config_key=key)
        _check_rate(bracket.rate, key)
        last = i == len(brackets) - 1
        if bracket.max is None:
            if not last:
                raise ConfigurationError("only the last bracket may be unbounded", config_key=key)
            continue
        if last:
            raise ConfigurationError("last bracket must be unbounded (max=None)", config_key=key)
        if not isinstance(bracket.max, int) or bracket.max < bracket.min:
            raise ConfigurationError(f"max {bracket.max!r} below min {bracket.min}", config_key=key)
        following = brackets[i + 1]
        if following.min not in (bracket.max, bracket.max + 1):
            raise ConfigurationError(
                f"gap or overlap: bracket ends at {bracket.max}, next starts at {following.min}",
                config_key=f"paye_brackets[{i + 1}]",
            )
    return brackets


@dataclass(frozen=True)
class ContributionRatePair:
    employee_rate: Decimal
    employer_rate: Decimal = Decimal(0)

    def __post_init__(self):
        object.__setattr__(self, "employee_rate", _rate(self.employee_rate, "employee_rate"))
        object.__setattr__(self, "employer_rate", _rate(self.employer_rate, "employer_rate"))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContributionRatePair":
        # both sides are always stored, a zero employer share included
        return cls(employee_rate=data["employee"], employer_rate=data["employer"])

    def to_dict(self) -> Dict[str, str]:
        return {"employee": str(self.employee_rate), "employer": str(self.employer_rate)}


@dataclass(frozen=True)
class StatutoryToggles:
    """Company-level switches for which levies apply."""
    paye: bool = True
    pension: bool = True
    maternity: bool = True
    medical: bool = True
    community_health: bool = True

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, bool]]) -> "StatutoryToggles":
        data = data or {}
        return cls(**{k: bool(v) for k, v in data.items() if k in cls.__dataclass_fields__})

    def to_dict(self) -> Dict[str, bool]:
        return {k: getattr(self, k) for k in self.__dataclass_fields__}


@dataclass(frozen=True)
class TaxConfiguration:
    paye_brackets: Tuple[PayeTaxBracket, ...]
    pension: ContributionRatePair
    maternity: ContributionRatePair
    medical: ContributionRatePair
    community_health: ContributionRatePair
    effective_date: str
    toggles: StatutoryToggles = field(default_factory=StatutoryToggles)

    def __post_init__(self):
        object.__setattr__(self, "paye_brackets", validate_brackets(self.paye_brackets))
        for name in ("pension", "maternity", "medical", "community_health"):
            pair = getattr(self, name)
            _check_rate(pair.employee_rate, f"{name}.employee")
            _check_rate(pair.employer_rate, f"{name}.employer")
        if not is_valid_date(self.effective_date):
            raise ConfigurationError(f"expected YYYY-MM-DD, got {self.effective_date!r}", config_key="effective_date")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaxConfiguration":
        try:
            return cls(
                paye_brackets=tuple(PayeTaxBracket.from_dict(b) for b in data["paye_brackets"]),
                pension=ContributionRatePair.from_dict(data["pension"]),
                maternity=ContributionRatePair.from_dict(data["maternity"]),
                medical=ContributionRatePair.from_dict(data["medical"]),
                community_health=ContributionRatePair.from_dict(data["community_health"]),
                effective_date=data["effective_date"],
                toggles=StatutoryToggles.from_dict(data.get("toggles")),
            )
        except KeyError as e:
            raise ConfigurationError(f"missing key {e.args[0]!r}") from e
        except TypeError as e:
            raise ConfigurationError(f"malformed snapshot: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            "paye_brackets": [b.to_dict() for b in self.paye_brackets],
            "pension": self.pension.to_dict(),
            "maternity": self.maternity.to_dict(),
            "medical": self.medical.to_dict(),
            "community_health": self.community_health.to_dict(),
            "effective_date": self.effective_date,
            "toggles": self.toggles.to_dict(),
        }

