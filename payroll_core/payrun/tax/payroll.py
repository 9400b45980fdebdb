from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from payrun.core.exceptions import ValidationError
from payrun.core.utils import percent_of, round_half_up
from payrun.tax.models import ContributionRatePair, PayeTaxBracket, validate_brackets


@dataclass(frozen=True)
class ContributionAmounts:
    employee: int
    employer: int

    @property
    def total(self) -> int:
        return self.employee + self.employer


ZERO_CONTRIBUTION = ContributionAmounts(employee=0, employer=0)


def _require_amount(amount, field: str):
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError(f"expected an integer amount, got {amount!r}", field=field)
    if amount < 0:
        raise ValidationError(f"must be non-negative, got {amount}", field=field)


class TaxBracketCalculator:
    """Progressive PAYE over a bracket schedule."""

    def bracket_slices(self, amount: int, brackets: Iterable[PayeTaxBracket]):
        """Yield ``(bracket, taxable_slice)`` for each bracket the amount reaches."""
        brackets = validate_brackets(brackets)
        _require_amount(amount, "amount")
        floor = brackets[0].min
        for bracket in brackets:
            if amount <= floor:
                break
            upper = amount if bracket.max is None else min(amount, bracket.max)
            taxable = max(0, upper - floor)
            yield bracket, taxable
            if bracket.max is None:
                break
            floor = bracket.max

    def compute_bracket_tax(self, amount: int, brackets: Iterable[PayeTaxBracket]) -> int:
        # summed exactly, rounded once: per-bracket rounding drifts
        tax = Decimal(0)
        for bracket, taxable in self.bracket_slices(amount, brackets):
            tax += percent_of(taxable, bracket.rate)
        return round_half_up(tax)


class ContributionCalculator:
    """Employee/employer contribution pair against a single base.

    Each side is rounded on its own, so ``employee + employer`` can differ by
    one unit from rounding the combined rate.
    """

    def compute_contribution(self, base: int, rates: ContributionRatePair) -> ContributionAmounts:
        _require_amount(base, "base")
        return ContributionAmounts(
            employee=round_half_up(percent_of(base, rates.employee_rate)),
            employer=round_half_up(percent_of(base, rates.employer_rate)),
        )


_brackets = TaxBracketCalculator()
_contributions = ContributionCalculator()

def compute_bracket_tax(amount: int, brackets: Iterable[PayeTaxBracket]) -> int:
    return _brackets.compute_bracket_tax(amount, brackets)

def compute_contribution(base: int, rates: ContributionRatePair) -> ContributionAmounts:
    return _contributions.compute_contribution(base, rates)
