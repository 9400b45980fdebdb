"""
Gross-up: find the gross pay that yields a requested net pay.

The engine is treated as a black box evaluated at integer gross amounts and
searched by bisection. Net pay rises with gross, but each component rounds on
its own, so single-unit steps can wobble by a unit; the search therefore
settles on whichever end of the final bracket lands closest to the target.
"""
import logging
import math
from dataclasses import dataclass
from typing import Optional

from payrun.core.config import settings
from payrun.core.exceptions import NonConvergenceError, ValidationError
from payrun.payroll.engine import PayrollCalculation, PayrollCalculationEngine
from payrun.tax.models import TaxConfiguration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GrossUpResult:
    gross_amount: int
    calculation: PayrollCalculation
    iterations: int
    target_net_pay: int
    converged: bool = True

    @property
    def net_difference(self) -> int:
        return self.calculation.final_net_pay - self.target_net_pay


class GrossUpSolver:
    def __init__(
        self,
        engine: PayrollCalculationEngine = None,
        *,
        tolerance: Optional[int] = None,
        max_iterations: Optional[int] = None,
        ceiling_multiplier: Optional[float] = None,
    ):
        self.engine = engine or PayrollCalculationEngine()
        self.tolerance = settings.GROSS_UP_TOLERANCE if tolerance is None else tolerance
        self.max_iterations = settings.GROSS_UP_MAX_ITERATIONS if max_iterations is None else max_iterations
        # 30% top PAYE rate plus contributions leaves well over 40% of gross
        # as net, so 2.5x the target is a safe ceiling
        self.ceiling_multiplier = (settings.GROSS_UP_CEILING_MULTIPLIER
                                   if ceiling_multiplier is None else ceiling_multiplier)
        if self.tolerance < 1:
            raise ValidationError("tolerance must be at least 1 currency unit", field="tolerance")

    def search_window(self, target_net_pay: int, basic_pay: Optional[int],
                      transport_allowance: int, other_deductions: int):
        floor_gross = (basic_pay or 0) + transport_allowance
        low = max(target_net_pay, floor_gross)
        high = math.ceil((target_net_pay + other_deductions) * self.ceiling_multiplier)
        return low, max(low, high)

    def solve(
        self,
        target_net_pay: int,
        basic_pay: Optional[int],
        transport_allowance: int,
        other_deductions: int,
        tax_config: TaxConfiguration,
    ) -> GrossUpResult:
        """Find the gross whose final net pay is within tolerance of ``target_net_pay``.

        ``basic_pay=None`` treats all non-transport gross as basic pay; an
        integer holds basic pay fixed while other allowances absorb the rest.

        Raises NonConvergenceError if the iteration cap is hit first, and
        ValidationError if no gross inside the search window can reach the
        target.
        """
        if isinstance(target_net_pay, bool) or not isinstance(target_net_pay, int) or target_net_pay <= 0:
            raise ValidationError(f"must be a positive integer, got {target_net_pay!r}", field="target_net_pay")

        def evaluate(gross: int) -> PayrollCalculation:
            basic = gross - transport_allowance if basic_pay is None else basic_pay
            return self.engine.calculate(gross, basic, transport_allowance, other_deductions, tax_config)

        low, high = self.search_window(target_net_pay, basic_pay, transport_allowance, other_deductions)
        low_calc = evaluate(low)
        if low_calc.final_net_pay >= target_net_pay:
            if low_calc.final_net_pay - target_net_pay <= self.tolerance:
                return GrossUpResult(low, low_calc, 0, target_net_pay)
            raise ValidationError(
                f"net pay at the minimum gross {low} is already {low_calc.final_net_pay}",
                field="target_net_pay",
            )
        high_calc = evaluate(high)
        if high_calc.final_net_pay < target_net_pay - self.tolerance:
            raise ValidationError(
                f"net pay at the search ceiling {high} is only {high_calc.final_net_pay}",
                field="target_net_pay",
            )

        iterations = 0
        while high - low > self.tolerance and iterations < self.max_iterations:
            mid = (low + high) // 2
            calc = evaluate(mid)
            iterations += 1
            if calc.final_net_pay == target_net_pay:
                logger.debug("Gross-up exact hit at %s after %s iterations", mid, iterations)
                return GrossUpResult(mid, calc, iterations, target_net_pay)
            if calc.final_net_pay > target_net_pay:
                high, high_calc = mid, calc
            else:
                low, low_calc = mid, calc

        best_gross, best_calc = min(
            ((low, low_calc), (high, high_calc)),
            key=lambda c: (abs(c[1].final_net_pay - target_net_pay), c[0]),
        )
        if high - low > self.tolerance:
            logger.warning("Gross-up for net %s stopped at the %s iteration cap", target_net_pay, iterations)
            raise NonConvergenceError(target_net_pay, iterations, best_gross, best_calc)

        logger.debug("Gross-up for net %s converged to %s in %s iterations", target_net_pay, best_gross, iterations)
        return GrossUpResult(best_gross, best_calc, iterations, target_net_pay)
