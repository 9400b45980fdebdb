import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from payrun.core.exceptions import ValidationError
from payrun.core.utils import percent_of, round_half_up
from payrun.tax.models import TaxConfiguration
from payrun.tax.payroll import (
    ZERO_CONTRIBUTION,
    ContributionCalculator,
    TaxBracketCalculator,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PayrollCalculation:
    """Computed statutory result for one staff member in one period."""
    gross_pay: int
    basic_pay: int
    transport_allowance: int
    other_allowances: int
    paye: int
    pension_employee: int
    pension_employer: int
    maternity_employee: int
    maternity_employer: int
    medical_employee: int
    medical_employer: int
    net_before_levy: int
    community_health_employee: int
    community_health_employer: int
    other_deductions: int
    final_net_pay: int
    allowance_breakdown: Dict[str, int] = field(default_factory=dict)

    @property
    def total_employee_contributions(self) -> int:
        return self.pension_employee + self.maternity_employee + self.medical_employee

    @property
    def total_employee_tax(self) -> int:
        return self.paye + self.total_employee_contributions + self.community_health_employee

    @property
    def total_employer_contributions(self) -> int:
        return (self.pension_employer + self.maternity_employer
                + self.medical_employer + self.community_health_employer)

    @property
    def is_negative_net(self) -> bool:
        return self.final_net_pay < 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PayrollCalculation":
        names = cls.__dataclass_fields__
        return cls(**{k: v for k, v in data.items() if k in names})


@dataclass(frozen=True)
class StaffPayInput:
    """Gross composition and non-statutory deductions for one staff member."""
    staff_id: str
    gross_pay: int
    basic_pay: int
    transport_allowance: int = 0
    other_deductions: int = 0
    staff_name: str = ""
    allowance_breakdown: Dict[str, int] = field(default_factory=dict)


def _require_int(value, name: str):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"expected an integer amount, got {value!r}", field=name)
    if value < 0:
        raise ValidationError(f"must be non-negative, got {value}", field=name)


class PayrollCalculationEngine:
    """Ordered statutory computation for one staff member.

    The order matters: the community-health levy is charged on net pay after
    PAYE and the employee contributions, so moving any step changes results.
    """

    def __init__(self, bracket_calculator: TaxBracketCalculator = None,
                 contribution_calculator: ContributionCalculator = None):
        self.brackets = bracket_calculator or TaxBracketCalculator()
        self.contributions = contribution_calculator or ContributionCalculator()

    def calculate(
        self,
        gross_pay: int,
        basic_pay: int,
        transport_allowance: int,
        other_deductions: int,
        tax_config: TaxConfiguration,
        allowance_breakdown: Optional[Dict[str, int]] = None,
    ) -> PayrollCalculation:
        for name, value in (("gross_pay", gross_pay), ("basic_pay", basic_pay),
                            ("transport_allowance", transport_allowance),
                            ("other_deductions", other_deductions)):
            _require_int(value, name)
        if gross_pay < basic_pay + transport_allowance:
            raise ValidationError(
                f"gross {gross_pay} is below basic {basic_pay} + transport {transport_allowance}",
                field="gross_pay",
            )
        toggles = tax_config.toggles

        # 1. allowances other than transport
        other_allowances = gross_pay - basic_pay - transport_allowance

        # 2. PAYE on full gross; contributions are not tax-deductible
        paye = self.brackets.compute_bracket_tax(gross_pay, tax_config.paye_brackets) if toggles.paye else 0

        # 3. pension on full gross
        pension = (self.contributions.compute_contribution(gross_pay, tax_config.pension)
                   if toggles.pension else ZERO_CONTRIBUTION)

        # 4. maternity, transport exempt
        maternity = (self.contributions.compute_contribution(gross_pay - transport_allowance, tax_config.maternity)
                     if toggles.maternity else ZERO_CONTRIBUTION)

        # 5. medical-association levy, basic pay only
        medical = (self.contributions.compute_contribution(basic_pay, tax_config.medical)
                   if toggles.medical else ZERO_CONTRIBUTION)

        # 6.
        net_before_levy = gross_pay - paye - pension.employee - maternity.employee - medical.employee

        # 7. community health on what is left, never on a negative base
        levy_base = max(0, net_before_levy)
        if toggles.community_health:
            ch_employee = round_half_up(percent_of(levy_base, tax_config.community_health.employee_rate))
            ch_employer = round_half_up(percent_of(levy_base, tax_config.community_health.employer_rate))
        else:
            ch_employee = ch_employer = 0

        # 8. not clamped
        final_net_pay = net_before_levy - ch_employee - other_deductions
        if final_net_pay < 0:
            logger.warning("Negative net pay %s for gross %s (other deductions %s)",
                           final_net_pay, gross_pay, other_deductions)

        return PayrollCalculation(
            gross_pay=gross_pay,
            basic_pay=basic_pay,
            transport_allowance=transport_allowance,
            other_allowances=other_allowances,
            paye=paye,
            pension_employee=pension.employee,
            pension_employer=pension.employer,
            maternity_employee=maternity.employee,
            maternity_employer=maternity.employer,
            medical_employee=medical.employee,
            medical_employer=medical.employer,
            net_before_levy=net_before_levy,
            community_health_employee=ch_employee,
            community_health_employer=ch_employer,
            other_deductions=other_deductions,
            final_net_pay=final_net_pay,
            allowance_breakdown=dict(allowance_breakdown or {}),
        )

    def calculate_input(self, pay_input: StaffPayInput, tax_config: TaxConfiguration) -> PayrollCalculation:
        return self.calculate(
            pay_input.gross_pay,
            pay_input.basic_pay,
            pay_input.transport_allowance,
            pay_input.other_deductions,
            tax_config,
            allowance_breakdown=pay_input.allowance_breakdown,
        )

    def calculate_many(self, inputs: Iterable[StaffPayInput], tax_config: TaxConfiguration) -> List[PayrollCalculation]:
        return [self.calculate_input(i, tax_config) for i in inputs]
