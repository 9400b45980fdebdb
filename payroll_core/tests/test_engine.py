import logging
import random
from dataclasses import replace

import pytest

from payrun.core.exceptions import ValidationError
from payrun.payroll.engine import PayrollCalculation, PayrollCalculationEngine, StaffPayInput
from payrun.tax.models import StatutoryToggles

def test_reference_scenario(tax_config):
    calc = PayrollCalculationEngine().calculate(450000, 400000, 50000, 0, tax_config)
    assert calc.other_allowances == 0
    assert calc.paye == 99000
    assert (calc.pension_employee, calc.pension_employer) == (27000, 36000)
    assert (calc.maternity_employee, calc.maternity_employer) == (1200, 1200)
    assert (calc.medical_employee, calc.medical_employer) == (30000, 30000)
    assert calc.net_before_levy == 292800
    assert calc.community_health_employee == 1464
    assert calc.final_net_pay == 291336
    assert calc.total_employee_tax == 99000 + 27000 + 1200 + 30000 + 1464
    assert calc.total_employer_contributions == 36000 + 1200 + 30000

def test_other_allowances_and_breakdown(tax_config):
    calc = PayrollCalculationEngine().calculate(
        300000, 200000, 30000, 5000, tax_config, allowance_breakdown={"housing": 70000}
    )
    assert calc.other_allowances == 70000
    assert calc.allowance_breakdown == {"housing": 70000}
    assert calc.other_deductions == 5000

def test_transport_exempt_from_maternity_and_medical_on_basic_only(tax_config):
    calc = PayrollCalculationEngine().calculate(100000, 60000, 20000, 0, tax_config)
    assert calc.maternity_employee == 240      # 0.3% of 80000
    assert calc.medical_employee == 4500       # 7.5% of 60000
    assert calc.pension_employee == 6000       # 6% of full gross

def test_net_pay_identity_over_random_inputs(tax_config):
    rng = random.Random(20240101)
    engine = PayrollCalculationEngine()
    for _ in range(300):
        basic = rng.randint(0, 3_000_000)
        transport = rng.randint(0, 200_000)
        allowances = rng.randint(0, 500_000)
        other = rng.randint(0, 100_000)
        calc = engine.calculate(basic + transport + allowances, basic, transport, other, tax_config)
        assert calc.final_net_pay == (
            calc.gross_pay - calc.paye - calc.pension_employee - calc.maternity_employee
            - calc.medical_employee - calc.community_health_employee - calc.other_deductions
        )
        assert calc.final_net_pay == calc.gross_pay - calc.total_employee_tax - other
        assert min(calc.paye, calc.pension_employee, calc.maternity_employee,
                   calc.medical_employee, calc.community_health_employee) >= 0

def test_net_pay_rises_with_gross(tax_config):
    # compared 1000 units apart: independently rounded components can wobble by
    # a unit or two between neighbouring amounts
    engine = PayrollCalculationEngine()
    previous = None
    for gross in range(0, 3_000_001, 1000):
        net = engine.calculate(gross, gross, 0, 0, tax_config).final_net_pay
        if previous is not None:
            assert net >= previous
        previous = net

def test_disabled_levies_are_zero(tax_config):
    config = replace(tax_config, toggles=StatutoryToggles(community_health=False, medical=False))
    calc = PayrollCalculationEngine().calculate(450000, 400000, 50000, 0, config)
    assert calc.community_health_employee == 0
    assert calc.medical_employee == calc.medical_employer == 0
    assert calc.final_net_pay == 450000 - 99000 - 27000 - 1200

def test_negative_net_is_reported_not_clamped(tax_config, caplog):
    with caplog.at_level(logging.WARNING, logger="payrun.payroll.engine"):
        calc = PayrollCalculationEngine().calculate(100000, 100000, 0, 500000, tax_config)
    assert calc.final_net_pay < 0
    assert calc.is_negative_net
    # levy base is never negative
    assert calc.community_health_employee >= 0
    assert "Negative net pay" in caplog.text

@pytest.mark.parametrize("args", [
    (100000, 90000, 20000, 0),     # basic + transport above gross
    (-1, 0, 0, 0),
    (100000, 100000, 0, -5),
    (100000.0, 100000, 0, 0),
    (True, 0, 0, 0),
])
def test_invalid_amounts_raise(tax_config, args):
    with pytest.raises(ValidationError):
        PayrollCalculationEngine().calculate(*args, tax_config)

def test_calculate_many_and_dict_snapshot(tax_config):
    inputs = [
        StaffPayInput("s1", 450000, 400000, 50000, staff_name="Alice"),
        StaffPayInput("s2", 80000, 80000),
    ]
    results = PayrollCalculationEngine().calculate_many(inputs, tax_config)
    assert [r.gross_pay for r in results] == [450000, 80000]
    assert PayrollCalculation.from_dict(results[0].to_dict()) == results[0]
