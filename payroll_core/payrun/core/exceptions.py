"""
Exceptions raised by the payroll calculation core and run lifecycle.
"""
from typing import Any, Dict, List, Optional


class PayrollError(Exception):
    """Base exception for the payroll core."""
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(PayrollError, ValueError):
    """Malformed tax configuration (brackets, rates, dates)."""
    def __init__(self, message: str, config_key: Optional[str] = None):
        if config_key:
            message = f"{config_key}: {message}"
        super().__init__(message)
        self.config_key = config_key


class ValidationError(PayrollError, ValueError):
    """Caller-supplied amount or argument violates a precondition."""
    def __init__(self, message: str, field: Optional[str] = None):
        if field:
            message = f"{field}: {message}"
        super().__init__(message)
        self.field = field


class NonConvergenceError(PayrollError):
    """Gross-up search hit its iteration cap before reaching tolerance.

    The best estimate found so far is attached so callers may still use it
    knowingly.
    """
    def __init__(self, target_net_pay: int, iterations: int, best_gross: int, best_calculation: Any):
        super().__init__(
            f"Gross-up for net {target_net_pay} did not converge after {iterations} iterations "
            f"(best estimate {best_gross})"
        )
        self.target_net_pay = target_net_pay
        self.iterations = iterations
        self.best_gross = best_gross
        self.best_calculation = best_calculation


class InvalidTransitionError(PayrollError):
    """Lifecycle action attempted from a state that does not allow it."""
    def __init__(self, action: str, current_status: str, required_status: str, run_id: Optional[str] = None):
        target = f"run {run_id}" if run_id else "run"
        super().__init__(
            f"Cannot {action} {target}: status is '{current_status}', requires '{required_status}'"
        )
        self.action = action
        self.current_status = current_status
        self.required_status = required_status
        self.run_id = run_id


class ConcurrentTransitionError(InvalidTransitionError):
    """Run status changed between read and write; the transition was not applied."""


class NotFoundError(PayrollError, KeyError):
    def __init__(self, resource: str, identifier: Any):
        super().__init__(f"{resource} with identifier {identifier} not found")
        self.resource = resource
        self.identifier = identifier

    def __str__(self):
        return self.message


class RunComputationError(PayrollError):
    """One or more staff members could not be computed; the run was not created."""
    def __init__(self, period: str, failures: List[Dict[str, str]]):
        ids = ", ".join(f["staff_id"] for f in failures)
        super().__init__(f"Payroll run for {period} aborted: {len(failures)} staff failed ({ids})")
        self.period = period
        self.failures = failures
