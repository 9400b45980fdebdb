from typing import Dict, Iterable, List
import pandas as pd

from payrun.payroll.aggregator import PayrollAggregator, RunTotals
from payrun.payroll.runs import StaffPayrollRecord

REGISTER_COLUMNS = [
    "staff_id", "staff_name", "basic_pay", "transport_allowance", "other_allowances", "gross_pay",
    "paye", "pension_employee", "maternity_employee", "medical_employee", "net_before_levy",
    "community_health_employee", "other_deductions", "final_net_pay",
    "pension_employer", "maternity_employer", "medical_employer", "community_health_employer",
]

LEVIES = ["paye", "pension", "maternity", "medical", "community_health"]

class PayrollReports:
    def __init__(self, records: Iterable[StaffPayrollRecord]):
        self.records: List[StaffPayrollRecord] = list(records)
        self.aggregator = PayrollAggregator()

    def register(self) -> pd.DataFrame:
        if not self.records: return pd.DataFrame(columns=REGISTER_COLUMNS)
        rows=[]
        for r in self.records:
            row=r.calculation.to_dict()
            row.pop("allowance_breakdown", None)
            row["staff_id"]=r.staff_id
            row["staff_name"]=r.staff_name
            rows.append(row)
        return pd.DataFrame(rows)[REGISTER_COLUMNS]

    def statutory_summary(self) -> pd.DataFrame:
        """Employee/employer totals per levy, as filed with the tax authority."""
        df=self.register()
        rows=[]
        for levy in LEVIES:
            if levy=="paye":
                employee=int(df["paye"].sum()) if not df.empty else 0
                employer=0
            else:
                employee=int(df[f"{levy}_employee"].sum()) if not df.empty else 0
                employer=int(df[f"{levy}_employer"].sum()) if not df.empty else 0
            rows.append({"levy":levy,"employee":employee,"employer":employer,"total":employee+employer})
        return pd.DataFrame(rows, columns=["levy","employee","employer","total"])

    def totals(self) -> RunTotals:
        return self.aggregator.aggregate(self.records)

    def reconciles(self) -> Dict[str, bool]:
        """Register sums agree with the aggregator and the levy summary."""
        t=self.totals()
        summary=self.statutory_summary()
        employee_tax=int(summary["employee"].sum())
        employer=int(summary["employer"].sum())
        return {"EmployeeTax":employee_tax==t.total_employee_tax,
                "EmployerContributions":employer==t.total_employer_contributions}
