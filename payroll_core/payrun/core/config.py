from pydantic import Field
from pydantic_settings import BaseSettings
from typing import List, Optional, Tuple

class Settings(BaseSettings):
    APP_NAME: str = Field("payrun", description="Root logger name and log file prefix")
    LOG_LEVEL: str = Field("INFO", description="Logging level for company loggers")
    AUDIT_LOG_PATH: str = Field("./data/logs", description="Directory for rotating logs and audit trails")
    DATA_DIR: str = Field("./data", description="Directory for file-backed stores (tax configs)")
    DB_URL: str = Field("sqlite:///./data/payroll.db", description="Database URL for payroll runs")

    # Gross-up solver
    GROSS_UP_TOLERANCE: int = 1
    GROSS_UP_MAX_ITERATIONS: int = 100
    GROSS_UP_CEILING_MULTIPLIER: float = 2.5

    # Statutory defaults (Rwanda)
    # PAYE brackets as (min, max, rate %), max None = unbounded
    PAYE_BRACKETS: List[Tuple[int, Optional[int], float]] = [
        (0, 60000, 0),
        (60001, 100000, 10),
        (100001, 200000, 20),
        (200001, None, 30),
    ]
    PENSION_EMPLOYEE_RATE: float = 6
    PENSION_EMPLOYER_RATE: float = 8
    MATERNITY_EMPLOYEE_RATE: float = 0.3
    MATERNITY_EMPLOYER_RATE: float = 0.3
    # RAMA medical-association levy, on basic pay only
    MEDICAL_EMPLOYEE_RATE: float = 7.5
    MEDICAL_EMPLOYER_RATE: float = 7.5
    # CBHI community health levy, on net pay before the levy
    COMMUNITY_HEALTH_EMPLOYEE_RATE: float = 0.5
    COMMUNITY_HEALTH_EMPLOYER_RATE: float = 0
    DEFAULT_EFFECTIVE_DATE: str = "2024-01-01"

settings = Settings()
