import logging
import os
import re
from decimal import Decimal, ROUND_HALF_UP
from logging.handlers import RotatingFileHandler
from pathlib import Path
import json
from datetime import datetime, timezone
from typing import Any, Union

from payrun.core.config import settings

PERIOD_RE = re.compile(r"^[0-9]{4}-(0[1-9]|1[0-2])$")
DATE_RE = re.compile(r"^[0-9]{4}-(0[1-9]|1[0-2])-(0[1-9]|[12][0-9]|3[01])$")

def mkdir_safe(path: str):
    Path(path).mkdir(parents=True, exist_ok=True)

def atomic_write_json(path: str, obj: Any):
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_suffix(".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, default=str)
    os.replace(str(tmp), str(p))

def setup_logging(company_id: str = "system", *, log_level: str = None):
    logger_name = f"{settings.APP_NAME}.{company_id}"
    logger = logging.getLogger(logger_name)
    if logger.handlers:
        return logger
    level = log_level or settings.LOG_LEVEL
    logger.setLevel(getattr(logging, level))
    audit_dir = settings.AUDIT_LOG_PATH
    mkdir_safe(audit_dir)
    logfile = Path(audit_dir) / f"{company_id}.log"
    handler = RotatingFileHandler(str(logfile), maxBytes=10_000_000, backupCount=5)
    formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    if os.getenv("DEV", "").lower() in ("1","true","yes"):
        ch = logging.StreamHandler()
        ch.setFormatter(formatter)
        logger.addHandler(ch)
    logger.propagate = False
    return logger

def to_decimal(value: Union[int, float, str, Decimal]) -> Decimal:
    # str() first so 0.3 stays 0.3 rather than its binary expansion
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))

def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def percent_of(amount: int, rate: Decimal) -> Decimal:
    return Decimal(amount) * rate / Decimal(100)

def is_valid_period(period: str) -> bool:
    return isinstance(period, str) and bool(PERIOD_RE.match(period))

def is_valid_date(value: str) -> bool:
    if not (isinstance(value, str) and DATE_RE.match(value)):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True

def utcnow() -> datetime:
    # naive UTC, matching the DateTime columns
    return datetime.now(timezone.utc).replace(tzinfo=None)
