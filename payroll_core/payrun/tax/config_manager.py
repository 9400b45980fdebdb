"""
Tax configuration management with versioning by effective date.
"""
import json
import logging
from typing import Dict, List, Any, Optional
from datetime import datetime
from pathlib import Path

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import ConfigurationError
from ..core.utils import atomic_write_json, is_valid_date
from .models import ContributionRatePair, PayeTaxBracket, TaxConfiguration

logger = logging.getLogger(__name__)

def default_tax_configuration(settings: Settings = None, effective_date: Optional[str] = None) -> TaxConfiguration:
    """Rwanda statutory defaults (PAYE, RSSB pension/maternity, RAMA, CBHI)."""
    s = settings or default_settings
    return TaxConfiguration(
        paye_brackets=tuple(PayeTaxBracket(min=lo, max=hi, rate=rate) for lo, hi, rate in s.PAYE_BRACKETS),
        pension=ContributionRatePair(s.PENSION_EMPLOYEE_RATE, s.PENSION_EMPLOYER_RATE),
        maternity=ContributionRatePair(s.MATERNITY_EMPLOYEE_RATE, s.MATERNITY_EMPLOYER_RATE),
        medical=ContributionRatePair(s.MEDICAL_EMPLOYEE_RATE, s.MEDICAL_EMPLOYER_RATE),
        community_health=ContributionRatePair(s.COMMUNITY_HEALTH_EMPLOYEE_RATE, s.COMMUNITY_HEALTH_EMPLOYER_RATE),
        effective_date=effective_date or s.DEFAULT_EFFECTIVE_DATE,
    )

class TaxConfigRepository:
    """JSON file store of configuration snapshots, one per effective date."""

    def __init__(self, company_id: str, data_dir: Optional[str] = None):
        self.company_id = company_id
        self.entity_dir = Path(data_dir or default_settings.DATA_DIR) / "tax_configs"
        self.entity_dir.mkdir(parents=True, exist_ok=True)

    def _get_data_file(self) -> Path:
        return self.entity_dir / f"{self.company_id}_tax_configs.json"

    def load_data(self) -> List[Dict[str, Any]]:
        data_file = self._get_data_file()
        if not data_file.exists():
            return []
        with open(data_file, 'r', encoding='utf-8') as f:
            try:
                return json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"tax config store {data_file} is corrupt: {e}") from e

    def save_data(self, data: List[Dict[str, Any]]):
        atomic_write_json(str(self._get_data_file()), data)

    def upsert(self, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a snapshot or replace the one with the same effective date."""
        current = self.load_data()
        effective_date = snapshot['effective_date']
        now = datetime.now().isoformat()

        for record in current:
            if record.get('effective_date') == effective_date:
                record['config'] = snapshot
                record['last_updated'] = now
                record['version'] = record.get('version', 1) + 1
                self.save_data(current)
                return record

        record = {
            'effective_date': effective_date,
            'config': snapshot,
            'version': 1,
            'created_at': now,
            'last_updated': now,
        }
        current.append(record)
        current.sort(key=lambda r: r['effective_date'])
        self.save_data(current)
        return record

    def find_effective(self, effective_date: str) -> Optional[Dict[str, Any]]:
        """Latest snapshot whose effective date is on or before ``effective_date``."""
        valid = [r for r in self.load_data() if r.get('effective_date', '') <= effective_date]
        if not valid:
            return None
        return max(valid, key=lambda r: r['effective_date'])

class TaxConfigManager:
    """Versioned tax configuration snapshots for one company."""

    def __init__(self, company_id: str, repository: TaxConfigRepository = None, settings: Settings = None):
        self.company_id = company_id
        self.repository = repository or TaxConfigRepository(company_id)
        self.settings = settings or default_settings

    def save_config(self, config: TaxConfiguration) -> Dict[str, Any]:
        record = self.repository.upsert(config.to_dict())
        logger.info("Tax configuration for %s effective %s saved (version %s)",
                    self.company_id, config.effective_date, record['version'])
        return record

    def get_active_config(self, effective_date: Optional[str] = None) -> TaxConfiguration:
        """Configuration in force on ``effective_date`` (today by default).

        Falls back to the statutory defaults when nothing has been saved yet.
        """
        if not effective_date:
            effective_date = datetime.now().strftime('%Y-%m-%d')
        if not is_valid_date(effective_date):
            raise ConfigurationError(f"expected YYYY-MM-DD, got {effective_date!r}", config_key="effective_date")

        record = self.repository.find_effective(effective_date)
        if record is None:
            logger.warning("No tax configuration for %s on %s, using defaults", self.company_id, effective_date)
            return default_tax_configuration(self.settings)
        return TaxConfiguration.from_dict(record['config'])

    def list_versions(self) -> List[Dict[str, Any]]:
        return [
            {'effective_date': r['effective_date'], 'version': r.get('version', 1),
             'last_updated': r.get('last_updated')}
            for r in self.repository.load_data()
        ]
