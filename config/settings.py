# practice_pulse/config/settings.py
# CENTRALIZED CONFIGURATION HUB

import logging
import sys
from pathlib import Path
from typing import Dict, List, Literal, Tuple

from pydantic import BaseModel, DirectoryPath
from pydantic_settings import BaseSettings, SettingsConfigDict

settings_logger = logging.getLogger(__name__)

# --- Nested Models for Structured Configuration ---
class AnalyticsConfig(BaseModel):
    forecast_periods: int = 2; min_forecast_points: int = 3
    trend_stable_slope: float = 0.01; outlier_z_threshold: float = 1.5
    followup_windows_days: Tuple[int, int, int] = (7, 14, 28)
    online_weeks_per_month: float = 4.0
    similar_practice_band: float = 0.3; similar_practice_count: int = 5

class FragilityThreshold(BaseModel):
    min_wte: float = 0.5
    max_headcount: int = 1

class WorkforceConfig(BaseModel):
    default_working_days_per_month: int = 21
    appointments_per_wte_per_day: Dict[str, float] = {
        'GP_PARTNER': 25, 'GP_SALARIED': 25, 'GP_LOCUM': 25, 'GP_REGISTRAR': 20,
        'NURSE': 18, 'HCA': 12, 'PHARMACIST': 18, 'PHARM_TECH': 14,
        'PARAMEDIC': 20, 'PHYSIO': 16, 'MENTAL_HEALTH': 12, 'OTHER': 15,
    }
    fragility: Dict[str, FragilityThreshold] = {
        'gp': FragilityThreshold(), 'nurse': FragilityThreshold(), 'reception': FragilityThreshold(),
    }

class SharingConfig(BaseModel):
    expiry_days: int = 30; max_size_kb: int = 900
    share_id_length: int = 8; cleanup_batch_limit: int = 50
    comparison_max_workers: int = 8

# --- Main Settings Class ---
class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix='PRACTICE_PULSE_', case_sensitive=False, env_file='.env', env_file_encoding='utf-8', env_nested_delimiter='__', extra='ignore')

    PROJECT_ROOT_DIR: DirectoryPath = Path(__file__).resolve().parent.parent
    APP_NAME: str = "Practice Pulse Demand & Capacity"; APP_VERSION: str = "0.6.0"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    # CSV contract with the upload adapters
    RESERVED_APPOINTMENT_COLUMNS: List[str] = ['Date', 'Day']
    APPOINTMENT_ATTRIBUTE_COLUMNS: List[str] = ['Slot Type']
    WEEKEND_DAY_NAMES: List[str] = ['Sat', 'Sun', 'Saturday', 'Sunday']
    DATE_FORMATS: List[str] = ['%d/%m/%Y %H:%M:%S', '%d/%m/%Y %H:%M', '%d/%m/%Y', '%d %b %Y', '%d %B %Y', '%d-%b-%y', '%Y-%m-%d %H:%M:%S', '%Y-%m-%d']
    REQUIRED_COLUMNS: Dict[str, List[str]] = {
        'appointments': ['Date', 'Day'],
        'dna': ['Staff', 'Appointment Count'],
        'unused': ['Staff', 'Unused Slots', 'Total Slots'],
        'online_requests': ['Submission started', 'Type', 'Outcome'],
    }
    FORBIDDEN_ONLINE_COLUMNS: List[str] = ['Patient Name', 'Name', 'Patient', 'NHS Number']
    ONLINE_BOOKED_OUTCOME_MARKERS: List[str] = ['appointment offered', 'appointment booked']

    # Staff-name classification
    GP_NAME_MARKERS: List[str] = ['Dr']
    GP_LOCUM_MARKER: str = 'locum'
    DOCTOR_PREFIX_PATTERN: str = r'^Dr\b'

    ANALYTICS: AnalyticsConfig = AnalyticsConfig()
    WORKFORCE: WorkforceConfig = WorkforceConfig()
    SHARING: SharingConfig = SharingConfig()


def configure_logging(level: str = None) -> None:
    """Applies the project-wide logging format to a stdout handler."""
    logging.basicConfig(
        level=level or settings.LOG_LEVEL,
        format=settings.LOG_FORMAT,
        datefmt=settings.LOG_DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True
    )


try:
    settings = Settings()
    settings_logger.info(f"Settings loaded successfully. App: {settings.APP_NAME} v{settings.APP_VERSION}")
except Exception as e:
    settings_logger.critical(f"FATAL: Could not initialize Pydantic settings. Error: {e}", exc_info=True)
    raise
