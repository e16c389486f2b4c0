# practice_pulse/tests/conftest.py
# PYTEST FIXTURES

import sys
from pathlib import Path

# --- Path Setup for Module Imports ---
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pandas as pd
import pytest

from config import ProcessingConfig

# --- Upload Fixtures ---

@pytest.fixture
def appointments_rows() -> list:
    """
    Pivot-format appointments covering Dec-24, Jan-25 and Feb-25, deliberately
    out of order, with one weekend row and one unparseable date.
    """
    return [
        {'Date': '06/01/2025', 'Day': 'Mon', 'Dr Smith': '10', 'Nurse Jones': '5'},
        {'Date': '02/12/2024', 'Day': 'Mon', 'Dr Smith': '8', 'Nurse Jones': '4'},
        {'Date': '03/02/2025', 'Day': 'Mon', 'Dr Smith': '12', 'Nurse Jones': '6'},
        {'Date': '03/12/2024', 'Day': 'Tue', 'Dr Smith': '7', 'Nurse Jones': '0'},
        {'Date': '07/01/2025', 'Day': 'Tue', 'Dr Smith': '9', 'Nurse Jones': '3'},
        {'Date': '11/01/2025', 'Day': 'Sat', 'Dr Smith': '2', 'Nurse Jones': ''},
        {'Date': 'not a date', 'Day': 'Mon', 'Dr Smith': '50', 'Nurse Jones': '50'},
    ]


@pytest.fixture
def appointments_df(appointments_rows) -> pd.DataFrame:
    return pd.DataFrame(appointments_rows)


@pytest.fixture
def dna_rows() -> list:
    return [
        {'Staff': 'Dr Smith', 'Appointment Count': '6'},
        {'Staff': 'Nurse Jones', 'Appointment Count': '3'},
        {'Staff': 'Dr Ghost', 'Appointment Count': '5'},
    ]


@pytest.fixture
def unused_rows() -> list:
    return [{'Staff': 'Dr Smith', 'Unused Slots': '9', 'Total Slots': '40'}]


@pytest.fixture
def online_rows() -> list:
    return [
        {'Submission started': '06/01/2025 09:00', 'Type': 'Clinical', 'Outcome': 'Resolved - advice given',
         'Access method': 'Online', 'Sex': 'F', 'Age': '34',
         'Submission completed': '06/01/2025 09:05', 'Outcome recorded': '06/01/2025 11:05'},
        {'Submission started': '07/01/2025 10:00', 'Type': 'Clinical', 'Outcome': 'Appointment booked',
         'Access method': 'Online', 'Sex': 'M', 'Age': '61'},
        {'Submission started': '03/02/2025 08:30', 'Type': 'Admin', 'Outcome': 'Resolved - admin',
         'Access method': 'Staff', 'Sex': 'F', 'Age': ''},
        {'Submission started': '03/03/2025 08:30', 'Type': 'Clinical', 'Outcome': 'Resolved',
         'Access method': 'Online', 'Sex': 'M', 'Age': '40'},
    ]


@pytest.fixture
def telephony_text() -> str:
    return (
        "Practice Telephony Summary January 2025\n"
        "Inbound Received 1,234\n"
        "Inbound Answered 1,000\n"
        "Missed From Queue 200\n"
        "Missed From Queue Excluding Repeat Callers 150 (12.2%)\n"
        "Answered From Queue 900 (90.0%)\n"
        "Abandoned Calls 30 (2.4%)\n"
        "Callbacks Successful 45\n"
        "Average Queue Time Answered 3m 12s\n"
        "Average Queue Time Missed 45s\n"
        "Average Inbound Talk Time 4m 0s\n"
    )


@pytest.fixture
def followup_csv() -> str:
    return (
        "Clinician,Appointment date,NHS number,Organisation name\n"
        "Dr A,01-Jan-24,P1,Test Surgery\n"
        "Dr A,05-Jan-24,P1,Test Surgery\n"
        "Dr B,20-Jan-24,P1,Test Surgery\n"
        "Nurse C,02-Jan-24,P2,Test Surgery\n"
        "Dr A,05-Jan-24,P1,Test Surgery\n"
    )


@pytest.fixture
def workforce_row() -> dict:
    return {
        'PRAC_CODE': 'A81001', 'PRAC_NAME': 'The Surgery', 'PCN_CODE': 'U001', 'PCN_NAME': 'North PCN',
        'ICB_NAME': 'NHS Example ICB', 'TOTAL_PATIENTS': '5,600', 'GP_SOURCE': 'Estimated',
        'TOTAL_GP_SEN_PTNR_FTE': '2.0', 'TOTAL_GP_SEN_PTNR_HC': '2',
        'TOTAL_GP_TRN_GR_ST3_FTE': '1.0', 'TOTAL_GP_TRN_GR_ST3_HC': 'NA',
        'TOTAL_NURSES_FTE': '1.5', 'TOTAL_NURSES_HC': '2',
        'TOTAL_DPC_PHARMA_FTE': '1.0', 'TOTAL_DPC_PHARMA_HC': '1',
        'TOTAL_DPC_PHYSICIAN_ASSOC_FTE': '0.5',
        'TOTAL_ADMIN_RECEPT_FTE': '3', 'TOTAL_ADMIN_RECEPT_HC': '4',
    }


@pytest.fixture
def processing_config() -> ProcessingConfig:
    return ProcessingConfig(population=5600)
