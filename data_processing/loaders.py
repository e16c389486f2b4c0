# practice_pulse/data_processing/loaders.py
# RECORD PARSER ADAPTERS

"""
Adapters that turn uploaded CSV content into the normalised frames and
records the aggregation pipeline consumes.

Rows may arrive as a pandas DataFrame, as a list of dicts keyed by the CSV
headers, or as raw CSV text/paths. Everything is read as strings so that
count coercion happens in one place (`helpers.parse_counts`).
"""

import io
import logging
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

import pandas as pd

from config import settings
from .helpers import DataPipeline, is_doctor, parse_counts, parse_dates
from .models import FollowUpAppointment, FollowUpDataset
from .validation import validate_headers

logger = logging.getLogger(__name__)

RowsInput = Union[pd.DataFrame, Sequence[Mapping[str, Any]], None]

APPOINTMENT_COLUMNS = ['date', 'day_of_week', 'staff_name', 'slot_type', 'count']
LONG_FORMAT_STAFF_COLUMN = 'Staff'
LONG_FORMAT_COUNT_COLUMNS = ['Total Appointments', 'Appointment Count']

FOLLOWUP_CLINICIAN_COL = 'Clinician'
FOLLOWUP_DATE_COL = 'Appointment date'
FOLLOWUP_PATIENT_COL = 'NHS number'
FOLLOWUP_ORG_COL = 'Organisation name'


def to_frame(rows: RowsInput) -> pd.DataFrame:
    """Normalises any accepted row container into a trimmed, string-valued DataFrame."""
    if rows is None:
        return pd.DataFrame()
    df = rows if isinstance(rows, pd.DataFrame) else pd.DataFrame(list(rows))
    if df.empty:
        return df.copy()
    df = df.astype(object).where(df.notna(), None)
    return DataPipeline(df).strip_whitespace().drop_empty_rows().to_df()


def load_csv(source: Union[str, Path, io.IOBase]) -> pd.DataFrame:
    """Reads a CSV export (path or buffer) with every cell kept as text."""
    df = pd.read_csv(source, dtype=str, keep_default_na=False, skipinitialspace=True)
    logger.debug(f"Loaded CSV with {len(df)} rows and columns {list(df.columns)}")
    return to_frame(df)


def _empty_appointments() -> pd.DataFrame:
    return pd.DataFrame({
        'date': pd.Series(dtype='datetime64[ns]'),
        'day_of_week': pd.Series(dtype=object),
        'staff_name': pd.Series(dtype=object),
        'slot_type': pd.Series(dtype=object),
        'count': pd.Series(dtype=int),
    })


def normalize_appointment_rows(rows: RowsInput) -> pd.DataFrame:
    """
    Converts an appointments upload into long-format AppointmentRow records.

    Two shapes are accepted:
      * pivot: one row per date, every column that is not a reserved key
        (`Date`, `Day`) or a row attribute (`Slot Type`) is a staff member and
        its cell is that staff member's appointment count;
      * long: one row per staff member with a `Staff` column and a
        `Total Appointments` / `Appointment Count` column.

    Rows with an unparseable date are skipped; only positive counts become
    entries.
    """
    frame = to_frame(rows)
    if frame.empty or 'Date' not in frame.columns:
        return _empty_appointments()

    dates = parse_dates(frame['Date'])
    invalid = dates.isna()
    if invalid.any():
        logger.info(f"Skipped {int(invalid.sum())} appointment rows with unparseable dates.")
        for raw in frame.loc[invalid, 'Date'].head(5):
            logger.debug(f"Unparseable appointment date: {raw!r}")
    frame = frame[~invalid]
    dates = dates[~invalid]
    if frame.empty:
        return _empty_appointments()

    derived_day = dates.dt.strftime('%a')
    day = frame['Day'].where(frame['Day'].fillna('').astype(str) != '', derived_day) if 'Day' in frame.columns else derived_day
    slot = frame['Slot Type'] if 'Slot Type' in frame.columns else pd.Series(None, index=frame.index, dtype=object)
    base = pd.DataFrame({'date': dates.dt.normalize(), 'day_of_week': day, 'slot_type': slot}, index=frame.index)

    count_col = next((c for c in LONG_FORMAT_COUNT_COLUMNS if c in frame.columns), None)
    if LONG_FORMAT_STAFF_COLUMN in frame.columns and count_col:
        long_df = base.assign(staff_name=frame[LONG_FORMAT_STAFF_COLUMN], count=parse_counts(frame[count_col].fillna('')))
    else:
        reserved = set(settings.RESERVED_APPOINTMENT_COLUMNS) | set(settings.APPOINTMENT_ATTRIBUTE_COLUMNS)
        staff_cols = [c for c in frame.columns if c not in reserved]
        if not staff_cols:
            return _empty_appointments()
        counts = frame[staff_cols].fillna('').apply(parse_counts)
        melted = counts.melt(ignore_index=False, var_name='staff_name', value_name='count')
        long_df = melted.join(base)

    long_df = long_df[(long_df['count'] > 0) & long_df['staff_name'].notna() & (long_df['staff_name'].astype(str) != '')]
    return long_df[APPOINTMENT_COLUMNS].sort_values('date', kind='stable').reset_index(drop=True)


# --- Follow-up CSV Handling ---

def merge_csv_texts(csv_texts: Iterable[str]) -> str:
    """
    Merges several CSV exports into one text: the first header is kept and
    data lines from every file are appended once (exact duplicates dropped).
    """
    header: Optional[str] = None
    lines: List[str] = []
    seen = set()
    for text in csv_texts:
        file_lines = [line.strip() for line in str(text or '').splitlines() if line.strip()]
        if not file_lines:
            continue
        if header is None:
            header = file_lines[0]
            lines.append(header)
        for line in file_lines[1:]:
            if line not in seen:
                seen.add(line)
                lines.append(line)
    return '\n'.join(lines)


def parse_followup_csv(csv_text: str, file_name: str = "Follow-up CSV") -> FollowUpDataset:
    """
    Parses a clinician appointment export into a de-duplicated set of
    (clinician, date, patient) appointments sorted by date.
    """
    df = pd.read_csv(io.StringIO(csv_text or ''), dtype=str, keep_default_na=False) if (csv_text or '').strip() else pd.DataFrame()
    df = to_frame(df)
    validate_headers(df, [FOLLOWUP_CLINICIAN_COL, FOLLOWUP_DATE_COL, FOLLOWUP_PATIENT_COL], file_name)

    parsed = pd.DataFrame({
        'clinician': df[FOLLOWUP_CLINICIAN_COL],
        'date': parse_dates(df[FOLLOWUP_DATE_COL], ['%d-%b-%y'] + settings.DATE_FORMATS).dt.normalize(),
        'patient_id': df[FOLLOWUP_PATIENT_COL],
    })
    usable = parsed['date'].notna() & parsed['clinician'].fillna('').ne('') & parsed['patient_id'].fillna('').ne('')
    if (~usable).any():
        logger.info(f"Skipped {int((~usable).sum())} follow-up rows missing a clinician, date or patient id.")
    parsed = (parsed[usable]
              .drop_duplicates(subset=['clinician', 'date', 'patient_id'])
              .sort_values('date', kind='stable'))

    appointments = [
        FollowUpAppointment(clinician=row.clinician, date=row.date.to_pydatetime(), patient_id=row.patient_id, is_doctor=is_doctor(row.clinician))
        for row in parsed.itertuples(index=False)
    ]
    clinicians = sorted(parsed['clinician'].unique().tolist())
    org_name = ''
    if FOLLOWUP_ORG_COL in df.columns:
        org_values = df.loc[usable, FOLLOWUP_ORG_COL].fillna('')
        org_name = next((v for v in org_values if v), '')

    return FollowUpDataset(
        appointments=appointments,
        clinicians=clinicians,
        doctors=[c for c in clinicians if is_doctor(c)],
        org_name=org_name,
        date_range_start=appointments[0].date if appointments else None,
        date_range_end=appointments[-1].date if appointments else None,
    )
