# practice_pulse/data_processing/helpers.py
# SHARED PARSING UTILITIES & FLUENT CLEANING PIPELINE

"""
A collection of robust utility functions (numeric coercion, multi-format date
parsing, month keys, staff classification) and a fluent DataPipeline class
for cleaning uploaded CSV frames.
"""
import logging
import re
from typing import Any, Iterable, List, Optional, Type

import numpy as np
import pandas as pd

from config import settings

logger = logging.getLogger(__name__)

# --- Standalone Utility Functions ---

NA_REGEX_PATTERN = re.compile(
    r'(?i)^\s*(nan|none|n/a|#n/a|nat|<na>|null|nil|na|undefined|\*|-|)\s*$'
)
LEADING_INT_PATTERN = r'^\s*([-+]?\d+)'

MONTH_ABBREVIATIONS = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']
MONTH_NAMES = ['January', 'February', 'March', 'April', 'May', 'June', 'July', 'August', 'September', 'October', 'November', 'December']


def convert_to_numeric(data_input: Any, default_value: Any = np.nan, target_type: Optional[Type] = None) -> Any:
    """
    Robustly converts various inputs to a numeric pandas Series or scalar,
    handling "Not Available" markers and thousands separators.
    """
    is_series = isinstance(data_input, pd.Series)
    series = data_input if is_series else pd.Series([data_input], dtype=object)

    if pd.api.types.is_object_dtype(series.dtype) or pd.api.types.is_string_dtype(series.dtype):
        series = series.astype(object).replace(NA_REGEX_PATTERN, np.nan, regex=True)
        series = series.where(series.isna(), series.astype(str).str.replace(',', '', regex=False))

    numeric_series = pd.to_numeric(series, errors='coerce')
    if not pd.isna(default_value):
        numeric_series = numeric_series.fillna(default_value)

    if target_type is int and pd.api.types.is_numeric_dtype(numeric_series.dtype):
        numeric_series = numeric_series.astype(pd.Int64Dtype() if numeric_series.isnull().any() else int)
    elif target_type is float:
        numeric_series = numeric_series.astype(float)

    return numeric_series if is_series else (numeric_series.iloc[0] if not numeric_series.empty else default_value)


def parse_counts(series: pd.Series) -> pd.Series:
    """
    Integer-parses a Series of cell values, reading the leading integer of
    each cell and falling back to zero when there is none.
    """
    if series.empty:
        return pd.Series(dtype=int, index=series.index)
    cleaned = series.astype(str).str.replace(',', '', regex=False)
    leading = cleaned.str.extract(LEADING_INT_PATTERN, expand=False)
    return pd.to_numeric(leading, errors='coerce').fillna(0).astype(int)


def parse_count(value: Any) -> int:
    """Scalar form of `parse_counts`."""
    if value is None:
        return 0
    return int(parse_counts(pd.Series([value])).iloc[0])


def parse_dates(series: pd.Series, formats: Optional[Iterable[str]] = None) -> pd.Series:
    """
    Parses a Series of date strings trying each accepted format in turn.
    Values that match no format become NaT.
    """
    formats = list(formats or settings.DATE_FORMATS)
    text = series.astype(object).where(series.notna(), None)
    text = text.map(lambda v: v.strip() if isinstance(v, str) else v)
    parsed = pd.Series(pd.NaT, index=series.index, dtype='datetime64[ns]')
    for fmt in formats:
        remaining = parsed.isna() & text.notna()
        if not remaining.any():
            break
        parsed.loc[remaining] = pd.to_datetime(text[remaining], format=fmt, errors='coerce')
    return parsed


def parse_date(value: Any) -> Optional[pd.Timestamp]:
    """Scalar form of `parse_dates`; returns None for unparseable input."""
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return None
    if isinstance(value, pd.Timestamp):
        return value
    result = parse_dates(pd.Series([value], dtype=object)).iloc[0]
    return None if pd.isna(result) else result


def month_key(date: pd.Timestamp) -> str:
    """Formats a date as the compact month key, e.g. 'Aug-25'."""
    return f"{MONTH_ABBREVIATIONS[date.month - 1]}-{date.year % 100:02d}"


def parse_month_key(key: str) -> Optional[pd.Timestamp]:
    """Returns the first-of-month date behind a 'Mon-YY' key, or None."""
    parts = str(key or '').split('-')
    if len(parts) != 2 or parts[0] not in MONTH_ABBREVIATIONS or not parts[1].isdigit():
        return None
    return pd.Timestamp(year=2000 + int(parts[1]), month=MONTH_ABBREVIATIONS.index(parts[0]) + 1, day=1)


def sort_month_keys(keys: Iterable[str]) -> List[str]:
    """Orders month keys chronologically; unparseable keys sort first."""
    return sorted(set(keys), key=lambda k: parse_month_key(k) or pd.Timestamp.min)


def next_month_keys(last_key: str, count: int) -> List[str]:
    """Generates the `count` month keys that follow `last_key`."""
    start = parse_month_key(last_key)
    if start is None:
        return ['Future'] * count
    return [month_key(start + pd.DateOffset(months=i)) for i in range(1, count + 1)]


def is_gp(name: Any) -> bool:
    """A staff member counts as a GP if the name carries 'Dr' or mentions a locum."""
    if not isinstance(name, str) or not name.strip():
        return False
    cleaned = name.strip()
    return any(marker in cleaned for marker in settings.GP_NAME_MARKERS) or settings.GP_LOCUM_MARKER in cleaned.lower()


def is_doctor(clinician: Any) -> bool:
    """Follow-up analysis only counts clinicians whose display name starts with 'Dr'."""
    if not isinstance(clinician, str):
        return False
    return re.match(settings.DOCTOR_PREFIX_PATTERN, clinician.strip()) is not None


def round_half_up(value: float) -> int:
    """Rounds .5 away from zero, matching how the dashboard has always displayed estimates."""
    return int(np.floor(value + 0.5)) if value >= 0 else -int(np.floor(-value + 0.5))


class DataPipeline:
    """
    A fluent interface for applying a sequence of cleaning operations to an
    uploaded CSV frame.

    Usage:
        clean_df = (DataPipeline(raw_df)
                    .strip_whitespace()
                    .drop_empty_rows()
                    .to_df())
    """
    def __init__(self, df: pd.DataFrame):
        if not isinstance(df, pd.DataFrame):
            raise TypeError("DataPipeline must be initialized with a pandas DataFrame.")
        self.df = df.copy()

    def to_df(self) -> pd.DataFrame:
        """Returns the processed DataFrame."""
        return self.df

    def strip_whitespace(self) -> 'DataPipeline':
        """Trims header names and string cells, leaving header case untouched."""
        self.df.columns = [str(c).strip() for c in self.df.columns]
        for col in self.df.columns:
            if pd.api.types.is_object_dtype(self.df[col].dtype):
                self.df[col] = self.df[col].map(lambda v: v.strip() if isinstance(v, str) else v)
        return self

    def drop_empty_rows(self) -> 'DataPipeline':
        """Removes rows in which every cell is blank or missing."""
        if self.df.empty:
            return self
        blank = self.df.apply(lambda col: col.isna() | (col.astype(str).str.strip() == ''))
        self.df = self.df[~blank.all(axis=1)].reset_index(drop=True)
        return self
