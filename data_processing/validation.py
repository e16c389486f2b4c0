# practice_pulse/data_processing/validation.py
# UPLOAD HEADER & PRIVACY VALIDATION

import logging
from typing import Iterable, Sequence

import pandas as pd

from .errors import EmptyFileError, HeaderValidationError, PrivacyViolationError

logger = logging.getLogger(__name__)


def validate_headers(
    df: pd.DataFrame,
    required_columns: Sequence[str],
    file_name: str,
    forbidden_columns: Iterable[str] = ()
) -> None:
    """
    Checks an uploaded frame before any parsing proceeds.

    Raises:
        EmptyFileError: the frame has no rows.
        HeaderValidationError: one or more required columns are absent.
        PrivacyViolationError: a header contains a forbidden patient-identifiable
            column name (case-insensitive substring match).
    """
    if not isinstance(df, pd.DataFrame) or df.empty:
        raise EmptyFileError(file_name)

    headers = [str(h) for h in df.columns]
    missing = [col for col in required_columns if col not in headers]
    if missing:
        logger.warning(f"'{file_name}' rejected: missing columns {missing}")
        raise HeaderValidationError(file_name, missing)

    lowered = [h.lower() for h in headers]
    found_forbidden = [col for col in forbidden_columns if any(col.lower() in h for h in lowered)]
    if found_forbidden:
        logger.warning(f"'{file_name}' rejected: privacy-sensitive columns {found_forbidden}")
        raise PrivacyViolationError(file_name, found_forbidden)
