# practice_pulse/data_processing/__init__.py
# PUBLIC API FOR PARSING, AGGREGATION & SHARING

"""
Initializes the data_processing package: upload adapters, the monthly
aggregator, the proportional allocator, typed records and share payloads.
"""

# --- Errors ---
from .errors import (
    DashboardDataError,
    MissingFileError,
    EmptyFileError,
    HeaderValidationError,
    PrivacyViolationError,
    NoValidDataError,
    ShareError,
    ShareTooLargeError,
    ShareNotFoundError,
    ShareExpiredError,
    ShareCorruptedError,
)

# --- Helpers ---
from .helpers import DataPipeline, is_doctor, is_gp, month_key, parse_date, sort_month_keys

# --- Loaders & Validation ---
from .loaders import load_csv, merge_csv_texts, normalize_appointment_rows, parse_followup_csv, to_frame
from .validation import validate_headers
from .telephony import TELEPHONY_FIELDS, detect_report_month, extract_telephony_metrics

# --- Aggregation ---
from .allocation import allocate_rows, infer_allocation_policy
from .aggregation import MonthlyAggregator, aggregate_records, summarize_online_requests

# --- Records ---
from .models import (
    AggregationResult,
    EnrichedMonth,
    FollowUpDataset,
    ForecastSeries,
    InsufficientForecast,
    MonthBucket,
    TelephonyMetrics,
)

# --- Sharing ---
from .sharing import (
    SharePayload,
    cleanup_expired_shares,
    create_share,
    decode_share_payload,
    encode_share_payload,
    generate_share_id,
    load_share,
    share_store_loader,
)


__all__ = [
    # errors.py
    "DashboardDataError", "MissingFileError", "EmptyFileError", "HeaderValidationError",
    "PrivacyViolationError", "NoValidDataError", "ShareError", "ShareTooLargeError",
    "ShareNotFoundError", "ShareExpiredError", "ShareCorruptedError",

    # helpers.py
    "DataPipeline", "is_doctor", "is_gp", "month_key", "parse_date", "sort_month_keys",

    # loaders.py, validation.py, telephony.py
    "load_csv", "merge_csv_texts", "normalize_appointment_rows", "parse_followup_csv", "to_frame",
    "validate_headers",
    "TELEPHONY_FIELDS", "detect_report_month", "extract_telephony_metrics",

    # allocation.py, aggregation.py
    "allocate_rows", "infer_allocation_policy",
    "MonthlyAggregator", "aggregate_records", "summarize_online_requests",

    # models.py
    "AggregationResult", "EnrichedMonth", "FollowUpDataset", "ForecastSeries",
    "InsufficientForecast", "MonthBucket", "TelephonyMetrics",

    # sharing.py
    "SharePayload", "cleanup_expired_shares", "create_share", "decode_share_payload",
    "encode_share_payload", "generate_share_id", "load_share", "share_store_loader",
]
