# practice_pulse/data_processing/errors.py
# USER-FACING ERROR TYPES

"""
Exceptions raised by the processing pipeline and the share store.

Every message is written for the person who uploaded the files, since the
dashboard shows it verbatim.
"""

from typing import Iterable


class DashboardDataError(Exception):
    """Base class for errors that abort a processing run."""


class MissingFileError(DashboardDataError):
    def __init__(self, description: str):
        super().__init__(f"{description} is required")


class EmptyFileError(DashboardDataError):
    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(f'The file "{file_name}" appears to be empty.')


class HeaderValidationError(DashboardDataError):
    def __init__(self, file_name: str, missing: Iterable[str]):
        self.file_name = file_name
        self.missing = list(missing)
        super().__init__(f'The file "{file_name}" is missing required columns: {", ".join(self.missing)}.')


class PrivacyViolationError(DashboardDataError):
    def __init__(self, file_name: str, columns: Iterable[str]):
        self.file_name = file_name
        self.columns = list(columns)
        super().__init__(
            f'PRIVACY ERROR: The file "{file_name}" contains disallowed columns: {", ".join(self.columns)}. '
            "Please remove patient identifiable data."
        )


class NoValidDataError(DashboardDataError):
    def __init__(self):
        super().__init__("No valid data found. Please check the Date formatting in your Appointments CSV.")


class ShareError(Exception):
    """Base class for share-link failures."""


class ShareTooLargeError(ShareError):
    def __init__(self, size_kb: float, max_kb: int):
        self.size_kb = size_kb
        super().__init__(f"Dashboard too large ({size_kb:.0f}KB). Maximum is {max_kb}KB. Use Excel export instead.")


class ShareNotFoundError(ShareError):
    def __init__(self, share_id: str):
        self.share_id = share_id
        super().__init__("Share link not found. It may have expired or been deleted.")


class ShareExpiredError(ShareError):
    def __init__(self, share_id: str, expiry_days: int):
        self.share_id = share_id
        super().__init__(f"This share link has expired ({expiry_days} day limit).")


class ShareCorruptedError(ShareError):
    def __init__(self, share_id: str = ""):
        self.share_id = share_id
        super().__init__("Failed to decompress dashboard data. The link may be corrupted.")
