from enum import StrEnum


class FailureReason(StrEnum):
    DECODE_FAILED = "decode_failed"
    INVALID_SOURCE = "invalid_source"
    OUT_OF_MEMORY = "out_of_memory"
    INVALID_REGION = "invalid_region"
    SNAPSHOT_INVALID = "snapshot_invalid"
    EXPORT_FAILED = "export_failed"
    SAVE_FAILED = "save_failed"
    PROCESSING_FAILED = "processing_failed"


class EditError(Exception):
    """
    Base for recoverable pipeline failures. None of these are fatal to a session.
    """

    reason: FailureReason = FailureReason.DECODE_FAILED


class DecodeFailure(EditError):
    reason = FailureReason.DECODE_FAILED


class InvalidSource(EditError):
    reason = FailureReason.INVALID_SOURCE


class OutOfMemoryFailure(EditError):
    reason = FailureReason.OUT_OF_MEMORY


class InvalidRegion(EditError):
    reason = FailureReason.INVALID_REGION


class SnapshotError(EditError):
    reason = FailureReason.SNAPSHOT_INVALID
