# domain exceptions for capture, analysis, storage and interchange
# routers translate these into http errors


class MindVaultError(Exception):
    """base class for all mindvault failures"""


# capture layer, all recoverable, the user can retry immediately

class CaptureError(MindVaultError):
    """microphone could not be used for a reason other than the ones below"""


class PermissionDenied(CaptureError):
    """the user (or os) refused microphone access"""


class DeviceNotFound(CaptureError):
    """no input device is available"""


class EmptyRecordingError(CaptureError):
    """the finished clip contains no audio data"""


class InvalidStateError(CaptureError):
    """operation is not valid in the controller's current state"""


# analysis

class AnalysisError(MindVaultError):
    """extraction or query response was absent, malformed or failed schema validation"""


# storage

class StorageReadError(MindVaultError):
    """a store read failed. logged and replaced by an empty default, never raised to callers"""


class StorageWriteError(MindVaultError):
    """a store write failed. aborts the current flow, earlier writes are not rolled back"""


class PartialSaveError(StorageWriteError):
    """the entry was persisted but the profile merge for it failed"""

    def __init__(self, entry_id: str, cause: BaseException):
        super().__init__(f"Entry {entry_id} was saved but the profile merge failed: {cause}")
        self.entry_id = entry_id
        self.cause = cause


class InterchangeImportError(MindVaultError):
    """interchange document is malformed. rejected wholesale, nothing applied"""
