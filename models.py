import enum

from pydantic import BaseModel


class CycleState(str, enum.Enum):
    DUMPING = "dumping"
    UPLOADING = "uploading"
    CLEANING = "cleaning"
    DONE = "done"
    FAILED = "failed"


class BackupArtifact(BaseModel):
    path: str
    key: str
    size_mb: float = 0.0
