from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import quote

from . import config


class ResourceKind(Enum):
    """Blob container or file share. Each has its own checksum recipe."""
    CONTAINER = "container"
    SHARE = "share"


class PublicAccess(Enum):
    OFF = "off"
    BLOB = "blob"
    CONTAINER = "container"


class Stage(Enum):
    """Orchestrator states for a single migration job."""
    IDLE = "idle"
    SOURCE_CHECK = "source_check"
    DESTINATION_RECONCILE = "destination_reconcile"
    PRE_CHECKSUM = "pre_checksum"
    TRANSFERRING = "transferring"
    POST_CHECKSUM = "post_checksum"
    VERIFIED = "verified"
    MISMATCHED = "mismatched"
    INCOMPLETE = "incomplete"
    FAILED = "failed"
    DONE = "done"


class Classification(Enum):
    """Terminal outcome label printed for every job."""
    VERIFIED = "Verified"
    MISMATCHED = "Mismatched"
    INCOMPLETE = "Incomplete"
    FAILED = "Failed"


class ReconcileStatus(Enum):
    ALREADY_EXISTS = "already_exists"
    CREATED = "created"
    DECLINED = "declined"
    FAILED = "failed"


@dataclass(frozen=True)
class ObjectRecord:
    """
    One blob or file as seen in a listing.
    """
    name: str
    size_bytes: int
    content_hash: Optional[str] = None  # base64 MD5 for block blobs, None for files


@dataclass
class ResourceProperties:
    """
    Container (public access) or share (quota) configuration plus metadata.
    None means "not set on the source" and is never sent on create.
    """
    public_access: Optional[PublicAccess] = None
    quota_gib: Optional[int] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Endpoint:
    """A storage account plus the SAS token used to reach it."""
    account: str
    credential: str

    def host(self, kind: ResourceKind) -> str:
        template = config.BLOB_HOST if kind is ResourceKind.CONTAINER else config.FILE_HOST
        return template.format(account=self.account)

    def resource_url(self, kind: ResourceKind, name: str) -> str:
        url = f"{self.host(kind)}/{quote(name)}"
        token = self.credential.lstrip("?")
        return f"{url}?{token}" if token else url


@dataclass
class MigrationJob:
    resource_name: str
    resource_kind: ResourceKind
    source: Endpoint
    destination: Endpoint
    log_scope_id: str


@dataclass
class ChecksumResult:
    """
    Aggregated digest of one resource listing.

    A None digest is the "unavailable" sentinel: the listing could not be
    retrieved, so the result is recorded but never compared.
    """
    digest: Optional[str]
    object_count: int
    kind: ResourceKind
    fallback_count: int = 0  # container objects hashed by size (no contentMd5)
    error: Optional[str] = None

    @classmethod
    def unavailable(cls, kind: ResourceKind, reason: str) -> "ChecksumResult":
        return cls(digest=None, object_count=0, kind=kind, error=reason)

    @property
    def is_available(self) -> bool:
        return self.digest is not None

    @property
    def degraded(self) -> bool:
        return self.fallback_count > 0

    def display(self) -> str:
        return self.digest if self.digest is not None else "unavailable"

    def matches(self, other: "ChecksumResult") -> bool:
        if self.kind is not other.kind:
            raise ValueError(
                f"Cannot compare a {self.kind.value} checksum with a {other.kind.value} checksum"
            )
        return self.is_available and other.is_available and self.digest == other.digest


@dataclass
class TransferResult:
    exit_code: Optional[int]
    succeeded: bool
    interrupted: bool = False
    error: Optional[str] = None
    command: List[str] = field(default_factory=list)  # SAS tokens redacted

    @property
    def failure_reason(self) -> str:
        if self.interrupted:
            return "Interrupted"
        if self.exit_code is not None:
            return str(self.exit_code)
        return self.error or "unknown error"


@dataclass
class ReconcileOutcome:
    status: ReconcileStatus
    reason: Optional[str] = None


@dataclass
class JobReport:
    """
    Everything known about a job once the orchestrator is done with it.
    """
    job: MigrationJob
    classification: Classification
    stages: List[Stage]
    started_at: datetime
    finished_at: datetime
    failed_stage: Optional[Stage] = None
    failure_reason: Optional[str] = None
    source_checksum: Optional[ChecksumResult] = None
    destination_checksum: Optional[ChecksumResult] = None
    reconcile: Optional[ReconcileOutcome] = None
    transfer: Optional[TransferResult] = None
    log_dir: Optional[Path] = None

    @property
    def degraded(self) -> bool:
        return any(c is not None and c.degraded
                   for c in (self.source_checksum, self.destination_checksum))

    @property
    def interrupted(self) -> bool:
        return self.transfer is not None and self.transfer.interrupted
