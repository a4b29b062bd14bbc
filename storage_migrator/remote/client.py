"""
Control-plane access: list, describe, check and create containers/shares.

RemoteListingClient is the interface the core depends on.
AzCliListingClient wraps the Azure CLI ('az storage ...') and parses its JSON.
"""
import json
import logging
import subprocess
from abc import ABC, abstractmethod
from typing import Any, List

from .. import config
from ..exceptions import CreationFailed, ListingUnavailable
from ..models import Endpoint, ObjectRecord, PublicAccess, ResourceKind, ResourceProperties

# What a payload of the wrong shape raises while we pick it apart
_MALFORMED = (KeyError, TypeError, ValueError, AttributeError)


def _malformed(command: str, error: Exception) -> ListingUnavailable:
    return ListingUnavailable(f"az storage {command} returned an unexpected payload: {error!r}")


class RemoteListingClient(ABC):
    """
    Abstract control-plane client.

    Every method raises ListingUnavailable when the control plane cannot be
    reached or answers with an error.
    """

    @abstractmethod
    def list_resources(self, endpoint: Endpoint, kind: ResourceKind) -> List[str]:
        """Names of every container (or share) on the account."""

    @abstractmethod
    def list_objects(self, endpoint: Endpoint, kind: ResourceKind, name: str) -> List[ObjectRecord]:
        """Every blob (or file, recursively) inside the resource."""

    @abstractmethod
    def get_properties(self, endpoint: Endpoint, kind: ResourceKind, name: str) -> ResourceProperties:
        """Public access / quota and metadata of the resource."""

    @abstractmethod
    def exists(self, endpoint: Endpoint, kind: ResourceKind, name: str) -> bool:
        """True if the resource exists on the account."""

    @abstractmethod
    def create(self,
               endpoint: Endpoint,
               kind: ResourceKind,
               name: str,
               properties: ResourceProperties) -> None:
        """
        Creates the resource. Raises CreationFailed if the control plane rejects it.
        """


class AzCliListingClient(RemoteListingClient):
    """
    Wraps the 'az' command line utility.
    Must be installed and on the system PATH (or given explicitly).
    """

    def __init__(self, az_path: str = config.AZ_EXECUTABLE, timeout: int = config.AZ_TIMEOUT_SEC):
        self.az_path = az_path
        self.timeout = timeout

    # --- Interface ---

    def list_resources(self, endpoint: Endpoint, kind: ResourceKind) -> List[str]:
        data = self._run([self._group(kind), "list"], endpoint)
        try:
            return [item["name"] for item in data or []]
        except _MALFORMED as e:
            raise _malformed(f"{self._group(kind)} list", e) from e

    def list_objects(self, endpoint: Endpoint, kind: ResourceKind, name: str) -> List[ObjectRecord]:
        try:
            if kind is ResourceKind.CONTAINER:
                return self._list_blobs(endpoint, name)
            return self._list_files(endpoint, name)
        except _MALFORMED as e:
            raise _malformed("blob list" if kind is ResourceKind.CONTAINER else "file list", e) from e

    def get_properties(self, endpoint: Endpoint, kind: ResourceKind, name: str) -> ResourceProperties:
        data = self._run([self._group(kind), "show", "--name", name], endpoint) or {}
        try:
            return self._parse_properties(kind, data)
        except _MALFORMED as e:
            raise _malformed(f"{self._group(kind)} show", e) from e

    def exists(self, endpoint: Endpoint, kind: ResourceKind, name: str) -> bool:
        data = self._run([self._group(kind), "exists", "--name", name], endpoint) or {}
        if not isinstance(data, dict):
            raise ListingUnavailable(f"az storage {self._group(kind)} exists returned an unexpected payload")
        return bool(data.get("exists"))

    def create(self,
               endpoint: Endpoint,
               kind: ResourceKind,
               name: str,
               properties: ResourceProperties) -> None:
        args = [self._group(kind), "create", "--name", name, "--fail-on-exist"]
        args.extend(build_create_flags(kind, properties))
        try:
            data = self._run(args, endpoint) or {}
        except ListingUnavailable as e:
            raise CreationFailed(str(e)) from e

        if not isinstance(data, dict) or not data.get("created", False):
            raise CreationFailed(f"az reported {kind.value} '{name}' was not created")

    # --- Internal Helpers ---

    def _parse_properties(self, kind: ResourceKind, data: Any) -> ResourceProperties:
        props = data.get("properties") or {}
        metadata = {str(k): str(v) for k, v in (data.get("metadata") or {}).items()}

        if kind is ResourceKind.CONTAINER:
            access = props.get("publicAccess")
            return ResourceProperties(
                public_access=PublicAccess(access) if access else None,
                metadata=metadata,
            )

        quota = props.get("quota")
        return ResourceProperties(
            quota_gib=int(quota) if quota else None,
            metadata=metadata,
        )

    def _list_blobs(self, endpoint: Endpoint, container: str) -> List[ObjectRecord]:
        data = self._run(
            ["blob", "list", "--container-name", container, "--num-results", "*"],
            endpoint,
        )
        records = []
        for item in data or []:
            props = item.get("properties") or {}
            settings = props.get("contentSettings") or {}
            records.append(ObjectRecord(
                name=item["name"],
                size_bytes=int(props.get("contentLength") or 0),
                content_hash=settings.get("contentMd5") or None,
            ))
        return records

    def _list_files(self, endpoint: Endpoint, share: str) -> List[ObjectRecord]:
        """
        'az storage file list' only lists one directory, so walk the tree.
        """
        records = []
        stack = [""]
        while stack:
            directory = stack.pop()
            args = ["file", "list", "--share-name", share]
            if directory:
                args.extend(["--path", directory])
            for item in self._run(args, endpoint) or []:
                path = f"{directory}/{item['name']}" if directory else item["name"]
                if item.get("type") == "dir":
                    stack.append(path)
                    continue
                props = item.get("properties") or {}
                records.append(ObjectRecord(name=path, size_bytes=int(props.get("contentLength") or 0)))
        return records

    def _group(self, kind: ResourceKind) -> str:
        return "container" if kind is ResourceKind.CONTAINER else "share"

    def _run(self, args: List[str], endpoint: Endpoint) -> Any:
        """
        Runs 'az storage <args>' against the endpoint and returns parsed JSON.
        """
        cmd = [self.az_path, "storage", *args,
               "--account-name", endpoint.account,
               "--sas-token", endpoint.credential.lstrip("?"),
               "--output", "json"]
        logging.debug(f"az storage {' '.join(args)} (account={endpoint.account})")

        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except (OSError, subprocess.SubprocessError) as e:
            raise ListingUnavailable(f"az storage {args[0]} {args[1]} failed: {e}") from e

        if proc.returncode != 0:
            message = (proc.stderr or "").strip().splitlines()
            detail = message[-1] if message else f"exit code {proc.returncode}"
            raise ListingUnavailable(f"az storage {args[0]} {args[1]} failed: {detail}")

        if not proc.stdout.strip():
            return None
        try:
            return json.loads(proc.stdout)
        except json.JSONDecodeError as e:
            raise ListingUnavailable(f"az storage {args[0]} {args[1]} returned invalid JSON: {e}") from e


def build_create_flags(kind: ResourceKind, properties: ResourceProperties) -> List[str]:
    """
    Translates source properties into 'az storage ... create' flags.
    Anything unset on the source is left off entirely, so the service applies
    no value we did not read.
    """
    flags: List[str] = []
    if kind is ResourceKind.CONTAINER and properties.public_access is not None:
        flags.extend(["--public-access", properties.public_access.value])
    if kind is ResourceKind.SHARE and properties.quota_gib is not None:
        flags.extend(["--quota", str(properties.quota_gib)])
    if properties.metadata:
        flags.append("--metadata")
        flags.extend(f"{k}={v}" for k, v in sorted(properties.metadata.items()))
    return flags
