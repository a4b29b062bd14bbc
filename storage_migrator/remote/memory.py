"""
Dictionary-backed control plane, for tests and dry runs.
"""
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from ..exceptions import CreationFailed, ListingUnavailable
from ..models import Endpoint, ObjectRecord, ResourceKind, ResourceProperties
from .client import RemoteListingClient

ResourceKey = Tuple[str, ResourceKind, str]  # (account, kind, name)


@dataclass
class _Resource:
    properties: ResourceProperties
    objects: List[ObjectRecord] = field(default_factory=list)


class InMemoryListingClient(RemoteListingClient):
    """
    Holds resources per account. Failures are injected per (account, kind, name)
    and method name, e.g. fail_listing("dest", ResourceKind.CONTAINER, "photos").
    """

    def __init__(self):
        self._resources: Dict[ResourceKey, _Resource] = {}
        self._failures: Dict[str, Set[ResourceKey]] = {}
        self._create_error: Optional[str] = None
        self.calls: Counter = Counter()
        self.created: List[Tuple[ResourceKey, ResourceProperties]] = []

    # --- Setup helpers ---

    def add_resource(self,
                     account: str,
                     kind: ResourceKind,
                     name: str,
                     objects: Optional[List[ObjectRecord]] = None,
                     properties: Optional[ResourceProperties] = None):
        self._resources[(account, kind, name)] = _Resource(
            properties=properties or ResourceProperties(),
            objects=list(objects or []),
        )

    def set_objects(self, account: str, kind: ResourceKind, name: str, objects: List[ObjectRecord]):
        self._resources[(account, kind, name)].objects = list(objects)

    def fail(self, method: str, account: str, kind: ResourceKind, name: str):
        self._failures.setdefault(method, set()).add((account, kind, name))

    def fail_listing(self, account: str, kind: ResourceKind, name: str):
        self.fail("list_objects", account, kind, name)

    def fail_create(self, message: str = "simulated control-plane rejection"):
        self._create_error = message

    def objects(self, account: str, kind: ResourceKind, name: str) -> List[ObjectRecord]:
        return list(self._resources[(account, kind, name)].objects)

    # --- Interface ---

    def list_resources(self, endpoint: Endpoint, kind: ResourceKind) -> List[str]:
        self.calls["list_resources"] += 1
        return sorted(n for (acct, k, n) in self._resources if acct == endpoint.account and k is kind)

    def list_objects(self, endpoint: Endpoint, kind: ResourceKind, name: str) -> List[ObjectRecord]:
        self.calls["list_objects"] += 1
        resource = self._lookup("list_objects", endpoint, kind, name)
        return list(resource.objects)

    def get_properties(self, endpoint: Endpoint, kind: ResourceKind, name: str) -> ResourceProperties:
        self.calls["get_properties"] += 1
        resource = self._lookup("get_properties", endpoint, kind, name)
        props = resource.properties
        return ResourceProperties(
            public_access=props.public_access,
            quota_gib=props.quota_gib,
            metadata=dict(props.metadata),
        )

    def exists(self, endpoint: Endpoint, kind: ResourceKind, name: str) -> bool:
        self.calls["exists"] += 1
        key = (endpoint.account, kind, name)
        self._check_failure("exists", key)
        return key in self._resources

    def create(self,
               endpoint: Endpoint,
               kind: ResourceKind,
               name: str,
               properties: ResourceProperties) -> None:
        self.calls["create"] += 1
        key = (endpoint.account, kind, name)
        if self._create_error:
            raise CreationFailed(self._create_error)
        if key in self._resources:
            raise CreationFailed(f"{kind.value} '{name}' already exists")
        self._resources[key] = _Resource(properties=properties)
        self.created.append((key, properties))

    # --- Internal ---

    def _lookup(self, method: str, endpoint: Endpoint, kind: ResourceKind, name: str) -> _Resource:
        key = (endpoint.account, kind, name)
        self._check_failure(method, key)
        if key not in self._resources:
            raise ListingUnavailable(f"{kind.value} '{name}' not found on {endpoint.account}")
        return self._resources[key]

    def _check_failure(self, method: str, key: ResourceKey):
        if key in self._failures.get(method, set()):
            raise ListingUnavailable(f"simulated {method} failure for {key[1].value} '{key[2]}'")
