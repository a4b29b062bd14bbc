import hashlib
import logging
from typing import Iterable, List, Tuple

from .. import config
from ..exceptions import ListingUnavailable
from ..models import ChecksumResult, Endpoint, ObjectRecord, ResourceKind


class ChecksumEngine:
    def compute_digest(self, listing: Iterable[ObjectRecord], kind: ResourceKind) -> ChecksumResult:
        """
        Folds a resource listing into one digest.

        Recipe:
        1. Sort by name, byte-wise (UTF-8), so both sides concatenate in the same order.
           Records sharing a name are ordered by their token.
        2. Per record, take one token:
           - Containers: contentMd5 if present, else the decimal size.
           - Shares: always the decimal size.
        3. MD5 of the UTF-8 concatenation, lowercase hex.

        An empty listing yields config.EMPTY_DIGEST.
        """
        records = self.hashing_order(listing, kind)
        if not records:
            return ChecksumResult(digest=config.EMPTY_DIGEST, object_count=0, kind=kind)

        h = hashlib.md5()
        fallback_count = 0
        for record in records:
            token, used_fallback = self.token_for(record, kind)
            fallback_count += used_fallback
            h.update(token.encode("utf-8"))

        # Incremental update() == MD5 of the concatenated string.
        return ChecksumResult(
            digest=h.hexdigest(),
            object_count=len(records),
            kind=kind,
            fallback_count=fallback_count,
        )

    def digest_resource(self,
                        client,
                        endpoint: Endpoint,
                        name: str,
                        kind: ResourceKind) -> ChecksumResult:
        """
        Lists `name` on `endpoint` and digests it.
        A listing failure becomes the unavailable sentinel instead of an exception.
        """
        try:
            listing: List[ObjectRecord] = client.list_objects(endpoint, kind, name)
        except ListingUnavailable as e:
            logging.warning(f"Listing unavailable for {kind.value} '{name}' on {endpoint.account}: {e}")
            return ChecksumResult.unavailable(kind, str(e))

        result = self.compute_digest(listing, kind)
        logging.info(
            f"Digest for {kind.value} '{name}' on {endpoint.account}: "
            f"{result.digest} ({result.object_count} objects)"
        )
        if result.degraded:
            logging.warning(
                f"{result.fallback_count} object(s) in '{name}' have no content hash; "
                "verified by size only."
            )
        return result

    def hashing_order(self, listing: Iterable[ObjectRecord], kind: ResourceKind) -> List[ObjectRecord]:
        return sorted(listing, key=lambda r: (r.name.encode("utf-8"), self.token_for(r, kind)[0]))

    def token_for(self, record: ObjectRecord, kind: ResourceKind) -> Tuple[str, bool]:
        """The string hashed for one record, and whether it fell back to the size."""
        if kind is ResourceKind.CONTAINER:
            if record.content_hash:
                return record.content_hash, False
            return str(record.size_bytes), True
        return str(record.size_bytes), False
