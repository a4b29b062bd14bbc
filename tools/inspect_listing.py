#!/usr/bin/env python3
"""
Print the object listing of one container/share and the digest it folds into.

Useful when a migration comes back Mismatched: run it against both accounts
and diff the output.

Usage:
  python tools/inspect_listing.py --account <name> --sas <token> [--kind share] <resource>
"""

import argparse
import sys

from storage_migrator.exceptions import ListingUnavailable
from storage_migrator.models import Endpoint, ResourceKind
from storage_migrator.remote.client import AzCliListingClient
from storage_migrator.verification.checksum import ChecksumEngine


def inspect_resource(endpoint: Endpoint, kind: ResourceKind, name: str, az_path: str):
    """Dump every object's hashing token and the resulting digest."""
    client = AzCliListingClient(az_path)
    try:
        listing = client.list_objects(endpoint, kind, name)
    except ListingUnavailable as e:
        print(f"Error listing {kind.value} '{name}': {e}")
        sys.exit(1)

    print(f"Inspecting: {kind.value} '{name}' on {endpoint.account}\n")
    print("=" * 70)
    print("OBJECTS (hashing order)")
    print("=" * 70)

    engine = ChecksumEngine()
    for record in engine.hashing_order(listing, kind):
        token, used_fallback = engine.token_for(record, kind)
        if used_fallback:
            token += "  (size, no content hash)"
        name_str = record.name if len(record.name) <= 50 else record.name[:47] + "..."
        print(f"  {name_str.ljust(50)} {token}")

    result = engine.compute_digest(listing, kind)
    print("\n" + "=" * 70)
    print(f"DIGEST: {result.digest} ({result.object_count} objects)")
    if result.degraded:
        print(f"  {result.fallback_count} object(s) without content hash (compared by size)")


if __name__ == "__main__":
    p = argparse.ArgumentParser(description="Inspect a container/share listing and its digest")
    p.add_argument("resource")
    p.add_argument("--account", required=True)
    p.add_argument("--sas", required=True)
    p.add_argument("--kind", choices=[k.value for k in ResourceKind], default=ResourceKind.CONTAINER.value)
    p.add_argument("--az", default="az")
    args = p.parse_args()
    inspect_resource(Endpoint(args.account, args.sas), ResourceKind(args.kind), args.resource, args.az)
