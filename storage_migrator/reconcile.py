"""
Destination reconciliation: make sure the target container/share exists
before anything is copied, creating it from the source's properties.
"""
import logging

from .exceptions import CreationFailed, ListingUnavailable
from .models import MigrationJob, ReconcileOutcome, ReconcileStatus


class ConfirmationProvider:
    """Answers yes/no questions. Swapped for scripted answers in tests."""

    def confirm(self, prompt: str) -> bool:
        raise NotImplementedError


class ConsoleConfirmation(ConfirmationProvider):
    def confirm(self, prompt: str) -> bool:
        answer = input(f"{prompt} [y/N]: ").strip().lower()
        return answer in ("y", "yes")


class AutoConfirmation(ConfirmationProvider):
    """Fixed answer for non-interactive runs (--yes / --no-create)."""

    def __init__(self, answer: bool):
        self.answer = answer

    def confirm(self, prompt: str) -> bool:
        logging.info(f"{prompt} -> {'yes' if self.answer else 'no'} (non-interactive)")
        return self.answer


class Reconciler:
    def __init__(self, client, confirmation: ConfirmationProvider):
        self.client = client
        self.confirmation = confirmation

    def ensure_destination(self, job: MigrationJob) -> ReconcileOutcome:
        """
        1. Destination already has the resource -> ALREADY_EXISTS (nothing touched).
        2. Missing -> ask. Declined -> DECLINED (nothing touched).
        3. Confirmed -> copy public access / quota + metadata from the source and create.

        Properties are only ever written here, at creation. Existing
        destinations are never re-synced.
        """
        kind = job.resource_kind
        name = job.resource_name

        try:
            if self.client.exists(job.destination, kind, name):
                logging.info(f"Destination {kind.value} '{name}' already exists on {job.destination.account}.")
                return ReconcileOutcome(ReconcileStatus.ALREADY_EXISTS)
        except ListingUnavailable as e:
            return ReconcileOutcome(ReconcileStatus.FAILED, f"ListingUnavailable: {e}")

        prompt = (f"{kind.value.capitalize()} '{name}' does not exist on "
                  f"{job.destination.account}. Create it?")
        if not self.confirmation.confirm(prompt):
            logging.warning(f"Creation of {kind.value} '{name}' declined; skipping migration.")
            return ReconcileOutcome(ReconcileStatus.DECLINED, "Declined")

        try:
            if not self.client.exists(job.source, kind, name):
                return ReconcileOutcome(ReconcileStatus.FAILED, "SourceNotFound")
            properties = self.client.get_properties(job.source, kind, name)
        except ListingUnavailable as e:
            return ReconcileOutcome(ReconcileStatus.FAILED, f"ListingUnavailable: {e}")

        logging.info(
            f"Creating {kind.value} '{name}' on {job.destination.account} "
            f"(public_access={properties.public_access.value if properties.public_access else 'unset'}, "
            f"quota_gib={properties.quota_gib if properties.quota_gib is not None else 'unset'}, "
            f"metadata_keys={sorted(properties.metadata)})"
        )
        try:
            self.client.create(job.destination, kind, name, properties)
        except CreationFailed as e:
            logging.error(f"Failed to create {kind.value} '{name}': {e}")
            return ReconcileOutcome(ReconcileStatus.FAILED, f"CreationFailed: {e}")

        return ReconcileOutcome(ReconcileStatus.CREATED)
