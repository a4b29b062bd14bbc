import logging
import uuid
from contextlib import ExitStack
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .database.ops import DBOperations
from .exceptions import (
    DatabaseError,
    DestinationDeclined,
    ListingUnavailable,
    MigratorError,
    SourceNotFound,
    TransferFailed,
)
from .logscope import create_log_scope, job_log_handler
from .models import (
    ChecksumResult,
    Classification,
    Endpoint,
    JobReport,
    MigrationJob,
    ReconcileOutcome,
    ReconcileStatus,
    ResourceKind,
    Stage,
    TransferResult,
)
from .reconcile import Reconciler
from .verification.checksum import ChecksumEngine


class _JobState:
    """Mutable scratchpad for one run; frozen into a JobReport at the end."""

    def __init__(self, job: MigrationJob):
        self.job = job
        self.stage = Stage.IDLE
        self.stages: List[Stage] = [Stage.IDLE]
        self.started_at = datetime.now()
        self.source_checksum: Optional[ChecksumResult] = None
        self.destination_checksum: Optional[ChecksumResult] = None
        self.reconcile: Optional[ReconcileOutcome] = None
        self.transfer: Optional[TransferResult] = None
        self.log_dir: Optional[Path] = None

    def enter(self, stage: Stage):
        logging.debug(f"[{self.job.resource_name}] {self.stage.value} -> {stage.value}")
        self.stage = stage
        self.stages.append(stage)


class MigrationOrchestrator:
    """
    Runs one resource migration at a time:

    SOURCE_CHECK -> DESTINATION_RECONCILE -> PRE_CHECKSUM -> TRANSFERRING
      -> POST_CHECKSUM -> VERIFIED | MISMATCHED | INCOMPLETE -> DONE

    Any stage may end the job in FAILED(stage, reason). Nothing here raises
    for a job-level failure; the outcome is always a JobReport.
    """

    def __init__(self,
                 client,
                 reconciler: Reconciler,
                 invoker,
                 log_root: Path,
                 checksum: Optional[ChecksumEngine] = None,
                 db_ops: Optional[DBOperations] = None):
        self.client = client
        self.reconciler = reconciler
        self.invoker = invoker
        self.log_root = log_root
        self.checksum = checksum or ChecksumEngine()
        self.db_ops = db_ops

    def new_job(self,
                resource_name: str,
                kind: ResourceKind,
                source: Endpoint,
                destination: Endpoint) -> MigrationJob:
        return MigrationJob(
            resource_name=resource_name,
            resource_kind=kind,
            source=source,
            destination=destination,
            log_scope_id=uuid.uuid4().hex,
        )

    def run(self, job: MigrationJob) -> JobReport:
        state = _JobState(job)
        logging.info(f"=== Migrating {job.resource_kind.value} '{job.resource_name}' "
                     f"({job.source.account} -> {job.destination.account}) ===")
        try:
            self._run_stages(state)
        except MigratorError as e:
            report = self._fail(state, e)
        else:
            report = self._finish(state)

        if self.db_ops is not None:
            try:
                self.db_ops.record_job(report)
            except DatabaseError as e:
                logging.error(f"Could not record job history: {e}")
        return report

    def run_all(self,
                jobs: Iterable[MigrationJob],
                on_report: Optional[Callable[[JobReport], None]] = None) -> List[JobReport]:
        """
        Runs jobs strictly one after another. An interrupted transfer stops the batch.
        """
        reports = []
        for job in jobs:
            report = self.run(job)
            reports.append(report)
            if on_report is not None:
                on_report(report)
            if report.interrupted:
                logging.warning("Batch stopped after interrupted transfer.")
                break
        return reports

    # --- Stages ---

    def _run_stages(self, state: _JobState):
        job = state.job
        kind = job.resource_kind

        # 1. Source must exist
        state.enter(Stage.SOURCE_CHECK)
        if not self.client.exists(job.source, kind, job.resource_name):
            raise SourceNotFound("NotFound")

        # 2. Destination must exist (or be created now)
        state.enter(Stage.DESTINATION_RECONCILE)
        state.reconcile = self.reconciler.ensure_destination(job)
        if state.reconcile.status is ReconcileStatus.DECLINED:
            raise DestinationDeclined("Declined")
        if state.reconcile.status is ReconcileStatus.FAILED:
            raise MigratorError(state.reconcile.reason or "unknown error")

        # 3. Source digest; unavailable is recorded and the copy still runs
        state.enter(Stage.PRE_CHECKSUM)
        state.source_checksum = self.checksum.digest_resource(
            self.client, job.source, job.resource_name, kind)

        # 4. Copy under a fresh log folder
        state.enter(Stage.TRANSFERRING)
        with ExitStack() as stack:
            try:
                state.log_dir = create_log_scope(self.log_root, job.resource_name)
                stack.enter_context(job_log_handler(state.log_dir))
            except OSError as e:
                raise MigratorError(f"LogScopeUnavailable: {e}") from e

            logging.info(f"Job {job.log_scope_id} logging to {state.log_dir}")
            state.transfer = self.invoker.transfer(
                job.source.resource_url(kind, job.resource_name),
                job.destination.resource_url(kind, job.resource_name),
                kind,
                state.log_dir,
            )
        if not state.transfer.succeeded:
            raise TransferFailed(state.transfer.failure_reason, exit_code=state.transfer.exit_code)

        # 5. Destination digest
        state.enter(Stage.POST_CHECKSUM)
        state.destination_checksum = self.checksum.digest_resource(
            self.client, job.destination, job.resource_name, kind)

    def _finish(self, state: _JobState) -> JobReport:
        src = state.source_checksum
        dst = state.destination_checksum

        if src is None or dst is None or not (src.is_available and dst.is_available):
            terminal, classification = Stage.INCOMPLETE, Classification.INCOMPLETE
        elif src.matches(dst):
            terminal, classification = Stage.VERIFIED, Classification.VERIFIED
        else:
            terminal, classification = Stage.MISMATCHED, Classification.MISMATCHED

        state.enter(terminal)
        state.enter(Stage.DONE)
        log = logging.info if classification is Classification.VERIFIED else logging.warning
        log(f"'{state.job.resource_name}': {classification.value} "
            f"(source={src.display() if src else 'unavailable'}, "
            f"destination={dst.display() if dst else 'unavailable'})")
        return self._report(state, classification)

    def _fail(self, state: _JobState, error: MigratorError) -> JobReport:
        failed_stage = state.stage
        reason = str(error)
        if isinstance(error, ListingUnavailable):
            reason = f"ListingUnavailable: {error}"
        state.enter(Stage.FAILED)
        logging.error(f"'{state.job.resource_name}': Failed at {failed_stage.value} ({reason})")
        return self._report(state, Classification.FAILED, failed_stage, reason)

    def _report(self,
                state: _JobState,
                classification: Classification,
                failed_stage: Optional[Stage] = None,
                reason: Optional[str] = None) -> JobReport:
        return JobReport(
            job=state.job,
            classification=classification,
            stages=list(state.stages),
            started_at=state.started_at,
            finished_at=datetime.now(),
            failed_stage=failed_stage,
            failure_reason=reason,
            source_checksum=state.source_checksum,
            destination_checksum=state.destination_checksum,
            reconcile=state.reconcile,
            transfer=state.transfer,
            log_dir=state.log_dir,
        )
