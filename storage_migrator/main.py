import argparse
import getpass
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from . import config
from .core import MigrationOrchestrator
from .database.db import DBManager
from .database.ops import DBOperations
from .exceptions import ListingUnavailable, MissingCredentialError, ToolNotFoundError
from .models import Classification, Endpoint, JobReport, ResourceKind
from .reconcile import AutoConfirmation, ConsoleConfirmation, Reconciler
from .remote.client import AzCliListingClient
from .reporting import ReportGenerator
from .transfer.invoker import TransferInvoker, find_tool

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_SETUP = 2
EXIT_INCOMPLETE = 3
EXIT_CANCELLED = 130

def setup_logging(log_root: Path, verbose: bool):
    """Sets up logging to both console and a file in the log root."""
    log_level = logging.DEBUG if verbose else logging.INFO

    log_root.mkdir(parents=True, exist_ok=True)
    log_file = log_root / config.APP_LOG_NAME

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )

def parse_args(argv: Optional[List[str]] = None):
    p = argparse.ArgumentParser(
        description="Storage Migrator: copy containers/shares between accounts and verify them"
    )

    p.add_argument("resources", nargs="*", help="Container or share names to migrate")
    p.add_argument("--all", action="store_true", help="Migrate every resource on the source account")
    p.add_argument("--kind", choices=[k.value for k in ResourceKind], default=ResourceKind.CONTAINER.value,
                   help="Resource kind (default: container)")

    p.add_argument("--source-account", required=True, help="Source storage account name")
    p.add_argument("--dest-account", required=True, help="Destination storage account name")
    p.add_argument("--source-sas", default=os.environ.get(config.SOURCE_SAS_ENV),
                   help=f"Source SAS token (default: ${config.SOURCE_SAS_ENV})")
    p.add_argument("--dest-sas", default=os.environ.get(config.DEST_SAS_ENV),
                   help=f"Destination SAS token (default: ${config.DEST_SAS_ENV})")

    create = p.add_mutually_exclusive_group()
    create.add_argument("--yes", action="store_true", help="Create missing destinations without asking")
    create.add_argument("--no-create", action="store_true", help="Never create missing destinations")
    p.add_argument("--non-interactive", action="store_true",
                   help="Never prompt (missing credentials or tools become errors)")

    p.add_argument("--log-root", type=Path, default=config.DEFAULT_LOG_ROOT,
                   help="Root folder for job logs (default: ~/storage_migrator_logs)")
    p.add_argument("--db", type=Path, default=None,
                   help="Custom path for the job history DB (default: log-root/migration_history.db)")
    p.add_argument("--azcopy", default=None, help="Path to the azcopy executable")
    p.add_argument("--az", default=None, help="Path to the az executable")
    p.add_argument("--report-csv", type=str, default=None, help="Also export the job history to this CSV")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    args = p.parse_args(argv)
    if not args.all and not args.resources:
        p.error("name at least one resource or pass --all")
    return args

def resolve_credential(value: Optional[str], label: str, interactive: bool) -> str:
    if value:
        return value
    if not interactive:
        raise MissingCredentialError(f"No SAS token for the {label} account")
    token = getpass.getpass(f"SAS token for the {label} account: ").strip()
    if not token:
        raise MissingCredentialError(f"No SAS token for the {label} account")
    return token

def resolve_tool(name: str, configured: Optional[str], interactive: bool) -> str:
    """
    Finds a required executable. When it is missing we ask for a path once;
    an empty answer ends the program.
    """
    try:
        return find_tool(name, configured)
    except ToolNotFoundError as e:
        if not interactive:
            raise
        logging.warning(str(e))
        answer = input(f"Path to {name} (leave blank to quit): ").strip()
        if not answer:
            raise
        return find_tool(name, answer)

def exit_code_for(reports: List[JobReport]) -> int:
    classes = {r.classification for r in reports}
    if classes & {Classification.FAILED, Classification.MISMATCHED}:
        return EXIT_FAILED
    if Classification.INCOMPLETE in classes:
        return EXIT_INCOMPLETE
    return EXIT_OK

def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    # 1. Setup
    log_root = args.log_root.expanduser().resolve()
    setup_logging(log_root, args.verbose)
    interactive = not args.non_interactive and sys.stdin.isatty()
    kind = ResourceKind(args.kind)

    logging.info("=== Storage Migrator Started ===")
    logging.info(f"Source: {args.source_account}")
    logging.info(f"Dest:   {args.dest_account}")

    try:
        source = Endpoint(args.source_account, resolve_credential(args.source_sas, "source", interactive))
        destination = Endpoint(args.dest_account, resolve_credential(args.dest_sas, "destination", interactive))
        azcopy_path = resolve_tool(config.AZCOPY_EXECUTABLE, args.azcopy, interactive)
        az_path = resolve_tool(config.AZ_EXECUTABLE, args.az, interactive)
    except (ToolNotFoundError, MissingCredentialError) as e:
        logging.error(f"Setup failed: {e}")
        return EXIT_SETUP
    except (KeyboardInterrupt, EOFError):
        logging.warning("Operation cancelled by user.")
        return EXIT_CANCELLED

    # 2. Config
    db_path = args.db if args.db else log_root / config.DEFAULT_DB_NAME
    client = AzCliListingClient(az_path)
    if args.yes or args.no_create or not interactive:
        confirmation = AutoConfirmation(args.yes)
    else:
        confirmation = ConsoleConfirmation()

    # 3. Execution
    with DBManager(db_path) as conn:
        db_ops = DBOperations(conn)
        orchestrator = MigrationOrchestrator(
            client=client,
            reconciler=Reconciler(client, confirmation),
            invoker=TransferInvoker(azcopy_path),
            log_root=log_root,
            db_ops=db_ops,
        )
        reporter = ReportGenerator(db_ops)

        try:
            names = args.resources
            if args.all:
                names = client.list_resources(source, kind)
                logging.info(f"Found {len(names)} {kind.value}(s) on {source.account}")

            jobs = (orchestrator.new_job(name, kind, source, destination)
                    for name in tqdm(names, desc="Migrating", unit=kind.value, disable=len(names) < 2))
            reports = orchestrator.run_all(jobs, on_report=lambda r: print(reporter.format_report(r)))
        except ListingUnavailable as e:
            logging.error(f"Could not list {kind.value}s on {source.account}: {e}")
            return EXIT_FAILED
        except KeyboardInterrupt:
            logging.warning("Operation cancelled by user.")
            return EXIT_CANCELLED

        print(reporter.format_summary(reports))
        if args.report_csv:
            reporter.export_history_csv(args.report_csv)

    return exit_code_for(reports)

if __name__ == "__main__":
    sys.exit(main())
