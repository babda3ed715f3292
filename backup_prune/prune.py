import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import botocore.exceptions

from .utils.config import resolve_prune_days
from .utils.s3_utils import Backup, BackupDeleteError, delete_backup, list_backups


@dataclass(frozen=True)
class DeleteOutcome:
    backup_name: str
    deleted_files: int = 0
    error: Optional[str] = None


@dataclass
class PruneReport:
    days: int
    cutoff: datetime
    dry_run: bool = False
    found: int = 0
    kept: int = 0
    to_delete: List[Backup] = field(default_factory=list)
    deleted: int = 0
    deleted_files: int = 0
    errors: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def succeeded(self):
        return not self.errors

    @property
    def exit_code(self):
        return 0 if self.succeeded else 1


def compute_cutoff(days, now=None):
    """Return the instant ``days`` calendar days before ``now`` (UTC)."""
    if now is None:
        now = datetime.now(timezone.utc)
    return now - timedelta(days=days)


def partition_backups(backups, cutoff):
    """
    Split backups around the cutoff.

    Args:
        backups (list): Backup entries.
        cutoff (datetime): Backups strictly older than this are deleted.

    Returns:
        tuple: (to_delete, to_keep), each preserving the input order.
    """
    to_delete = [b for b in backups if b.date < cutoff]
    to_keep = [b for b in backups if b.date >= cutoff]
    return to_delete, to_keep


def delete_outcome(client, bucket, prefix, backup):
    """
    Delete one backup and report the result as a value instead of raising.
    """
    try:
        result = delete_backup(client, bucket, prefix, backup.name)
    except BackupDeleteError as e:
        return DeleteOutcome(backup.name, error=str(e))
    except botocore.exceptions.ClientError as e:
        return DeleteOutcome(backup.name,
                             error=f"{e.response['Error']['Code']}: {e.response['Error']['Message']}")
    except botocore.exceptions.BotoCoreError as e:
        return DeleteOutcome(backup.name, error=str(e))
    return DeleteOutcome(backup.name, deleted_files=result.deleted_files)


def run_prune(config, client, days=None, dry_run=False, now=None):
    """
    Delete every backup older than the retention window.

    Backups are deleted one at a time; a failed backup is recorded in the report and
    the remaining ones are still processed.

    Args:
        config (PruneConfig): The run configuration.
        client (boto3.client): The S3 client.
        days (int, optional): Retention window, overrides PRUNE_DAYS.
        dry_run (bool): Report the plan without deleting anything.
        now (datetime, optional): Reference time, defaults to the current UTC time.

    Returns:
        PruneReport: What was found, kept, deleted and what failed.

    Raises:
        botocore.exceptions.ClientError: If listing the backups fails.
    """
    prune_days = resolve_prune_days(days, config.prune_days)
    cutoff = compute_cutoff(prune_days, now)
    report = PruneReport(days=prune_days, cutoff=cutoff, dry_run=dry_run)

    logging.info(f"Pruning backups older than {prune_days} days in s3://{config.bucket}/{config.prefix}")
    logging.info(f"Cutoff date: {cutoff.isoformat()}")
    if dry_run:
        logging.info("DRY RUN: No files will be deleted")

    backups = list_backups(client, config.bucket, config.prefix)
    if not backups:
        logging.info("No backups found.")
        return report

    to_delete, to_keep = partition_backups(backups, cutoff)
    report.found = len(backups)
    report.kept = len(to_keep)
    report.to_delete = to_delete

    logging.info(f"Found {len(backups)} backup(s): keeping {len(to_keep)}, to delete {len(to_delete)}")

    if not to_delete:
        logging.info("No backups to prune.")
        return report

    logging.info("Backups to be deleted:")
    for backup in to_delete:
        logging.info(f"  - {backup.name} ({backup.date.isoformat()})")

    if dry_run:
        logging.info("Dry run complete. No files were deleted.")
        return report

    for backup in to_delete:
        outcome = delete_outcome(client, config.bucket, config.prefix, backup)
        if outcome.error:
            logging.error(f"Failed to delete {outcome.backup_name}: {outcome.error}")
            report.errors.append((outcome.backup_name, outcome.error))
        else:
            logging.info(f"Deleted: {outcome.backup_name} ({outcome.deleted_files} files)")
            report.deleted += 1
            report.deleted_files += outcome.deleted_files

    logging.info(f"Prune complete! Deleted: {report.deleted} backup(s), errors: {len(report.errors)}")
    return report
