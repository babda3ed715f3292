import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone

import boto3

from .config import client_config

# DeleteObjects accepts at most 1000 keys per request.
MAX_DELETE_BATCH = 1000


class BackupDeleteError(Exception):
    """Base class for failures while deleting a single backup."""


class BackupNotFoundError(BackupDeleteError):
    pass


class BatchDeleteError(BackupDeleteError):
    pass


@dataclass(frozen=True)
class Backup:
    name: str
    date: datetime


@dataclass(frozen=True)
class DeleteResult:
    backup_name: str
    deleted_files: int


def _utc(*parts):
    return datetime(*(int(p) for p in parts), tzinfo=timezone.utc)


# Ordered by preference, first match wins.
DATE_PATTERNS = [
    re.compile(r'(\d{4})-(\d{2})-(\d{2})[-T](\d{2})[-:](\d{2})[-:](\d{2})'),
    re.compile(r'(\d{4})-(\d{2})-(\d{2})'),
]


def extract_date_from_backup_name(backup_name):
    """
    Extract the UTC timestamp embedded in a backup name.

    Accepts ``YYYY-MM-DD-HH-mm-ss`` / ``YYYY-MM-DDTHH:mm:ss`` style timestamps and
    falls back to a bare ``YYYY-MM-DD`` (midnight UTC).

    Args:
        backup_name (str): The backup folder name, e.g. ``mydb-2024-01-15-03-30-00``.

    Returns:
        datetime or None: The timestamp, or None when the name carries no valid date.
    """
    for pattern in DATE_PATTERNS:
        match = pattern.search(backup_name)
        if match:
            try:
                return _utc(*match.groups())
            except ValueError:
                return None
    return None


def create_s3_client(config):
    """
    Create an S3 client for the configured region, endpoint and credentials.
    Falls back to the default boto3 credential chain when no keys are configured.
    """
    params = {'config': client_config(config), 'region_name': config.region}
    if config.endpoint:
        params['endpoint_url'] = config.endpoint
    if config.access_key_id and config.secret_access_key:
        params['aws_access_key_id'] = config.access_key_id
        params['aws_secret_access_key'] = config.secret_access_key
    return boto3.client('s3', **params)


def folder_prefix(prefix):
    """Return the prefix with exactly one trailing slash ('' stays the bucket root)."""
    prefix = prefix.rstrip('/')
    return f"{prefix}/" if prefix else ''


def list_backups(client, bucket, prefix):
    """
    List the backup folders directly under a prefix.

    Each common prefix ("folder") is one backup. Folders whose name carries no
    recognizable date are skipped with a warning.

    Args:
        client (boto3.client): The S3 client.
        bucket (str): The bucket name.
        prefix (str): The prefix holding the backup folders.

    Returns:
        list: Backup entries sorted by date, most recent first.

    Raises:
        botocore.exceptions.ClientError: If the listing call fails.
    """
    list_prefix = folder_prefix(prefix)
    logging.info(f"Listing backups in s3://{bucket}/{list_prefix}")

    paginator = client.get_paginator('list_objects_v2')
    response_iterator = paginator.paginate(Bucket=bucket, Prefix=list_prefix, Delimiter='/')
    prefixes = [p.get('Prefix', '') for page in response_iterator for p in page.get('CommonPrefixes', [])]

    backups = []
    for p in prefixes:
        parts = [part for part in p[len(list_prefix):].split('/') if part]
        if not parts:
            continue
        name = parts[0]
        date = extract_date_from_backup_name(name)
        if date:
            backups.append(Backup(name=name, date=date))
        else:
            logging.warning(f"Could not parse date from backup name: {name}")

    backups.sort(key=lambda b: b.date, reverse=True)
    logging.debug(f"Parsed {len(backups)} backups out of {len(prefixes)} folders")
    return backups


def list_backup_keys(client, bucket, backup_prefix):
    paginator = client.get_paginator('list_objects_v2')
    return [obj['Key']
            for page in paginator.paginate(Bucket=bucket, Prefix=backup_prefix)
            for obj in page.get('Contents', [])
            if obj.get('Key')]


def delete_backup(client, bucket, prefix, backup_name):
    """
    Delete every object stored under a backup folder.

    Keys are submitted in batches of up to MAX_DELETE_BATCH. An empty folder is
    reported as not found, including a folder a previous run already removed.

    Args:
        client (boto3.client): The S3 client.
        bucket (str): The bucket name.
        prefix (str): The prefix holding the backup folders.
        backup_name (str): The backup folder name.

    Returns:
        DeleteResult: The backup name and the number of keys submitted for deletion.

    Raises:
        BackupNotFoundError: If no objects exist under the backup folder.
        BatchDeleteError: If S3 reports keys it could not delete.
        botocore.exceptions.ClientError: If a list or delete call fails.
    """
    backup_prefix = f"{folder_prefix(prefix)}{backup_name}/"
    keys = list_backup_keys(client, bucket, backup_prefix)

    if not keys:
        raise BackupNotFoundError(f"No backup found at s3://{bucket}/{backup_prefix}")

    total_deleted = 0
    failed = []
    for i in range(0, len(keys), MAX_DELETE_BATCH):
        batch = keys[i:i + MAX_DELETE_BATCH]
        response = client.delete_objects(
            Bucket=bucket,
            Delete={
                'Objects': [{'Key': key} for key in batch],
                'Quiet': True
            }
        )
        total_deleted += len(batch)
        for err in response.get('Errors', []):
            logging.error(f"{backup_name}: Failed to delete {err.get('Key')}: {err.get('Code')}: {err.get('Message')}")
            failed.append(err.get('Key'))

    if failed:
        raise BatchDeleteError(f"{len(failed)} of {total_deleted} objects could not be deleted from "
                               f"s3://{bucket}/{backup_prefix}")

    return DeleteResult(backup_name=backup_name, deleted_files=total_deleted)
