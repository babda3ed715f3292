import logging
from datetime import datetime, timezone

import botocore.exceptions
import pytest

BUCKET = "backups-bucket"
PREFIX = "backups/mongodb"
NOW = datetime(2024, 2, 1, 12, 0, 0, tzinfo=timezone.utc)

CONFIG_VARIABLES = (
    "S3_BUCKET", "S3_PREFIX", "AWS_REGION", "AWS_ENDPOINT", "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY", "PRUNE_DAYS", "LOG_LEVEL", "LOG_FORMAT",
    "SLACK_WEBHOOK_URL", "APPLICATION", "ENVIRONMENT", "DRY_RUN",
)


def client_error(code="AccessDenied", message="Access Denied", operation="ListObjectsV2"):
    return botocore.exceptions.ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakePaginator:
    def __init__(self, client):
        self._client = client

    def paginate(self, **kwargs):
        return iter(self._client.pages(**kwargs))


class FakeS3Client:
    """In-memory stand-in for the handful of S3 calls the pruner makes."""

    def __init__(self, keys=(), page_size=1000):
        self.objects = set(keys)
        self.page_size = page_size
        self.list_error = None
        self.delete_failures = {}
        self.delete_calls = []

    def add_backup(self, name, files=1, prefix=PREFIX):
        for i in range(files):
            self.objects.add(f"{prefix}/{name}/file-{i:05d}.bson")

    def pages(self, Bucket, Prefix="", Delimiter=None, **_):
        if self.list_error is not None:
            raise self.list_error
        keys = sorted(k for k in self.objects if k.startswith(Prefix))
        if Delimiter:
            folders = sorted({Prefix + k[len(Prefix):].split(Delimiter, 1)[0] + Delimiter
                              for k in keys if Delimiter in k[len(Prefix):]})
            entries = [("CommonPrefixes", {"Prefix": f}) for f in folders]
            entries += [("Contents", {"Key": k}) for k in keys if Delimiter not in k[len(Prefix):]]
        else:
            entries = [("Contents", {"Key": k}) for k in keys]

        pages = []
        for i in range(0, max(len(entries), 1), self.page_size):
            page = {"KeyCount": 0}
            for kind, item in entries[i:i + self.page_size]:
                page.setdefault(kind, []).append(item)
                page["KeyCount"] += 1
            pages.append(page)
        return pages

    def get_paginator(self, operation_name):
        assert operation_name == "list_objects_v2"
        return FakePaginator(self)

    def list_objects_v2(self, **kwargs):
        return self.pages(**kwargs)[0]

    def delete_objects(self, Bucket, Delete):
        keys = [obj["Key"] for obj in Delete["Objects"]]
        assert len(keys) <= 1000
        self.delete_calls.append(keys)
        for prefix, failure in self.delete_failures.items():
            if any(k.startswith(prefix) for k in keys):
                if isinstance(failure, Exception):
                    raise failure
                return {"Errors": [{"Key": k, "Code": failure, "Message": "denied"} for k in keys]}
        self.objects.difference_update(keys)
        return {}


@pytest.fixture
def s3_client():
    return FakeS3Client()


@pytest.fixture
def clean_env(monkeypatch):
    for name in CONFIG_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture(autouse=True)
def reset_root_logger():
    root = logging.getLogger()
    level = root.level
    yield
    for handler in [h for h in root.handlers if getattr(h, "_backup_prune", False)]:
        root.removeHandler(handler)
    root.setLevel(level)
