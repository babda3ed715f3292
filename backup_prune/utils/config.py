import os
import logging
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from botocore.config import Config

DEFAULT_PREFIX = 'backups/mongodb'
DEFAULT_REGION = 'us-east-1'
DEFAULT_PRUNE_DAYS = 14
DEFAULT_APPLICATION = 'backup-prune'
LEADING_INT = re.compile(r"\s*([+-]?\d+)")

required_variables = ['S3_BUCKET']


class ConfigError(Exception):
    """Raised when the run cannot be configured."""


@dataclass(frozen=True)
class PruneConfig:
    bucket: str
    prefix: str = DEFAULT_PREFIX
    region: str = DEFAULT_REGION
    endpoint: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    prune_days: Optional[str] = None
    log_level: str = 'INFO'
    log_format: str = 'json'
    slack_webhook_url: Optional[str] = None
    application: str = DEFAULT_APPLICATION
    environment: str = ''


def _get(environ, key, default=None):
    value = environ.get(key)
    return value if value else default


def validate(environ, *variables):
    """
    Check the existence of environment variables.

    :param environ: Mapping to look the variables up in.
    :param variables: List of environment variable names to check.
    :raises ConfigError: If any of the specified environment variables is missing or empty.
    """
    for var in variables:
        if not environ.get(var):
            raise ConfigError(f"Environment variable '{var}' is not set. Please set it before running the script.")


def load_config(environ: Optional[Mapping[str, str]] = None, bucket=None, prefix=None) -> PruneConfig:
    """
    Build the run configuration from the environment.

    Args:
        environ (Mapping, optional): Variables to read. Defaults to os.environ.
        bucket (str, optional): Overrides S3_BUCKET.
        prefix (str, optional): Overrides S3_PREFIX.

    Returns:
        PruneConfig: The configuration for a single pruning run.

    Raises:
        ConfigError: If no bucket is configured.
    """
    if environ is None:
        environ = os.environ

    if not bucket:
        validate(environ, *required_variables)
        bucket = environ['S3_BUCKET']

    return PruneConfig(
        bucket=bucket,
        prefix=prefix or _get(environ, 'S3_PREFIX', DEFAULT_PREFIX),
        region=_get(environ, 'AWS_REGION', DEFAULT_REGION),
        endpoint=_get(environ, 'AWS_ENDPOINT'),
        access_key_id=_get(environ, 'AWS_ACCESS_KEY_ID'),
        secret_access_key=_get(environ, 'AWS_SECRET_ACCESS_KEY'),
        prune_days=environ.get('PRUNE_DAYS'),
        log_level=_get(environ, 'LOG_LEVEL', 'INFO').upper(),
        log_format=_get(environ, 'LOG_FORMAT', 'json').lower(),
        slack_webhook_url=_get(environ, 'SLACK_WEBHOOK_URL'),
        application=_get(environ, 'APPLICATION', DEFAULT_APPLICATION),
        environment=_get(environ, 'ENVIRONMENT', ''),
    )


def resolve_prune_days(option_days=None, env_value=None):
    """
    Pick the retention window in days.

    An explicit option wins, then a positive integer from PRUNE_DAYS, then the default.
    An invalid PRUNE_DAYS value is reported and replaced by the default.
    """
    if option_days is not None:
        return option_days
    if env_value:
        # Leading integer, the rest is ignored: "30d" is 30 days.
        match = LEADING_INT.match(env_value)
        if match and int(match.group(1)) > 0:
            return int(match.group(1))
        logging.warning(f'Invalid PRUNE_DAYS value "{env_value}", using default {DEFAULT_PRUNE_DAYS} days')
    return DEFAULT_PRUNE_DAYS


def client_config(config: PruneConfig) -> Config:
    # A single attempt per request: failed calls surface immediately.
    return Config(
        region_name=config.region,
        retries={
            'total_max_attempts': 1,
            'mode': 'standard'
        }
    )
