from .utils.logger import get_logger
from .utils.config import ConfigError, load_config
from .utils.common_slack import SlackAlertError, error_message, send_slack_alert
from .utils.s3_utils import create_s3_client
from .prune import run_prune

import argparse
import logging
import os
import sys
import botocore.exceptions
from dotenv import load_dotenv


def positive_int(value):
    try:
        days = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number of days: {value!r}")
    if days <= 0:
        raise argparse.ArgumentTypeError(f"number of days must be greater than 0, got {days}")
    return days


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog='backup-prune',
                                     description='Delete backup folders older than the retention window.')
    parser.add_argument('--bucket', help='S3 bucket (default: $S3_BUCKET)')
    parser.add_argument('--prefix', help='prefix holding the backup folders (default: $S3_PREFIX or backups/mongodb)')
    parser.add_argument('--days', type=positive_int, help='retention in days (default: $PRUNE_DAYS or 14)')
    parser.add_argument('--dry-run', action='store_true', help='list what would be deleted without deleting')
    return parser.parse_args(argv)


def alert(config, issue, error_code, summary, failed_backups=()):
    """
    Send a Slack alert when a webhook is configured.
    """
    if not config.slack_webhook_url:
        return
    try:
        send_slack_alert(config.slack_webhook_url, error_message(config, issue, error_code, summary, failed_backups))
    except (SlackAlertError, OSError) as e:
        logging.error(f"Could not send Slack alert: {e}")


def main(argv=None):
    args = parse_args(argv)
    load_dotenv()
    dry_run = args.dry_run or os.getenv('DRY_RUN', 'False').lower() == 'true'

    try:
        config = load_config(bucket=args.bucket, prefix=args.prefix)
    except ConfigError as e:
        get_logger()
        logging.error(f"Failed to prune backups: {e}")
        return 1

    get_logger(config.log_level, json_format=config.log_format != 'plain')

    try:
        client = create_s3_client(config)
        report = run_prune(config, client, days=args.days, dry_run=dry_run)
    except botocore.exceptions.ClientError as e:
        logging.error(f"{config.environment} {config.region}: Failed to prune backups in s3://{config.bucket}/{config.prefix}")
        logging.error(f"{config.environment} {config.region}: Here's why: {e.response['Error']['Code']}: {e.response['Error']['Message']}")
        if not dry_run:
            alert(config, e.response['Error']['Message'], e.response['Error']['Code'], "Failed to list backups")
        return 1
    except botocore.exceptions.BotoCoreError as e:
        logging.error(f"{config.environment} {config.region}: Failed to prune backups: {e}")
        if not dry_run:
            alert(config, str(e), type(e).__name__, "Failed to list backups")
        return 1

    if not report.succeeded:
        failed = ', '.join(name for name, _ in report.errors)
        alert(config, failed, 'PruneErrors', f"Failed to delete {len(report.errors)} backup(s)",
              report.errors)
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
