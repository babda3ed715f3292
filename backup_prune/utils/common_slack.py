import json
import requests

RED = 'ff0505'
# Keeps the section block under Slack's text limit on large runs.
MAX_LISTED_BACKUPS = 20


class SlackAlertError(Exception):
    pass


def error_message(config, issue, error_code, message, failed_backups=()):
    """
    Build the alert payload for a failed pruning run.

    Args:
        config (PruneConfig): The run configuration.
        issue (str): What went wrong, e.g. the exception message.
        error_code (str): A short error code.
        message (str): A human readable summary.
        failed_backups (list): (backup name, error) pairs of backups that could not be deleted.
    """
    return {
        "Application": config.application,
        "Error Code": error_code,
        "Error Message": message,
        "Location": f"s3://{config.bucket}/{config.prefix}",
        "Environment": config.environment,
        "Region": config.region,
        "Issue": issue,
        "Failed Backups": list(failed_backups)
    }


def format_alert(message):
    lines = [f":wastebasket: *{message['Application']}* could not prune `{message['Location']}`",
             f"*Environment*: {message['Environment'] or '-'}  *Region*: {message['Region']}",
             f"*{message['Error Code']}*: {message['Error Message']}"]
    failed = message['Failed Backups']
    if failed:
        lines.append("*Backups left in place*:")
        lines.extend(f"• `{name}`: {error}" for name, error in failed[:MAX_LISTED_BACKUPS])
        if len(failed) > MAX_LISTED_BACKUPS:
            lines.append(f"…and {len(failed) - MAX_LISTED_BACKUPS} more")
    else:
        lines.append(f"*Issue*: {message['Issue']}")
    return "\n".join(lines)


def send_slack_alert(webhook_url, message, color=RED):
    """
    Post a prune failure to a Slack incoming webhook.

    Raises:
        SlackAlertError: If Slack does not accept the message.
    """
    body = {
        "text": f"{message['Application']}: {message['Error Message']}",
        "attachments": [{
            "color": color,
            "blocks": [{
                "type": "section",
                "text": {"type": "mrkdwn", "text": format_alert(message)}
            }]
        }]
    }
    response = requests.post(webhook_url, data=json.dumps(body), headers={'Content-Type': 'application/json'})
    if response.status_code != 200:
        raise SlackAlertError(f"Could not send slack alert: {response.content}")
