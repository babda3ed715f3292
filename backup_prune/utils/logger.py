from pythonjsonlogger import jsonlogger
import logging
from datetime import datetime, timezone


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)
        log_record['timestamp'] = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')
        log_record['level'] = record.levelname


def get_logger(log_level=logging.INFO, json_format=True):
    """
    Configure the root logger with a single stream handler.

    Calling it again only updates the level, so handlers are never stacked.

    Args:
        log_level (int or str): Logging level, e.g. logging.INFO or 'DEBUG'.
        json_format (bool): Emit JSON records when True, plain text otherwise.

    Returns:
        logging.Logger: The root logger.
    """
    logger = logging.getLogger()
    if not any(getattr(h, '_backup_prune', False) for h in logger.handlers):
        log_handler = logging.StreamHandler()
        log_handler._backup_prune = True
        if json_format:
            formatter = CustomJsonFormatter('%(level)s %(timestamp)s  %(message)s')
        else:
            formatter = logging.Formatter('%(levelname)s - %(message)s')
        log_handler.setFormatter(formatter)
        logger.addHandler(log_handler)
    logger.setLevel(log_level)
    return logger
