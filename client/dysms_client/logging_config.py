"""
Logging configuration for the SMS client

This module provides centralized logging configuration for applications and the
command line tool using the client. Request parameters pass through
``redact_params`` before they are logged so secret material never reaches a log.
"""

import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone

SENSITIVE_FIELDS = frozenset({'AccessKeySecret', 'access_key_secret', 'Signature'})
REDACTED = '***'


def setup_logging(log_level=None, log_file=None, max_bytes=10*1024*1024, backup_count=5):
    """
    Set up logging configuration for the SMS client.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (if None, logs to stdout)
        max_bytes: Maximum size of log file before rotation (default 10MB)
        backup_count: Number of backup log files to keep (default 5)
    """

    # Default log level from environment or INFO
    if log_level is None:
        log_level = os.environ.get('LOG_LEVEL', 'INFO')
    log_level = log_level.upper()

    # Default log file from environment
    if log_file is None:
        log_file = os.environ.get('LOG_FILE')

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level))
    root_logger.handlers.clear()

    if log_file:
        handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count
        )
    else:
        handler = logging.StreamHandler(sys.stdout)

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    logger = logging.getLogger(__name__)
    logger.debug(f"Logging initialized - Level: {log_level}, Output: {log_file or 'stdout'}")

    return logger


def get_logger(name):
    """
    Get a logger instance for a specific module.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def redact_params(params):
    """Return a copy of ``params`` with sensitive values masked"""
    return {
        key: (REDACTED if key in SENSITIVE_FIELDS and value else value)
        for key, value in params.items()
    }


# SMS event logging
def log_sms_event(event_type, action, phone_numbers=None, request_id=None,
                  success=True, error=None):
    """
    Log SMS-related events with structured information.

    Args:
        event_type: Type of SMS event (e.g., 'sms_sent', 'sms_failed', 'sms_mocked')
        action: API action (SendSms or SendBatchSms)
        phone_numbers: Recipient phone number field as sent
        request_id: RequestId from the response envelope
        success: Whether the operation was successful
        error: Error message if applicable
    """
    logger = logging.getLogger('sms')

    log_data = {
        'event_type': event_type,
        'action': action,
        'success': success,
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }

    if phone_numbers:
        log_data['phone_numbers'] = phone_numbers
    if request_id:
        log_data['request_id'] = request_id
    if error:
        log_data['error'] = error

    # Format as key=value pairs for easy parsing
    log_message = ' '.join([f"{k}={v}" for k, v in log_data.items()])

    if success:
        logger.info(f"SMS: {log_message}")
    else:
        logger.error(f"SMS: {log_message}")
