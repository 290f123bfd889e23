"""
Aliyun SMS Client

A Python client library for the Aliyun Short Message Service (dysmsapi) with
HMAC-SHA1 request signing.
"""

from .exceptions import SMSError, SMSAPIError, SMSResponseError
from .signing import canonicalize, sign, sign_params, special_url_encode
from .sms_api_caller import SMSAPIConfig, SMSAPIClient, send_sms, send_batch_sms

__all__ = [
    'SMSAPIConfig',
    'SMSAPIClient',
    'SMSError',
    'SMSAPIError',
    'SMSResponseError',
    'send_sms',
    'send_batch_sms',
    'canonicalize',
    'sign',
    'sign_params',
    'special_url_encode',
]

__version__ = "0.1.0"
