"""
SMS API Client Module

This module provides functionality to send SMS messages through the Aliyun
Short Message Service (dysmsapi) using signed RPC-style GET requests.
"""

import os
import json
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Sequence, Union

import requests

from .exceptions import SMSAPIError, SMSResponseError
from .logging_config import get_logger, log_sms_event, redact_params
from .signing import sign_params

logger = get_logger(__name__)

DEFAULT_ENDPOINT = "https://dysmsapi.aliyuncs.com"
API_VERSION = "2017-05-25"
REGION_ID = "cn-hangzhou"
DEFAULT_TIMEOUT = 30

ACTION_SEND_SMS = "SendSms"
ACTION_SEND_BATCH_SMS = "SendBatchSms"

SmsParams = Mapping[str, Union[str, int, float]]


def _env_flag(name: str) -> Optional[bool]:
    value = os.environ.get(name)
    if value is None:
        return None
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _to_json(value: Any) -> str:
    # Same output as JSON.stringify
    return json.dumps(value, separators=(',', ':'), ensure_ascii=False)


def _batch_params_json(template_params: Any) -> str:
    if template_params is None:
        return '[]'
    if isinstance(template_params, (Mapping, list)):
        return _to_json(template_params)
    return _to_json(list(template_params))


def generate_nonce() -> str:
    """32 character random token for SignatureNonce"""
    return secrets.token_hex(16)


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision, e.g. 2017-07-12T02:42:19.000Z"""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def get_default_config_path() -> str:
    """Get the default configuration file path following XDG standards"""
    config_path = os.environ.get("DYSMS_CONFIG")
    if config_path:
        return config_path

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return os.path.join(xdg_config_home, "dysms", "config.json")

    home = os.environ.get("HOME")
    if home:
        return os.path.join(home, ".config", "dysms", "config.json")

    return os.path.join(os.getcwd(), ".config", "dysms", "config.json")


class SMSAPIConfig:
    """Configuration for SMS API client"""

    REQUIRED_FIELDS = ('access_key_id', 'access_key_secret', 'sign_name')

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or get_default_config_path()
        self.access_key_id: str = ""
        self.access_key_secret: str = ""
        self.sign_name: str = ""
        self.endpoint: str = DEFAULT_ENDPOINT
        self.timeout: float = DEFAULT_TIMEOUT
        self.debug: bool = False
        self.mock: bool = False

        self._load_config()
        self._apply_env_overrides()

    def _load_config(self):
        """Load configuration from file"""
        if not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        with open(self.config_path, 'r') as f:
            config_data = json.load(f)

        for field in self.REQUIRED_FIELDS:
            if not config_data.get(field) and not os.environ.get(self._env_name(field)):
                raise ValueError(f"Missing required config field: {field}")
            setattr(self, field, config_data.get(field, ""))

        # Optional fields
        self.endpoint = config_data.get('endpoint', DEFAULT_ENDPOINT)
        self.timeout = config_data.get('timeout', DEFAULT_TIMEOUT)
        self.debug = bool(config_data.get('debug', False))
        self.mock = bool(config_data.get('mock', False))

    @staticmethod
    def _env_name(field: str) -> str:
        if field == 'access_key_id':
            return 'ALIYUN_ACCESS_KEY_ID'
        if field == 'access_key_secret':
            return 'ALIYUN_ACCESS_KEY_SECRET'
        return 'DYSMS_' + field.upper()

    def _apply_env_overrides(self):
        """Credentials and flags from the environment win over the file"""
        for field in self.REQUIRED_FIELDS:
            value = os.environ.get(self._env_name(field))
            if value:
                setattr(self, field, value)

        debug = _env_flag('DYSMS_DEBUG')
        if debug is not None:
            self.debug = debug
        mock = _env_flag('DYSMS_MOCK')
        if mock is not None:
            self.mock = mock

    def __repr__(self):
        return (f"SMSAPIConfig(config_path={self.config_path!r}, "
                f"access_key_id={self.access_key_id!r}, sign_name={self.sign_name!r}, "
                f"endpoint={self.endpoint!r}, debug={self.debug}, mock={self.mock})")


class SMSAPIClient:
    """Client for the Aliyun SMS API"""

    def __init__(self, access_key_id: str, access_key_secret: str, sign_name: str,
                 debug: bool = False, mock: bool = False,
                 endpoint: str = DEFAULT_ENDPOINT, timeout: Optional[float] = DEFAULT_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.access_key_id = access_key_id
        self._access_key_secret = access_key_secret
        self.sign_name = sign_name
        self.debug = debug
        self.mock = mock
        self.endpoint = endpoint
        self.api_version = API_VERSION
        self.timeout = timeout
        self._owns_session = session is None
        self.session = session if session is not None else requests.Session()

    @classmethod
    def from_config(cls, config: SMSAPIConfig, **kwargs) -> "SMSAPIClient":
        return cls(
            config.access_key_id,
            config.access_key_secret,
            config.sign_name,
            debug=config.debug,
            mock=config.mock,
            endpoint=config.endpoint,
            timeout=config.timeout,
            **kwargs
        )

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - close the HTTP session"""
        self.close()

    def close(self):
        if self._owns_session:
            self.session.close()

    def __repr__(self):
        return (f"SMSAPIClient(access_key_id={self.access_key_id!r}, "
                f"sign_name={self.sign_name!r}, debug={self.debug}, mock={self.mock})")

    def send_sms(self, template_code: str, phone_numbers: Union[str, Sequence[str]],
                 template_params: Optional[SmsParams] = None,
                 sign_name: Optional[str] = None,
                 sms_up_extend_code: Optional[str] = None,
                 out_id: Optional[str] = None) -> None:
        """
        Send one templated message to one or more phone numbers.

        Args:
            template_code: Approved template code, e.g. SMS_153055065
            phone_numbers: A phone number or a sequence of them (sent comma-joined)
            template_params: Values for the template variables. Sent as JSON,
                or as an empty string when omitted.
            sign_name: Overrides the client's default sign name
            sms_up_extend_code: Upstream extension code
            out_id: Caller tracking id echoed back in delivery receipts

        Raises:
            SMSAPIError: The service returned an HTTP error
            SMSResponseError: The response envelope Code was not OK
            requests.exceptions.RequestException: No response was received
        """
        if self.mock:
            return self._skip_request(ACTION_SEND_SMS, template_code, phone_numbers)

        if isinstance(phone_numbers, str):
            phones = phone_numbers
        else:
            phones = ','.join(phone_numbers)

        payload = {
            'PhoneNumbers': phones,
            'SignName': sign_name if sign_name is not None else self.sign_name,
            'TemplateCode': template_code,
            'TemplateParam': _to_json(template_params) if template_params is not None else '',
        }
        if sms_up_extend_code is not None:
            payload['SmsUpExtendCode'] = sms_up_extend_code
        if out_id is not None:
            payload['OutId'] = out_id

        return self.request(ACTION_SEND_SMS, payload)

    def send_batch_sms(self, template_code: str, phone_numbers: Sequence[str],
                       template_params: Optional[Union[Sequence[SmsParams], SmsParams]] = None,
                       sign_name: Optional[str] = None,
                       sms_up_extend_code_json: Optional[str] = None) -> None:
        """
        Send one template to many phone numbers, with per-number parameters.

        The sign name is repeated once per phone number. When template_params is
        omitted TemplateParamJson is sent as the literal "[]", unlike send_sms
        which sends an empty string; the service expects both forms.
        """
        if self.mock:
            return self._skip_request(ACTION_SEND_BATCH_SMS, template_code, phone_numbers)

        if isinstance(phone_numbers, str):
            phone_numbers = [phone_numbers]
        phone_numbers = list(phone_numbers)
        if not phone_numbers:
            raise ValueError("send_batch_sms requires at least one phone number")

        names = [sign_name if sign_name is not None else self.sign_name] * len(phone_numbers)

        payload = {
            'PhoneNumberJson': _to_json(phone_numbers),
            'SignNameJson': _to_json(names),
            'TemplateCode': template_code,
            'TemplateParamJson': _batch_params_json(template_params),
        }
        if sms_up_extend_code_json is not None:
            payload['SmsUpExtendCodeJson'] = sms_up_extend_code_json

        return self.request(ACTION_SEND_BATCH_SMS, payload)

    def _skip_request(self, action: str, template_code: Any, phone_numbers: Any) -> None:
        if self.debug:
            logger.info(f"Skip sms api request due to mock option: action={action} "
                        f"template_code={template_code} phone_numbers={phone_numbers}")
        log_sms_event('sms_mocked', action, phone_numbers=phone_numbers)
        return None

    def sign(self, params: Mapping[str, Any]) -> str:
        """Signature for params using this client's secret"""
        return sign_params(self._access_key_secret, params)

    def build_params(self, action: str, params: Mapping[str, Any]) -> Dict[str, Any]:
        """Merge the action fields with the common fields and sign the result"""
        payload = dict(params)
        payload.update({
            'Signature': '',
            'Action': action,
            'AccessKeyId': self.access_key_id,
            'Format': 'JSON',
            'RegionId': REGION_ID,
            'SignatureMethod': 'HMAC-SHA1',
            'SignatureNonce': generate_nonce(),
            'SignatureVersion': '1.0',
            'Timestamp': utc_timestamp(),
            'Version': self.api_version,
        })
        payload['Signature'] = self.sign(payload)
        return payload

    def request(self, action: str, params: Mapping[str, Any]) -> None:
        """Sign and send an API action, raising on any failure"""
        phones = params.get('PhoneNumbers') or params.get('PhoneNumberJson')

        if self.mock:
            if self.debug:
                logger.info(f"Skip sms api request due to mock option: action={action} "
                            f"params={redact_params(params)}")
            log_sms_event('sms_mocked', action, phone_numbers=phones)
            return None

        payload = self.build_params(action, params)

        if self.debug:
            logger.info(f"Sending api request: GET {self.endpoint} query={redact_params(payload)}")

        try:
            response = self.session.get(self.endpoint, params=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.HTTPError as e:
            if self.debug:
                logger.error(f"Received error response from sms api: {e}")
            if e.response is None:
                raise
            error = SMSAPIError.from_response(e.response)
            log_sms_event('sms_failed', action, phone_numbers=phones,
                          request_id=error.request_id, success=False,
                          error=f"{error.code}: {error.message}")
            raise error from e
        except requests.exceptions.RequestException as e:
            if self.debug:
                logger.error(f"Sms api request failed without response: {e}")
            raise

        if self.debug:
            logger.info(f"Received response from sms api: {body}")

        if not isinstance(body, dict):
            log_sms_event('sms_failed', action, phone_numbers=phones, success=False,
                          error="unexpected response body")
            raise SMSResponseError(None, f"Unexpected response body: {body!r}")

        if body.get('Code') != 'OK':
            log_sms_event('sms_failed', action, phone_numbers=phones,
                          request_id=body.get('RequestId'), success=False,
                          error=f"{body.get('Code')}: {body.get('Message')}")
            raise SMSResponseError(body.get('Code'), body.get('Message'),
                                   request_id=body.get('RequestId'))

        log_sms_event('sms_sent', action, phone_numbers=phones,
                      request_id=body.get('RequestId'))
        return None


def send_sms(config: SMSAPIConfig, template_code: str,
             phone_numbers: Union[str, Sequence[str]],
             template_params: Optional[SmsParams] = None, **options) -> None:
    """
    Send an SMS message using the credentials from a config

    Args:
        config: SMS API configuration
        template_code: Template code
        phone_numbers: Phone number or sequence of phone numbers
        template_params: Optional template variables
        **options: sign_name, sms_up_extend_code, out_id
    """
    with SMSAPIClient.from_config(config) as client:
        client.send_sms(template_code, phone_numbers, template_params, **options)


def send_batch_sms(config: SMSAPIConfig, template_code: str, phone_numbers: Sequence[str],
                   template_params: Optional[Sequence[SmsParams]] = None, **options) -> None:
    """
    Send a batch SMS using the credentials from a config

    Args:
        config: SMS API configuration
        template_code: Template code
        phone_numbers: Sequence of phone numbers
        template_params: Optional per-number template variables
        **options: sign_name, sms_up_extend_code_json
    """
    with SMSAPIClient.from_config(config) as client:
        client.send_batch_sms(template_code, phone_numbers, template_params, **options)
