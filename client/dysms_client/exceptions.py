"""Errors raised by the SMS API client"""

from typing import Optional


class SMSError(Exception):
    """Base class for SMS API failures"""


class SMSAPIError(SMSError):
    """The service answered with a non-2xx HTTP status"""

    def __init__(self, status_code: int, request_id: Optional[str] = None,
                 message: Optional[str] = None, recommend: Optional[str] = None,
                 host_id: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message or f"HTTP {status_code}")
        self.status_code = status_code
        self.request_id = request_id
        self.message = message
        self.recommend = recommend
        self.host_id = host_id
        self.code = code

    @classmethod
    def from_response(cls, response) -> "SMSAPIError":
        """Build the error from a ``requests`` response, tolerating non-JSON bodies"""
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        return cls(
            status_code=response.status_code,
            request_id=body.get('RequestId'),
            message=body.get('Message'),
            recommend=body.get('Recommend'),
            host_id=body.get('HostId'),
            code=body.get('Code'),
        )

    def __repr__(self):
        return (f"SMSAPIError(status_code={self.status_code!r}, code={self.code!r}, "
                f"message={self.message!r}, request_id={self.request_id!r})")


class SMSResponseError(SMSError):
    """The request went through but the envelope ``Code`` was not ``OK``"""

    def __init__(self, code: str, message: str, request_id: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.request_id = request_id

    @property
    def name(self) -> str:
        return self.code

    def __repr__(self):
        return f"SMSResponseError(code={self.code!r}, message={self.message!r})"
