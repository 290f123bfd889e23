"""
Request signing for the Aliyun SMS API.

Aliyun RPC-style APIs sign a canonical form of the query string with
HMAC-SHA1. The canonical form is built from every request parameter except
``Signature``, sorted by key, percent-encoded with the stricter RFC 3986 rules
the service expects.
"""

import base64
from typing import Any, Mapping
from urllib.parse import quote

from cryptography.hazmat.primitives import hashes, hmac

# Characters encodeURIComponent leaves alone
URI_COMPONENT_SAFE = "-_.!~*'()"


def special_url_encode(value: Any) -> str:
    """Percent-encode a key or value the way the signing scheme requires"""
    encoded = quote(str(value), safe=URI_COMPONENT_SAFE)
    return encoded.replace('+', '%20').replace('*', '%2A').replace('%7E', '~')


def canonicalize(params: Mapping[str, Any]) -> str:
    """
    Build the string-to-sign for a set of request parameters.

    Args:
        params: Request parameters. A ``Signature`` key, if present, is ignored.

    Returns:
        str: ``GET&%2F&`` followed by the encoded, sorted query string
    """
    keys = sorted(key for key in params if key != 'Signature')
    query = '&'.join(
        f"{special_url_encode(key)}={special_url_encode(params[key])}"
        for key in keys
    )
    return f"GET&{special_url_encode('/')}&{special_url_encode(query)}"


def sign(secret: str, canonical_string: str) -> str:
    """Base64 HMAC-SHA1 of the canonical string, keyed with ``secret + '&'``"""
    mac = hmac.HMAC(f"{secret}&".encode('utf-8'), hashes.SHA1())
    mac.update(canonical_string.encode('utf-8'))
    return base64.b64encode(mac.finalize()).decode('utf-8')


def sign_params(secret: str, params: Mapping[str, Any]) -> str:
    return sign(secret, canonicalize(params))
