import json
from unittest.mock import MagicMock

import pytest
import requests

from dysms_client import SMSAPIClient


def make_response(status_code: int, body) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response.url = "https://dysmsapi.aliyuncs.com/"
    if isinstance(body, (dict, list)):
        response._content = json.dumps(body).encode("utf-8")
    else:
        response._content = body.encode("utf-8")
    return response


OK_BODY = {"RequestId": "F655A8D5-B967-440B-8683-DAD6FF8DE990", "Code": "OK", "Message": "OK",
           "BizId": "900619746936498440^0"}


@pytest.fixture
def session():
    fake = MagicMock()
    fake.get.return_value = make_response(200, OK_BODY)
    return fake


@pytest.fixture
def client(session):
    return SMSAPIClient("id", "key", "sign name", session=session)


@pytest.fixture
def mock_client():
    return SMSAPIClient("id", "key", "sign name", mock=True)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DYSMS_CONFIG", "ALIYUN_ACCESS_KEY_ID", "ALIYUN_ACCESS_KEY_SECRET",
                 "DYSMS_SIGN_NAME", "DYSMS_DEBUG", "DYSMS_MOCK"):
        monkeypatch.delenv(name, raising=False)


def sent_params(session) -> dict:
    """Query parameters passed to the most recent session.get call"""
    return session.get.call_args.kwargs["params"]
