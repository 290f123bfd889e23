import json
import os
import stat
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests

from dysms_client import cli

from conftest import OK_BODY, make_response


@pytest.fixture
def config_path(tmp_path: Path) -> str:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "access_key_id": "id", "access_key_secret": "key", "sign_name": "sign name",
    }), encoding="utf-8")
    return str(path)


@pytest.fixture
def fake_session(monkeypatch):
    session = MagicMock()
    session.get.return_value = make_response(200, OK_BODY)
    monkeypatch.setattr(requests, "Session", lambda: session)
    return session


def test_parse_key_values():
    assert cli.parse_key_values(["code=1234", "url=a=b"]) == {"code": "1234", "url": "a=b"}
    with pytest.raises(ValueError):
        cli.parse_key_values(["missing"])


def test_init_writes_config(tmp_path: Path, capsys):
    config_dir = tmp_path / "dysms"
    rc = cli.main(["init", "--config-dir", str(config_dir), "--access-key-id", "id",
                   "--access-key-secret", "key", "--sign-name", "sign name"])
    assert rc == 0
    config_file = config_dir / "config.json"
    data = json.loads(config_file.read_text(encoding="utf-8"))
    assert data == {"access_key_id": "id", "access_key_secret": "key", "sign_name": "sign name"}
    if os.name == "posix":
        assert stat.S_IMODE(config_file.stat().st_mode) == 0o600


def test_init_refuses_to_overwrite(tmp_path: Path):
    config_dir = tmp_path / "dysms"
    assert cli.main(["init", "--config-dir", str(config_dir), "--sign-name", "a"]) == 0
    assert cli.main(["init", "--config-dir", str(config_dir), "--sign-name", "b"]) == 1
    assert cli.main(["init", "--config-dir", str(config_dir), "--sign-name", "b", "--force"]) == 0
    data = json.loads((config_dir / "config.json").read_text(encoding="utf-8"))
    assert data["sign_name"] == "b"


def test_send_mock(config_path, fake_session, capsys):
    rc = cli.main(["send", "SMS_1", "123", "456", "--param", "code=1234",
                   "--config", config_path, "--mock"])
    assert rc == 0
    assert "SMS sent successfully" in capsys.readouterr().out
    fake_session.get.assert_not_called()


def test_send(config_path, fake_session):
    rc = cli.main(["send", "SMS_1", "123", "456", "--param", "code=1234",
                   "--out-id", "abc", "--config", config_path])
    assert rc == 0
    params = fake_session.get.call_args.kwargs["params"]
    assert params["PhoneNumbers"] == "123,456"
    assert params["TemplateParam"] == '{"code":"1234"}'
    assert params["OutId"] == "abc"


def test_send_reports_service_error(config_path, fake_session, capsys):
    fake_session.get.return_value = make_response(200, {
        "RequestId": "r", "Code": "isv.MOBILE_NUMBER_ILLEGAL", "Message": "invalid mobile",
    })
    rc = cli.main(["send", "SMS_1", "123", "--config", config_path])
    assert rc == 1
    assert "isv.MOBILE_NUMBER_ILLEGAL: invalid mobile" in capsys.readouterr().err


def test_send_batch(config_path, fake_session):
    rc = cli.main(["send-batch", "SMS_2", "123", "456", "--params-json", '[{"a":1},{"a":2}]',
                   "--config", config_path])
    assert rc == 0
    params = fake_session.get.call_args.kwargs["params"]
    assert params["SignNameJson"] == '["sign name","sign name"]'
    assert params["TemplateParamJson"] == '[{"a":1},{"a":2}]'


def test_send_batch_rejects_non_array_params(config_path, fake_session, capsys):
    rc = cli.main(["send-batch", "SMS_2", "123", "--params-json", '{"a":1}', "--config", config_path])
    assert rc == 1
    fake_session.get.assert_not_called()


def test_sign(config_path, capsys):
    assert cli.main(["sign", "a=1", "--config", config_path]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out == ["GET&%2F&a%3D1", "8AMppRLhjRNZ+RYr+i49hwak8P4="]


def test_missing_config(tmp_path: Path, capsys):
    rc = cli.main(["send", "SMS_1", "123", "--config", str(tmp_path / "nope.json")])
    assert rc == 1
    assert "Config file not found" in capsys.readouterr().err
