import argparse
import os
import sys
import json
from typing import Dict, List

from .exceptions import SMSAPIError, SMSResponseError
from .logging_config import setup_logging
from .signing import canonicalize, sign
from .sms_api_caller import SMSAPIConfig, SMSAPIClient, get_default_config_path


def write_file(path: str, data: bytes, mode: int = 0o600) -> None:
    with open(path, 'wb') as f:
        f.write(data)
    try:
        os.chmod(path, mode)
    except OSError:
        # Ignore chmod issues on non-POSIX
        pass


def parse_key_values(pairs: List[str]) -> Dict[str, str]:
    """Turn ['code=1234', 'name=Bob'] into a dict"""
    result = {}
    for pair in pairs or []:
        if '=' not in pair:
            raise ValueError(f"Expected key=value, got: {pair}")
        key, value = pair.split('=', 1)
        result[key] = value
    return result


def load_client(args: argparse.Namespace) -> SMSAPIClient:
    config = SMSAPIConfig(args.config)

    # Command line flags only ever switch modes on
    if getattr(args, 'mock', False):
        config.mock = True
    if getattr(args, 'debug', False):
        config.debug = True

    if config.debug:
        setup_logging('DEBUG')

    return SMSAPIClient.from_config(config)


def format_error(e: Exception) -> str:
    if isinstance(e, SMSAPIError):
        details = f"HTTP {e.status_code} {e.code}: {e.message}"
        if e.recommend:
            details += f" (see {e.recommend})"
        return details
    if isinstance(e, SMSResponseError):
        return f"{e.code}: {e.message}"
    return str(e)


def cmd_send_sms(args: argparse.Namespace) -> int:
    """Send an SMS message"""
    try:
        params = parse_key_values(args.param) if args.param else None
        with load_client(args) as client:
            client.send_sms(
                args.template_code,
                args.phone_numbers,
                params,
                sign_name=args.sign_name,
                sms_up_extend_code=args.extend_code,
                out_id=args.out_id,
            )
        print(f"SMS sent successfully to {', '.join(args.phone_numbers)}")
        return 0
    except Exception as e:
        print(f"Error: {format_error(e)}", file=sys.stderr)
        return 1


def cmd_send_batch_sms(args: argparse.Namespace) -> int:
    """Send a batch SMS"""
    try:
        params = json.loads(args.params_json) if args.params_json else None
        if params is not None and not isinstance(params, list):
            raise ValueError("--params-json must be a JSON array")
        with load_client(args) as client:
            client.send_batch_sms(
                args.template_code,
                args.phone_numbers,
                params,
                sign_name=args.sign_name,
            )
        print(f"Batch SMS sent successfully to {len(args.phone_numbers)} numbers")
        return 0
    except Exception as e:
        print(f"Error: {format_error(e)}", file=sys.stderr)
        return 1


def cmd_sign(args: argparse.Namespace) -> int:
    """Print the string-to-sign and signature for a set of parameters"""
    try:
        config = SMSAPIConfig(args.config)
        params = parse_key_values(args.params)
        canonical = canonicalize(params)
        print(canonical)
        print(sign(config.access_key_secret, canonical))
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize SMS client - creates config directory and config file"""
    config_path = (os.path.join(args.config_dir, "config.json")
                   if args.config_dir else get_default_config_path())
    config_dir = os.path.dirname(config_path)

    print(f"Initializing SMS client in: {config_dir}")

    try:
        os.makedirs(config_dir, exist_ok=True)
    except OSError as e:
        print(f"Failed to create config directory: {e}", file=sys.stderr)
        return 1

    if os.path.exists(config_path) and not args.force:
        print(f"Config file already exists: {config_path}")
        print("Use --force to overwrite existing files")
        return 1

    config_data = {
        "access_key_id": args.access_key_id,
        "access_key_secret": args.access_key_secret,
        "sign_name": args.sign_name,
        "endpoint": args.endpoint,
    }
    # Remove None values
    config_data = {k: v for k, v in config_data.items() if v is not None}

    try:
        write_file(config_path, json.dumps(config_data, indent=2).encode('utf-8'), 0o600)
    except OSError as e:
        print(f"Failed to create config file: {e}", file=sys.stderr)
        return 1

    print(f"Created config file: {config_path}")
    missing = [f for f in SMSAPIConfig.REQUIRED_FIELDS if f not in config_data]
    if missing:
        print(f"Fill in {', '.join(missing)} before sending (or set them in the environment)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="dysms-cli", description="Aliyun SMS client utilities")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_init = sub.add_parser("init", help="Create a config file", description="Create the configuration directory and a config file holding the access key and default sign name.")
    p_init.add_argument("--config-dir", help="Config directory (default: XDG_CONFIG_HOME/dysms or ~/.config/dysms)")
    p_init.add_argument("--access-key-id", help="Aliyun AccessKey ID")
    p_init.add_argument("--access-key-secret", help="Aliyun AccessKey secret")
    p_init.add_argument("--sign-name", help="Default SMS sign name")
    p_init.add_argument("--endpoint", help="API endpoint (default: https://dysmsapi.aliyuncs.com)")
    p_init.add_argument("--force", action="store_true", help="Overwrite existing files")
    p_init.set_defaults(func=cmd_init)

    p_send = sub.add_parser("send", help="Send an SMS message", description="Send a templated SMS to one or more phone numbers.")
    p_send.add_argument("template_code", help="Template code, e.g. SMS_153055065")
    p_send.add_argument("phone_numbers", nargs="+", help="Recipient phone numbers")
    p_send.add_argument("--param", action="append", help="Template parameter as key=value (repeatable)")
    p_send.add_argument("--sign-name", help="Sign name (overrides config)")
    p_send.add_argument("--extend-code", help="Upstream extension code")
    p_send.add_argument("--out-id", help="Tracking id returned in delivery receipts")
    p_send.add_argument("--config", default=None, help="Config file path (default: auto-detect from config directory)")
    p_send.add_argument("--mock", action="store_true", help="Do not call the API")
    p_send.add_argument("--debug", action="store_true", help="Log request parameters and responses")
    p_send.set_defaults(func=cmd_send_sms)

    p_batch = sub.add_parser("send-batch", help="Send a batch SMS", description="Send one template to many phone numbers with per-number parameters.")
    p_batch.add_argument("template_code", help="Template code")
    p_batch.add_argument("phone_numbers", nargs="+", help="Recipient phone numbers")
    p_batch.add_argument("--params-json", help="JSON array of template parameter objects, one per phone number")
    p_batch.add_argument("--sign-name", help="Sign name (overrides config)")
    p_batch.add_argument("--config", default=None, help="Config file path (default: auto-detect from config directory)")
    p_batch.add_argument("--mock", action="store_true", help="Do not call the API")
    p_batch.add_argument("--debug", action="store_true", help="Log request parameters and responses")
    p_batch.set_defaults(func=cmd_send_batch_sms)

    p_sign = sub.add_parser("sign", help="Show the signature for parameters", description="Print the canonical string-to-sign and its signature, useful when debugging SignatureDoesNotMatch errors.")
    p_sign.add_argument("params", nargs="*", help="Parameters as key=value")
    p_sign.add_argument("--config", default=None, help="Config file path (default: auto-detect from config directory)")
    p_sign.set_defaults(func=cmd_sign)

    return p


def main(argv=None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
