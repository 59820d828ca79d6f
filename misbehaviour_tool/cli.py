"""
Command line entry point.

    misbehaviour-tool check bundle.json --provider esplora --network testnet
    misbehaviour-tool serve --port 8000
    misbehaviour-tool demo --raw-tx 0200000001... > bundle.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from dataclasses import replace

import structlog
import uvicorn
from bitcoinutils.transactions import Transaction
from pydantic import ValidationError

from misbehaviour_tool.api import CheckRequest, create_app
from misbehaviour_tool.chain import canonical_serialization
from misbehaviour_tool.config import NETWORK_CONFIG, PROVIDER_KINDS, ProviderConfig, ServerConfig, log_format
from misbehaviour_tool.crypto import generate_keypair, sign
from misbehaviour_tool.errors import ProviderUnavailable
from misbehaviour_tool.identity import TowerId, UserId
from misbehaviour_tool.observability import configure_structlog
from misbehaviour_tool.receipts import Appointment, AppointmentReceipt, RegistrationReceipt
from misbehaviour_tool.verifier import VerificationBundle, verify_bundle

log = structlog.get_logger()


def _provider_config(args) -> ProviderConfig:
    return ProviderConfig.from_env(
        kind=args.provider,
        network=args.network,
        host=args.rpc_host,
        port=args.rpc_port,
        user=args.rpc_user,
        password=args.rpc_password,
        esplora_url=args.esplora_url,
        timeout=args.timeout,
    )


def cmd_check(args) -> int:
    try:
        with open(args.bundle, "r") as f:
            request = CheckRequest.model_validate(json.load(f))
        bundle = request.to_bundle()
    except (OSError, ValueError, ValidationError) as e:
        print(f"[ERROR] Cannot load bundle {args.bundle}: {e}", file=sys.stderr)
        return 2

    try:
        config = _provider_config(args)
    except ValueError as e:
        print(f"[ERROR] Invalid provider configuration: {e}", file=sys.stderr)
        return 2

    result = asyncio.run(verify_bundle(bundle, config))
    print(json.dumps(result.to_dict()))
    return 0 if result.success else 1


def cmd_serve(args) -> int:
    try:
        config = _provider_config(args)
    except ValueError as e:
        print(f"[ERROR] Invalid provider configuration: {e}", file=sys.stderr)
        return 2

    server = ServerConfig.from_env()
    app = create_app(config)
    uvicorn.run(app, host=args.host or server.host, port=args.port or server.port)
    return 0


def build_demo_bundle(
    subscription_start=100,
    subscription_expiry=4420,
    start_offset=1,
    raw_tx=None,
) -> VerificationBundle:
    """Create a fully signed bundle from fresh user and tower keys.

    With ``raw_tx`` the appointment points at that transaction, so the bundle
    verifies against any provider that knows it.
    """
    user_sk, user_pk = generate_keypair()
    tower_sk, tower_pk = generate_keypair()
    user_id = UserId.from_verifying_key(user_pk)
    tower_id = TowerId.from_verifying_key(tower_pk)

    reg_receipt = RegistrationReceipt(user_id, 21, subscription_start, subscription_expiry)
    reg_receipt = replace(reg_receipt, signature=sign(reg_receipt.to_bytes(), tower_sk))

    if raw_tx is not None:
        blob = canonical_serialization(raw_tx)
        locator = bytes.fromhex(Transaction.from_raw(blob.hex()).get_txid())[::-1]
    else:
        locator, blob = os.urandom(32), os.urandom(100)
    appointment = Appointment(locator, blob)
    user_signature = sign(appointment.to_bytes(), user_sk)

    app_receipt = AppointmentReceipt(user_signature, subscription_start + start_offset)
    app_receipt = replace(app_receipt, signature=sign(app_receipt.to_bytes(), tower_sk))

    return VerificationBundle(user_id, tower_id, reg_receipt, app_receipt, appointment, user_signature)


def cmd_demo(args) -> int:
    try:
        raw_tx = bytes.fromhex(args.raw_tx) if args.raw_tx else None
        bundle = build_demo_bundle(start_offset=args.start_offset, raw_tx=raw_tx)
    except (ValueError, ProviderUnavailable) as e:
        print(f"[ERROR] Cannot build demo bundle: {e}", file=sys.stderr)
        return 2
    log.info("demo_bundle_created", user_id=bundle.user_id.to_hex(), tower_id=bundle.tower_id.to_hex())
    print(CheckRequest.from_bundle(bundle).model_dump_json(indent=2))
    return 0


def _add_provider_args(parser):
    parser.add_argument("--provider", choices=PROVIDER_KINDS)
    parser.add_argument("--network", choices=list(NETWORK_CONFIG))
    parser.add_argument("--rpc-host")
    parser.add_argument("--rpc-port", type=int)
    parser.add_argument("--rpc-user")
    parser.add_argument("--rpc-password")
    parser.add_argument("--esplora-url")
    parser.add_argument("--timeout", type=float, help="provider timeout in seconds")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="misbehaviour-tool",
        description="Check watchtower receipts against the blockchain",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="verify a bundle JSON file")
    check.add_argument("bundle")
    _add_provider_args(check)
    check.set_defaults(func=cmd_check)

    serve = sub.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    _add_provider_args(serve)
    serve.set_defaults(func=cmd_serve)

    demo = sub.add_parser("demo", help="print a freshly signed example bundle")
    demo.add_argument("--raw-tx", help="hex transaction the appointment should point at")
    demo.add_argument("--start-offset", type=int, default=1,
                      help="appointment start block relative to the subscription start")
    demo.set_defaults(func=cmd_demo)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_structlog(log_format())
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
