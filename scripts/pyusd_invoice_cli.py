#!/usr/bin/env python3
import argparse
import json
import logging
import sys
from typing import List, Optional

from pyusd_invoice.config import ProtocolConfig, resolve_config
from pyusd_invoice.invoice import (
    EventReconciler,
    InvoiceError,
    InvoiceGenerator,
    PaymentClient,
    Phase,
    decode_or_reason,
    encode,
    qr,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("pyusd_invoice_cli")


def _read_payload(value: str) -> str:
    if value == "-":
        return sys.stdin.read()
    return value


def _cmd_generate(args: argparse.Namespace, config: ProtocolConfig) -> int:
    generator = InvoiceGenerator(config)
    invoice = generator.generate(
        args.merchant,
        args.amount,
        note=args.note,
        expires_in=args.expires_in,
    )
    encoded = encode(invoice, config.uri_scheme)
    print(json.dumps({"invoice": json.loads(encoded.json), "uri": encoded.uri}, indent=2))

    qr_payload = encoded.uri if args.qr_form == "uri" else encoded.json
    if args.qr_png:
        qr.write_png(qr_payload, args.qr_png)
        logger.info("Wrote %s invoice QR code to %s", args.qr_form, args.qr_png)
    if args.qr:
        qr.print_terminal(qr_payload, sys.stdout)
    return 0


def _cmd_decode(args: argparse.Namespace, config: ProtocolConfig) -> int:
    invoice, reason = decode_or_reason(
        _read_payload(args.payload),
        expected_version=config.protocol_version,
        decimals=config.token_decimals,
    )
    if invoice is None:
        print(f"Rejected: {reason}", file=sys.stderr)
        return 1
    print(json.dumps(invoice.to_payload(), indent=2))
    return 0


def _cmd_pay(args: argparse.Namespace, config: ProtocolConfig) -> int:
    invoice, reason = decode_or_reason(
        _read_payload(args.payload),
        expected_version=config.protocol_version,
        decimals=config.token_decimals,
    )
    if invoice is None:
        print(f"Rejected: {reason}", file=sys.stderr)
        return 1

    client = PaymentClient(config)
    client.set_payer(args.payer)

    def switch_network(chain_id: int) -> None:
        logger.warning("Connected node is on the wrong network; switch to chain %s", chain_id)

    machine = client.pay(invoice, on_switch_network=switch_network)
    attempt = machine.attempt
    if attempt.phase is Phase.SUCCESS:
        print(f"Payment successful: {config.explorer_tx_url}{attempt.pay_tx}")
        return 0

    print(f"Payment failed: {attempt.error.describe()}", file=sys.stderr)
    if machine.outstanding_allowance:
        print(
            f"Allowance granted in {attempt.approve_tx} is still outstanding.",
            file=sys.stderr,
        )
    return 1


def _cmd_ledger(args: argparse.Namespace, config: ProtocolConfig) -> int:
    client = PaymentClient(config)
    reconciler = EventReconciler(client.rpc, config)
    records = reconciler.fetch_payments(args.merchant)
    if not records:
        print("No payments received yet for this merchant.")
        return 0
    for row in reconciler.ledger_rows(records):
        print(
            f"{row['timestamp']}  {row['invoiceId']}  {row['payer']}  "
            f"{row['amount']} {config.token_symbol}  {row['txLink']}"
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serverless PYUSD invoices")
    parser.add_argument("--config", help="Path to a JSON protocol configuration")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser("generate", help="Create a merchant invoice")
    generate_parser.add_argument("--merchant", required=True)
    generate_parser.add_argument("--amount", required=True)
    generate_parser.add_argument("--note", default="")
    generate_parser.add_argument("--expires-in", type=int, default=None)
    generate_parser.add_argument("--qr", action="store_true", help="Print a QR code to the terminal")
    generate_parser.add_argument("--qr-png", metavar="PATH", help="Write a QR code PNG")
    generate_parser.add_argument(
        "--qr-form",
        choices=("json", "uri"),
        default="json",
        help="Encode the full invoice JSON (default) or the routing-only transfer URI",
    )
    generate_parser.set_defaults(handler=_cmd_generate)

    decode_parser = subparsers.add_parser("decode", help="Check scanned or pasted invoice text")
    decode_parser.add_argument("payload", help="Invoice JSON, or '-' to read stdin")
    decode_parser.set_defaults(handler=_cmd_decode)

    pay_parser = subparsers.add_parser("pay", help="Approve and pay an invoice")
    pay_parser.add_argument("payload", help="Invoice JSON, or '-' to read stdin")
    pay_parser.add_argument("--payer", required=True, help="Unlocked payer account")
    pay_parser.set_defaults(handler=_cmd_pay)

    ledger_parser = subparsers.add_parser("ledger", help="List payments received")
    ledger_parser.add_argument("--merchant", required=True)
    ledger_parser.set_defaults(handler=_cmd_ledger)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = resolve_config(args.config)
    return args.handler(args, config)


if __name__ == "__main__":
    try:
        sys.exit(main())
    except InvoiceError as exc:
        logger.error("%s: %s", exc.kind, exc.reason)
        sys.exit(2)
