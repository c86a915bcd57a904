"""
Command-line interface for the beacon ledger.

Provides CLI commands for beacon management:
- keygen: Generate and store a beacon signing key
- append: Append one or more records to the configured ledger
- show: Print a record selected by id or time
- run: Serve the read API while appending one record per interval

Usage:
    beacon-ledger keygen [--output PATH] [--force] [--curve ed25519|p256]
    beacon-ledger append [--count N]
    beacon-ledger show [--id N | --before TIME | --after TIME]
    beacon-ledger run [--host HOST] [--port PORT] [--interval SECONDS]

Environment Variables:
    BEACON_STORAGE: Storage location (default: data/beacon.db)
    BEACON_KEY_PATH: Private key file (default: config/beacon_key.pem)
    BEACON_ENTROPY_PATH: Entropy device or pipe (default: OS CSPRNG)
    BEACON_HOST / BEACON_PORT: API bind address (default: 127.0.0.1:8888)
"""

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

from beacon_ledger.config import config
from beacon_ledger.errors import BeaconError, NoRecords
from beacon_ledger.logging_setup import configure_logging


def _parse_time(value: str) -> datetime:
    """argparse type for ISO-8601 timestamps (naive values are UTC)."""
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid ISO-8601 time: {value!r}") from exc


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return number


def cmd_keygen(args: argparse.Namespace) -> int:
    """
    Generate a new signing key and write it as PEM.

    Refuses to overwrite an existing key unless ``--force`` is given.

    Returns:
        0 on success, 1 on error
    """
    from beacon_ledger.core.records import b64encode
    from beacon_ledger.core.signing import generate_signer, save_private_key_pem

    output = Path(args.output) if args.output else config.beacon.absolute_key_path
    if output.exists() and not args.force:
        print(f"Error: {output} already exists (use --force to overwrite).", file=sys.stderr)
        return 1

    try:
        signer = generate_signer(args.curve)
        save_private_key_pem(signer, output)
    except (OSError, ValueError) as e:
        print(f"Error generating key: {e}", file=sys.stderr)
        return 1

    print(f"Wrote {signer.algorithm} private key to {output}")
    print(f"Public key: {b64encode(signer.public_key())}")
    return 0


def cmd_append(args: argparse.Namespace) -> int:
    """
    Append ``--count`` records and print each as JSON.

    Returns:
        0 on success, 1 on error
    """
    from beacon_ledger.api.server import build_ledger
    from beacon_ledger.core.retry import append_with_retry

    try:
        ledger = build_ledger()
    except (OSError, ValueError, BeaconError) as e:
        print(f"Error opening ledger: {e}", file=sys.stderr)
        return 1

    with ledger:
        for _ in range(args.count):
            try:
                record = append_with_retry(ledger, attempts=config.beacon.max_append_attempts)
            except BeaconError as e:
                print(f"Error appending record: {e}", file=sys.stderr)
                return 1
            print(json.dumps(record.to_dict()))
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    """
    Print one record: by ``--id``, ``--before``/``--after`` a time, or the latest.

    Returns:
        0 on success, 1 if no record matches or the ledger cannot be opened
    """
    from beacon_ledger.api.server import build_ledger

    try:
        ledger = build_ledger()
    except (OSError, ValueError, BeaconError) as e:
        print(f"Error opening ledger: {e}", file=sys.stderr)
        return 1

    with ledger:
        try:
            if args.id is not None:
                record = ledger.select(args.id)
            elif args.before is not None:
                record = ledger.before(args.before)
            elif args.after is not None:
                record = ledger.after(args.after)
            else:
                record = ledger.latest()
        except NoRecords as e:
            print(f"No record found: {e}", file=sys.stderr)
            return 1
        except BeaconError as e:
            print(f"Error reading ledger: {e}", file=sys.stderr)
            return 1

    print(json.dumps(record.to_dict(), indent=2))
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """
    Serve the beacon API and run the periodic generator until interrupted.

    Returns:
        0 on clean shutdown, 1 on error
    """
    from beacon_ledger.api.server import start_server

    try:
        start_server(host=args.host, port=args.port, interval_seconds=args.interval)
    except KeyboardInterrupt:
        print("\nShutting down beacon...")
        return 0
    except (OSError, ValueError, BeaconError) as e:
        print(f"Error starting beacon: {e}", file=sys.stderr)
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="beacon-ledger",
        description="Beacon Ledger - signed, hash-chained public randomness",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # keygen command
    keygen_parser = subparsers.add_parser(
        "keygen",
        help="Generate a beacon signing key",
        description="Generate a private key and write it as unencrypted PKCS#8 PEM.",
    )
    keygen_parser.add_argument(
        "--output",
        "-o",
        type=str,
        help="Key file path (default: beacon.key_path from config)",
    )
    keygen_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing key file",
    )
    keygen_parser.add_argument(
        "--curve",
        choices=("ed25519", "p256"),
        default="ed25519",
        help="Signature algorithm (default: ed25519)",
    )
    keygen_parser.set_defaults(func=cmd_keygen)

    # append command
    append_parser = subparsers.add_parser(
        "append",
        help="Append records to the ledger",
        description="Draw entropy, sign and append records to the configured ledger.",
    )
    append_parser.add_argument(
        "--count",
        "-n",
        type=_positive_int,
        default=1,
        help="Number of records to append (default: 1)",
    )
    append_parser.set_defaults(func=cmd_append)

    # show command
    show_parser = subparsers.add_parser(
        "show",
        help="Print a record as JSON",
        description="Print the latest record, or one selected by id or time.",
    )
    selector = show_parser.add_mutually_exclusive_group()
    selector.add_argument("--id", type=int, help="Record id")
    selector.add_argument("--before", type=_parse_time, help="Latest record at or before TIME")
    selector.add_argument("--after", type=_parse_time, help="Earliest record at or after TIME")
    show_parser.set_defaults(func=cmd_show)

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Run the beacon server",
        description="Serve the read API and append one record per interval.",
    )
    run_parser.add_argument(
        "--host",
        type=str,
        help="Host to bind to (default: 127.0.0.1, or BEACON_HOST env var)",
    )
    run_parser.add_argument(
        "--port",
        "-p",
        type=int,
        help="API port (default: 8888, or BEACON_PORT env var)",
    )
    run_parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between records (default: 60, or BEACON_INTERVAL env var)",
    )
    run_parser.set_defaults(func=cmd_run)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging(config.logging)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
