"""
Command-line interface for the currency ledger.

Provides CLI commands for ledger administration:
- init-db: Initialize the database schema
- grant: Mint an amount into an account
- balance: Show one or all balances of an account
- history: List an account's transactions, oldest first
- verify: Check the journal tail and reconcile accounts against their history
- run: Start the HTTP API

Usage:
    currency-ledger init-db
    currency-ledger grant <account> <denomination> <amount> [--note NOTE]
    currency-ledger balance <account> [denomination]
    currency-ledger history <account>
    currency-ledger verify [account ...]
    currency-ledger run [--host HOST] [--port PORT]

Configuration comes from config/ledger.ini and LEDGER_* environment
variables (see currency_ledger.config).
"""

import argparse
import sys

from currency_ledger.facade import LedgerFacade, LedgerOutcome, build_ledger


def _ledger() -> LedgerFacade:
    return build_ledger()


def _print_error(outcome: LedgerOutcome) -> None:
    print(f"Error ({outcome.error_code}): {outcome.message}", file=sys.stderr)


def cmd_init_db(args: argparse.Namespace) -> int:
    """
    Initialize the database schema.

    Returns:
        0 on success, 1 on error
    """
    from currency_ledger.config import config
    from currency_ledger.errors import LedgerError

    try:
        _ledger()
    except LedgerError as e:
        print(f"Error initializing database: {e}", file=sys.stderr)
        return 1
    print(f"Database initialized at {config.database.absolute_path}")
    return 0


def cmd_grant(args: argparse.Namespace) -> int:
    """
    Mint ``amount`` of ``denomination`` into ``account``.

    Returns:
        0 on success, 1 on ledger error
    """
    ledger = _ledger()
    try:
        outcome = ledger.credit(args.account, args.denomination, args.amount, note=args.note)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if not outcome.ok:
        _print_error(outcome)
        return 1

    record = outcome.value
    balance = ledger.get_balance(args.account, record.denomination).value
    currencies = ledger.currencies
    print(
        f"Granted {currencies.format_amount(record.amount)} {record.denomination} "
        f"to {args.account} (record {record.id}); "
        f"balance {currencies.format_amount(balance)}"
    )
    return 0


def cmd_balance(args: argparse.Namespace) -> int:
    """Print one balance, or every denomination when none is given."""
    ledger = _ledger()
    currencies = ledger.currencies

    if args.denomination:
        outcome = ledger.get_balance(args.account, args.denomination)
        if not outcome.ok:
            _print_error(outcome)
            return 1
        name = currencies.denomination(args.denomination)
        print(f"{name}: {currencies.format_amount(outcome.value)}")
        return 0

    outcome = ledger.get_balances(args.account)
    if not outcome.ok:
        _print_error(outcome)
        return 1
    for name, value in outcome.value.items():
        print(f"{name}: {currencies.format_amount(value)}")
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    """Print the account's transactions, oldest first."""
    ledger = _ledger()
    outcome = ledger.query_by_account(args.account)
    if not outcome.ok:
        _print_error(outcome)
        return 1

    records = outcome.value
    if not records:
        print(f"No transactions for {args.account}.")
        return 0

    currencies = ledger.currencies
    for record in records:
        line = (
            f"#{record.id} {record.timestamp} {record.kind.value:<8} "
            f"{record.from_party} -> {record.to_party} "
            f"{currencies.format_amount(record.amount)} {record.denomination}"
        )
        if record.note:
            line = f"{line} ({record.note})"
        print(line)
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    """
    Verify the journal tail and reconcile the named accounts.

    Returns:
        0 when everything checks out, 1 on a corrupt journal, a ledger error
        or any account whose stored balances differ from its replayed history
    """
    from currency_ledger.config import config
    from currency_ledger.journal import verify_journal

    failed = False

    if config.ledger.journal_enabled:
        journal_path = config.ledger.absolute_journal_path
        result = verify_journal(journal_path)
        if result.status == "corrupt":
            print(f"Journal {journal_path}: CORRUPT - {result.error_detail}", file=sys.stderr)
            failed = True
        elif result.status == "empty":
            print(f"Journal {journal_path}: empty")
        else:
            print(f"Journal {journal_path}: ok (last record {result.last_record_id})")
    else:
        print("Journal disabled; skipping journal check.")

    if args.accounts:
        ledger = _ledger()
        for account_id in args.accounts:
            outcome = ledger.reconcile(account_id)
            if not outcome.ok:
                _print_error(outcome)
                failed = True
                continue
            report = outcome.value
            if report.balanced:
                print(f"{account_id}: balanced")
                continue
            failed = True
            for name, (stored, replayed) in report.discrepancies.items():
                print(
                    f"{account_id}: {name} stored {stored} != replayed {replayed}",
                    file=sys.stderr,
                )

    return 1 if failed else 0


def cmd_run(args: argparse.Namespace) -> int:
    """
    Run the HTTP API until interrupted.

    Configuration Priority:
        1. CLI arguments (--host, --port)
        2. Environment variables (LEDGER_HOST, LEDGER_PORT)
        3. config/ledger.ini, then built-in defaults (127.0.0.1:8100)

    Returns:
        0 on clean shutdown (Ctrl+C), 1 on startup error
    """
    from currency_ledger.api.server import start_server
    from currency_ledger.errors import LedgerError

    try:
        start_server(host=getattr(args, "host", None), port=getattr(args, "port", None))
        return 0
    except KeyboardInterrupt:
        print("\nServer stopped.")
        return 0
    except (LedgerError, OSError) as e:
        print(f"Error starting server: {e}", file=sys.stderr)
        return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="currency-ledger",
        description="Currency Ledger - multi-denomination balances for game worlds",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init-db command
    init_parser = subparsers.add_parser(
        "init-db",
        help="Initialize the database schema",
        description="Create the ledger tables, indexes and append-only triggers.",
    )
    init_parser.set_defaults(func=cmd_init_db)

    # grant command
    grant_parser = subparsers.add_parser(
        "grant",
        help="Mint currency into an account",
        description="Credit an account from the system party and record a mint.",
    )
    grant_parser.add_argument("account", help="Account id")
    grant_parser.add_argument("denomination", help="Denomination name")
    grant_parser.add_argument("amount", help="Positive amount, e.g. 10 or 2.50")
    grant_parser.add_argument("--note", default="", help="Reason stored on the record")
    grant_parser.set_defaults(func=cmd_grant)

    # balance command
    balance_parser = subparsers.add_parser("balance", help="Show account balances")
    balance_parser.add_argument("account", help="Account id")
    balance_parser.add_argument(
        "denomination", nargs="?", help="Single denomination (default: all)"
    )
    balance_parser.set_defaults(func=cmd_balance)

    # history command
    history_parser = subparsers.add_parser("history", help="List account transactions")
    history_parser.add_argument("account", help="Account id")
    history_parser.set_defaults(func=cmd_history)

    # verify command
    verify_parser = subparsers.add_parser(
        "verify",
        help="Check the journal and reconcile accounts",
        description=(
            "Verify the last journal line, then compare each named account's "
            "stored balances against a replay of its transaction history."
        ),
    )
    verify_parser.add_argument("accounts", nargs="*", help="Accounts to reconcile")
    verify_parser.set_defaults(func=cmd_verify)

    # run command
    run_parser = subparsers.add_parser("run", help="Run the HTTP API")
    run_parser.add_argument(
        "--host", type=str, help="Host to bind (default: 127.0.0.1, or LEDGER_HOST env var)"
    )
    run_parser.add_argument(
        "--port", "-p", type=int, help="Port to bind (default: 8100, or LEDGER_PORT env var)"
    )
    run_parser.set_defaults(func=cmd_run)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    from currency_ledger.logging_config import configure_logging

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    from currency_ledger.errors import LedgerError

    configure_logging()
    try:
        return args.func(args)
    except LedgerError as e:
        print(f"Error ({e.code}): {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
