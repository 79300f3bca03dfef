"""Command-line interface for Journal Ledger."""

import argparse
import json
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any
from uuid import UUID

from journal_ledger.config import LogLevel, get_settings
from journal_ledger.domain.accounts import Account
from journal_ledger.domain.filters import parse_filter_roles
from journal_ledger.domain.journals import (
    JournalDocument,
    JournalLine,
    JournalRequest,
    QuickJournalRequest,
)
from journal_ledger.domain.value_objects import AccountType
from journal_ledger.exceptions import JournalLedgerError
from journal_ledger.logging_config import configure_logging
from journal_ledger.repositories.sqlite import (
    SQLiteAccountBalanceRepository,
    SQLiteAccountRepository,
    SQLiteDatabase,
    SQLiteJournalDocumentRepository,
    SQLiteJournalEntryRepository,
    SQLiteJournalEventRepository,
)
from journal_ledger.services.posting import PostingServiceImpl

# Errors reported as "Error: ..." with exit code 1
CLI_ERRORS = (JournalLedgerError, OSError, ValueError, KeyError, InvalidOperation)


def get_default_db_path() -> Path:
    """Get the default database path in user's home directory."""
    return Path.home() / ".journal_ledger" / "ledger.db"


def create_app(db_path: Path | None = None) -> tuple[SQLiteDatabase, PostingServiceImpl]:
    """Create and initialize the application with database and services."""
    if db_path is None:
        db_path = get_default_db_path()

    db_path.parent.mkdir(parents=True, exist_ok=True)

    db = SQLiteDatabase(str(db_path))
    db.initialize()

    settings = get_settings()
    posting_service = PostingServiceImpl(
        store=db,
        account_repo=SQLiteAccountRepository(db),
        document_repo=SQLiteJournalDocumentRepository(db),
        entry_repo=SQLiteJournalEntryRepository(db),
        balance_repo=SQLiteAccountBalanceRepository(db),
        event_repo=SQLiteJournalEventRepository(db),
        strict_lines=settings.strict_journal_lines,
        record_history=settings.enable_journal_history,
    )
    return db, posting_service


def _db_path(args: argparse.Namespace) -> Path:
    return Path(args.database) if args.database else get_default_db_path()


def _open(args: argparse.Namespace) -> tuple[SQLiteDatabase, PostingServiceImpl] | None:
    db_path = _db_path(args)
    if not db_path.exists():
        print(f"Error: Database not found at {db_path}")
        print("Run 'jl init' to create a new database")
        return None
    return create_app(db_path)


def _user_id(args: argparse.Namespace) -> UUID | None:
    if args.user_id:
        return UUID(args.user_id)
    return get_settings().default_user_id


def _load_request(path: str) -> JournalRequest:
    """Read a journal request from a JSON file.

    Expected shape:
        {"journal_number": "J-1", "date": "2024-01-31", "description": "...",
         "reference": "...", "entries": [{"account_id": "...", "debit": "100"}, ...]}
    """
    data: dict[str, Any] = json.loads(Path(path).read_text())
    return JournalRequest(
        journal_number=str(data["journal_number"]),
        journal_date=date.fromisoformat(data["date"]),
        lines=[
            JournalLine(
                account_id=UUID(line["account_id"]),
                debit=_optional_amount(line.get("debit")),
                credit=_optional_amount(line.get("credit")),
                note=line.get("note", ""),
            )
            for line in data.get("entries", [])
        ],
        description=data.get("description", ""),
        reference=data.get("reference", ""),
    )


def _optional_amount(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    return Decimal(str(value))


def _print_journal(document: JournalDocument) -> None:
    print(f"Journal {document.journal_number} ({document.id})")
    print(f"  Date: {document.journal_date.isoformat()}")
    print(f"  Amount: {document.amount}")
    print(f"  Type: {document.transaction_type.value}")
    if document.description:
        print(f"  Description: {document.description}")
    if document.reference:
        print(f"  Reference: {document.reference}")
    if document.entries:
        print(f"  {'Account':<38} {'Debit':>14} {'Credit':>14}  Note")
        for entry in document.entries:
            debit = str(entry.debit_amount) if entry.debit_amount is not None else ""
            credit = str(entry.credit_amount) if entry.credit_amount is not None else ""
            print(f"  {str(entry.account_id):<38} {debit:>14} {credit:>14}  {entry.note}")


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize a new database."""
    db_path = _db_path(args)

    if db_path.exists() and not args.force:
        print(f"Database already exists at {db_path}")
        print("Use --force to reinitialize (WARNING: will delete existing data)")
        return 1

    if db_path.exists() and args.force:
        db_path.unlink()

    db, _ = create_app(db_path)
    db.close()

    print(f"Initialized database at {db_path}")
    return 0


def cmd_account_add(args: argparse.Namespace) -> int:
    """Add a new account."""
    opened = _open(args)
    if opened is None:
        return 1
    db, _ = opened

    try:
        account = Account(
            name=args.name,
            account_type=AccountType(args.type),
            code=args.code,
        )
        SQLiteAccountRepository(db).add(account)
    except CLI_ERRORS as e:
        print(f"Error: {e}")
        return 1
    finally:
        db.close()

    print(f"Account created: {account.id}")
    print(f"  Name: {account.name}")
    print(f"  Type: {account.account_type.value} ({account.normal_side.value}-normal)")
    return 0


def cmd_account_list(args: argparse.Namespace) -> int:
    """List accounts with their running balances."""
    opened = _open(args)
    if opened is None:
        return 1
    db, service = opened

    try:
        accounts = list(SQLiteAccountRepository(db).list_all())
        print(f"{'ID':<38} {'Code':<10} {'Name':<30} {'Type':<10} {'Balance':>14}")
        print("-" * 106)
        for account in accounts:
            balance = service.get_account_balance(account.id).balance
            print(
                f"{str(account.id):<38} {account.code or '-':<10} "
                f"{account.name[:28]:<30} {account.account_type.value:<10} {balance:>14}"
            )
        print(f"\nTotal: {len(accounts)} account(s)")
        return 0
    except CLI_ERRORS as e:
        print(f"Error: {e}")
        return 1
    finally:
        db.close()


def cmd_account_balance(args: argparse.Namespace) -> int:
    """Show an account's running balance."""
    opened = _open(args)
    if opened is None:
        return 1
    db, service = opened

    try:
        balance = service.get_account_balance(UUID(args.id))
        print(f"Balance: {balance.balance}")
        return 0
    except CLI_ERRORS as e:
        print(f"Error: {e}")
        return 1
    finally:
        db.close()


def cmd_journal_post(args: argparse.Namespace) -> int:
    """Post a manual journal from a JSON file."""
    opened = _open(args)
    if opened is None:
        return 1
    db, service = opened

    try:
        document = service.create_journal(_load_request(args.file), _user_id(args))
        print(f"Journal posted: {document.id}")
        _print_journal(document)
        return 0
    except CLI_ERRORS as e:
        print(f"Error: {e}")
        return 1
    finally:
        db.close()


def cmd_journal_edit(args: argparse.Namespace) -> int:
    """Replace a manual journal with the contents of a JSON file."""
    opened = _open(args)
    if opened is None:
        return 1
    db, service = opened

    try:
        document = service.edit_journal(
            UUID(args.id), _load_request(args.file), _user_id(args)
        )
        print(f"Journal updated: {document.id}")
        _print_journal(document)
        return 0
    except CLI_ERRORS as e:
        print(f"Error: {e}")
        return 1
    finally:
        db.close()


def cmd_journal_delete(args: argparse.Namespace) -> int:
    """Delete a manual journal."""
    opened = _open(args)
    if opened is None:
        return 1
    db, service = opened

    try:
        service.delete_journal(UUID(args.id), _user_id(args))
        print(f"Journal deleted: {args.id}")
        return 0
    except CLI_ERRORS as e:
        print(f"Error: {e}")
        return 1
    finally:
        db.close()


def cmd_journal_show(args: argparse.Namespace) -> int:
    """Show a manual journal with its entries."""
    opened = _open(args)
    if opened is None:
        return 1
    db, service = opened

    try:
        _print_journal(service.get_journal(UUID(args.id)))
        return 0
    except CLI_ERRORS as e:
        print(f"Error: {e}")
        return 1
    finally:
        db.close()


def cmd_journal_list(args: argparse.Namespace) -> int:
    """List manual journals."""
    opened = _open(args)
    if opened is None:
        return 1
    db, service = opened

    try:
        documents = service.list_journals(parse_filter_roles(args.filter))

        print(f"{'ID':<38} {'Number':<15} {'Date':<12} {'Amount':>14}  Description")
        print("-" * 100)
        for document in documents:
            print(
                f"{str(document.id):<38} {document.journal_number:<15} "
                f"{document.journal_date.isoformat():<12} {document.amount:>14}  "
                f"{document.description[:30]}"
            )
        print(f"\nTotal: {len(documents)} journal(s)")
        return 0
    except CLI_ERRORS as e:
        print(f"Error: {e}")
        return 1
    finally:
        db.close()


def cmd_journal_history(args: argparse.Namespace) -> int:
    """Show the create/supersede/delete history of a manual journal."""
    opened = _open(args)
    if opened is None:
        return 1
    db, service = opened

    try:
        events = service.get_journal_history(UUID(args.id))
        for event in events:
            user = str(event.user_id) if event.user_id else "-"
            print(
                f"{event.occurred_at.isoformat()}  {event.action.value:<10} "
                f"{event.journal_number:<15} {event.amount:>14}  user={user}"
            )
        return 0
    except CLI_ERRORS as e:
        print(f"Error: {e}")
        return 1
    finally:
        db.close()


def cmd_journal_quick(args: argparse.Namespace) -> int:
    """Post one amount from a credit account to a debit account."""
    opened = _open(args)
    if opened is None:
        return 1
    db, service = opened

    try:
        request = QuickJournalRequest(
            journal_number=args.number,
            journal_date=date.fromisoformat(args.date),
            amount=Decimal(args.amount),
            debit_account_id=UUID(args.debit_account),
            credit_account_id=UUID(args.credit_account),
            note=args.note,
            description=args.description,
        )
        document = service.quick_journal(request, _user_id(args))
        print(f"Journal posted: {document.id}")
        _print_journal(document)
        return 0
    except CLI_ERRORS as e:
        print(f"Error: {e}")
        return 1
    finally:
        db.close()


def cmd_verify(args: argparse.Namespace) -> int:
    """Recompute balances from entries and compare with stored balances."""
    opened = _open(args)
    if opened is None:
        return 1
    db, service = opened

    try:
        discrepancies = service.verify_balances()
    except CLI_ERRORS as e:
        print(f"Error: {e}")
        return 1
    finally:
        db.close()

    if not discrepancies:
        print("All balances match posted entries")
        return 0

    print(f"{'Account':<38} {'Stored':>14} {'Computed':>14}")
    for account_id, discrepancy in sorted(discrepancies.items(), key=lambda i: str(i[0])):
        print(f"{str(account_id):<38} {discrepancy.stored:>14} {discrepancy.computed:>14}")
    print(f"\n{len(discrepancies)} account(s) out of balance")
    return 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="jl",
        description="Journal Ledger - Double-entry manual journals with running balances",
    )
    parser.add_argument(
        "--database",
        "-d",
        help="Path to SQLite database file",
        default=None,
    )
    parser.add_argument(
        "--user-id",
        help="Acting user recorded on posted journals",
        default=None,
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show informational log events",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init command
    init_parser = subparsers.add_parser("init", help="Initialize a new database")
    init_parser.add_argument(
        "--force",
        "-f",
        action="store_true",
        help="Force reinitialization (deletes existing data)",
    )
    init_parser.set_defaults(func=cmd_init)

    # account commands
    account_parser = subparsers.add_parser("account", help="Account commands")
    account_subparsers = account_parser.add_subparsers(
        dest="account_command", help="Account commands"
    )

    account_add_parser = account_subparsers.add_parser("add", help="Add an account")
    account_add_parser.add_argument("--name", required=True, help="Account name")
    account_add_parser.add_argument(
        "--type",
        required=True,
        choices=[t.value for t in AccountType],
        help="Account type",
    )
    account_add_parser.add_argument("--code", default=None, help="Account code")
    account_add_parser.set_defaults(func=cmd_account_add)

    account_list_parser = account_subparsers.add_parser("list", help="List accounts")
    account_list_parser.set_defaults(func=cmd_account_list)

    account_balance_parser = account_subparsers.add_parser(
        "balance", help="Show an account's balance"
    )
    account_balance_parser.add_argument("--id", required=True, help="Account ID")
    account_balance_parser.set_defaults(func=cmd_account_balance)

    # journal commands
    journal_parser = subparsers.add_parser("journal", help="Manual journal commands")
    journal_subparsers = journal_parser.add_subparsers(
        dest="journal_command", help="Manual journal commands"
    )

    journal_post_parser = journal_subparsers.add_parser(
        "post", help="Post a journal from a JSON file"
    )
    journal_post_parser.add_argument("--file", required=True, help="JSON request file")
    journal_post_parser.set_defaults(func=cmd_journal_post)

    journal_edit_parser = journal_subparsers.add_parser(
        "edit", help="Replace a journal from a JSON file"
    )
    journal_edit_parser.add_argument("--id", required=True, help="Journal ID")
    journal_edit_parser.add_argument("--file", required=True, help="JSON request file")
    journal_edit_parser.set_defaults(func=cmd_journal_edit)

    journal_delete_parser = journal_subparsers.add_parser(
        "delete", help="Delete a journal"
    )
    journal_delete_parser.add_argument("--id", required=True, help="Journal ID")
    journal_delete_parser.set_defaults(func=cmd_journal_delete)

    journal_show_parser = journal_subparsers.add_parser("show", help="Show a journal")
    journal_show_parser.add_argument("--id", required=True, help="Journal ID")
    journal_show_parser.set_defaults(func=cmd_journal_show)

    journal_list_parser = journal_subparsers.add_parser("list", help="List journals")
    journal_list_parser.add_argument(
        "--filter",
        default=None,
        help='Filter roles as JSON, e.g. \'[{"field_key": "amount", '
        '"comparator": "bigger", "value": 100}]\'',
    )
    journal_list_parser.set_defaults(func=cmd_journal_list)

    journal_history_parser = journal_subparsers.add_parser(
        "history", help="Show a journal's history"
    )
    journal_history_parser.add_argument("--id", required=True, help="Journal ID")
    journal_history_parser.set_defaults(func=cmd_journal_history)

    journal_quick_parser = journal_subparsers.add_parser(
        "quick", help="Post one amount between two accounts"
    )
    journal_quick_parser.add_argument("--number", required=True, help="Journal number")
    journal_quick_parser.add_argument(
        "--date", default=date.today().isoformat(), help="Journal date (YYYY-MM-DD)"
    )
    journal_quick_parser.add_argument("--amount", required=True, help="Amount")
    journal_quick_parser.add_argument(
        "--debit-account", required=True, help="Account ID to debit"
    )
    journal_quick_parser.add_argument(
        "--credit-account", required=True, help="Account ID to credit"
    )
    journal_quick_parser.add_argument("--note", default="", help="Entry note")
    journal_quick_parser.add_argument("--description", default="", help="Description")
    journal_quick_parser.set_defaults(func=cmd_journal_quick)

    # verify command
    verify_parser = subparsers.add_parser(
        "verify", help="Check stored balances against posted entries"
    )
    verify_parser.set_defaults(func=cmd_verify)

    args = parser.parse_args(argv)

    settings = get_settings()
    if not args.verbose:
        settings = settings.model_copy(update={"log_level": LogLevel.WARNING})
    configure_logging(settings)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "account" and args.account_command is None:
        account_parser.print_help()
        return 0

    if args.command == "journal" and args.journal_command is None:
        journal_parser.print_help()
        return 0

    result: int = args.func(args)
    return result


if __name__ == "__main__":
    sys.exit(main())
