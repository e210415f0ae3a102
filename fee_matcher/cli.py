import argparse
import sys

from fee_matcher import config
from fee_matcher.ledger import STATUS_FILTERS, Ledger
from fee_matcher.models import format_amount


def _read(path):
    with open(path, encoding="utf-8") as f:
        return f.read()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Reconcile event registrations against a bank statement.")
    parser.add_argument("registrations", help="Tab-separated registration sheet (with header row)")
    parser.add_argument("bank", help="Tab-separated bank statement (with header row)")
    parser.add_argument("--loose", action="store_true", help="Keep incomplete registration rows")
    parser.add_argument("--status", choices=STATUS_FILTERS, default="all")
    args = parser.parse_args(argv)

    config.configure_logging()

    try:
        reg_text = _read(args.registrations)
        bank_text = _read(args.bank)
    except OSError as e:
        print(f"Error reading input: {e}", file=sys.stderr)
        return 1

    ledger = Ledger()
    ledger.import_registrations(reg_text, strict=not args.loose)
    ledger.import_bank_entries(bank_text)

    summary = ledger.summary()
    print(f"Matched: {summary['matched']}  Partial: {summary['partial']}  Pending: {summary['pending']}")
    print(
        f"Expected ${format_amount(summary['total_expected'])}, "
        f"received ${format_amount(summary['total_received'])}, "
        f"difference ${format_amount(summary['difference'])}"
    )
    print()

    for reg in ledger.filter_registrations(status=args.status):
        print(
            f"{reg.status.value:<9} {reg.player_name:<16} {reg.last_five_digits:>5} "
            f"${format_amount(reg.total_amount):>10}  {reg.reconciliation_note or '-'}"
        )

    unmatched = ledger.unmatched_bank_entries()
    if unmatched:
        print()
        print(f"Unmatched bank entries: {len(unmatched)}")
        for bank in unmatched:
            print(f"  {bank.date} {bank.time} {bank.last_five_digits:>5} ${format_amount(bank.amount):>10}  {bank.message or bank.note}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
