"""Operator corrections applied outside the automatic engine.

Every function takes the two collections and returns new ones. When a
precondition is not met the inputs come back unchanged; callers are
expected to grey out the action rather than handle an error.
"""
import logging
import uuid
from dataclasses import replace
from datetime import datetime

from fee_matcher.matcher import basic_reconciliation
from fee_matcher.models import (
    MANUAL_MARKER,
    BankEntry,
    BankStatus,
    Provenance,
    RegistrationStatus,
    format_amount,
)

logger = logging.getLogger(__name__)

BINDING_MARKER = "[manual binding]"


def _find(entries, entry_id):
    return next((e for e in entries if e.id == entry_id), None)


def inject_payment(registrations, bank_entries, registration_id, reason, now=None):
    """Cover a registration paid through a channel missing from the bank
    statement (cash, another account) with a synthetic bank entry."""
    reason = (reason or "").strip()
    reg = _find(registrations, registration_id) if registration_id else None
    if reg is None or not reason or not reg.is_open:
        logger.info("Manual payment skipped for %s: not an open registration or no reason", registration_id)
        return registrations, bank_entries

    now = now or datetime.now()
    bank = BankEntry(
        id=f"bank-manual-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:6]}",
        date=now.strftime("%Y/%m/%d"),
        time=now.strftime("%H:%M"),
        summary=MANUAL_MARKER,
        amount=reg.total_amount,
        note=reason,
        bank_info="",
        last_five_digits=reg.last_five_digits,
        message=f"manual entry - {reg.player_name}",
        status=BankStatus.MATCHED,
        matched_id=reg.id,
        provenance=Provenance.MANUAL_INJECTION,
    )
    updated = replace(
        reg,
        status=RegistrationStatus.MATCHED,
        matched_id=bank.id,
        reconciliation_note=f"{MANUAL_MARKER} {reason}",
        message_matched=False,
        matched_bank_digits=None,
        provenance=Provenance.MANUAL_INJECTION,
    )

    logger.info("Manual payment %s added for %s (%s)", bank.id, reg.player_name, reason)
    return (
        [updated if r.id == reg.id else r for r in registrations],
        list(bank_entries) + [bank],
    )


def undo_injection(registrations, bank_entries, registration_id):
    reg = _find(registrations, registration_id)
    if reg is None or not reg.is_manual or not reg.matched_id:
        logger.info("Undo skipped for %s: not a manual payment", registration_id)
        return registrations, bank_entries

    reverted = replace(
        reg,
        status=RegistrationStatus.PENDING,
        matched_id=None,
        reconciliation_note=None,
        provenance=Provenance.AUTOMATIC,
    )

    logger.info("Manual payment %s removed for %s", reg.matched_id, reg.player_name)
    return (
        [reverted if r.id == reg.id else r for r in registrations],
        [b for b in bank_entries if b.id != reg.matched_id],
    )


def binding_note(bank, reg):
    note = f"{BINDING_MARKER} bank ${format_amount(bank.amount)} ({bank.date} {bank.time})"
    diff = bank.amount - reg.total_amount
    if diff > 0:
        note += f", difference +${format_amount(diff)} (excess)"
    elif diff < 0:
        note += f", difference -${format_amount(-diff)} (shortfall)"
    return note


def bind_bank_entry(registrations, bank_entries, bank_id, registration_id):
    """Pair an existing bank entry with an open registration by hand."""
    bank = _find(bank_entries, bank_id)
    reg = _find(registrations, registration_id)
    if bank is None or reg is None:
        logger.info("Binding skipped: bank %s or registration %s not found", bank_id, registration_id)
        return registrations, bank_entries
    if not bank.is_available or not reg.is_open:
        logger.info("Binding skipped: bank %s or registration %s already matched", bank_id, registration_id)
        return registrations, bank_entries

    updated_reg = replace(
        reg,
        status=RegistrationStatus.MATCHED,
        matched_id=bank.id,
        reconciliation_note=binding_note(bank, reg),
    )
    updated_bank = replace(bank, status=BankStatus.MATCHED, matched_id=reg.id)

    logger.info("Bank entry %s bound to %s", bank.id, reg.player_name)
    return (
        [updated_reg if r.id == reg.id else r for r in registrations],
        [updated_bank if b.id == bank.id else b for b in bank_entries],
    )


def partition_registrations(registrations):
    manual = [r for r in registrations if r.is_manual]
    rest = [r for r in registrations if not r.is_manual]
    return manual, rest


def partition_bank_entries(bank_entries):
    manual = [b for b in bank_entries if b.is_manual]
    rest = [b for b in bank_entries if not b.is_manual]
    return manual, rest


def merge_by_id(original, updated):
    by_id = {e.id: e for e in updated}
    return [e if e.is_manual else by_id.get(e.id, e) for e in original]


def reconcile_with_overrides(registrations, bank_entries):
    """Run the engine on everything that carries no manual decision.

    Returns ``(registrations, bank_entries, changed)``. ``changed`` is True
    only when a registration's status or note differs from before the run;
    otherwise the inputs are returned as they were.
    """
    _, regs_to_reconcile = partition_registrations(registrations)
    _, banks_to_reconcile = partition_bank_entries(bank_entries)

    if not regs_to_reconcile or not banks_to_reconcile:
        return registrations, bank_entries, False

    updated_regs, updated_banks = basic_reconciliation(regs_to_reconcile, banks_to_reconcile)
    final_regs = merge_by_id(registrations, updated_regs)
    final_banks = merge_by_id(bank_entries, updated_banks)

    changed = any(
        new.status != old.status or new.reconciliation_note != old.reconciliation_note
        for new, old in zip(final_regs, registrations)
    )
    if not changed:
        return registrations, bank_entries, False
    return final_regs, final_banks, True
