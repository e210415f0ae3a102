import logging
from collections import OrderedDict
from dataclasses import replace
from decimal import Decimal
from operator import itemgetter

from thefuzz import fuzz

from fee_matcher.models import (
    BankStatus,
    RegistrationStatus,
    format_amount,
)

logger = logging.getLogger(__name__)

OPEN_STATUSES = (RegistrationStatus.PENDING, RegistrationStatus.UNMATCHED)


def _reset(reg):
    # Matched entries keep their note across runs
    if reg.status == RegistrationStatus.MATCHED:
        return replace(reg)
    status = reg.status
    if status != RegistrationStatus.UNMATCHED:
        status = RegistrationStatus.PENDING
    return replace(
        reg,
        status=status,
        matched_id=None,
        reconciliation_note=None,
        message_matched=False,
        matched_bank_digits=None,
    )


def _can_match(reg):
    return reg.status != RegistrationStatus.MATCHED and reg.total_amount > 0


def exact_pass(registrations, bank_entries):
    """Pass 1: one registration to one bank entry on equal tail and amount."""
    regs = list(registrations)
    banks = list(bank_entries)

    for i, reg in enumerate(regs):
        if not _can_match(reg) or not reg.last_five_digits:
            continue

        for j, bank in enumerate(banks):
            if (bank.status == BankStatus.AVAILABLE
                    and bank.last_five_digits == reg.last_five_digits
                    and bank.amount == reg.total_amount):
                regs[i] = replace(
                    reg,
                    status=RegistrationStatus.MATCHED,
                    matched_id=bank.id,
                    reconciliation_note=(
                        f"matched to bank deposit: {bank.note or 'bank deposit'}"
                        f" - ${format_amount(bank.amount)}"
                    ),
                )
                banks[j] = replace(bank, status=BankStatus.MATCHED, matched_id=reg.id)
                break

    return regs, banks


def group_pass(registrations, bank_entries):
    """Pass 2: compare the sum of registrations sharing a tail with the
    sum of available bank entries carrying the same tail.

    Only an exact sum resolves the group. Otherwise every registration in
    the group is flagged partial and the bank entries stay available,
    since the split between them cannot be determined.
    """
    regs = list(registrations)
    banks = list(bank_entries)

    groups = OrderedDict()
    for i, reg in enumerate(regs):
        if not _can_match(reg):
            continue
        groups.setdefault(reg.last_five_digits or None, []).append(i)

    for digits, reg_indexes in groups.items():
        if digits is None:
            continue
        bank_indexes = [
            j for j, bank in enumerate(banks)
            if bank.status == BankStatus.AVAILABLE and bank.last_five_digits == digits
        ]
        if not bank_indexes:
            continue

        group_sum = sum((regs[i].total_amount for i in reg_indexes), Decimal(0))
        bank_sum = sum((banks[j].amount for j in bank_indexes), Decimal(0))
        totals = f"group total ${format_amount(group_sum)}, bank ${format_amount(bank_sum)}"

        if group_sum == bank_sum:
            first_reg_id = regs[reg_indexes[0]].id
            first_bank_id = banks[bank_indexes[0]].id
            for j in bank_indexes:
                banks[j] = replace(banks[j], status=BankStatus.MATCHED, matched_id=first_reg_id)
            for i in reg_indexes:
                regs[i] = replace(
                    regs[i],
                    status=RegistrationStatus.MATCHED,
                    matched_id=first_bank_id,
                    reconciliation_note=f"{totals}, sufficient",
                )
            continue

        if bank_sum > group_sum:
            note = f"{totals}, excess ${format_amount(bank_sum - group_sum)}"
        else:
            note = f"{totals}, shortfall ${format_amount(group_sum - bank_sum)}"
        for i in reg_indexes:
            regs[i] = replace(regs[i], status=RegistrationStatus.PARTIAL, reconciliation_note=note)

    return regs, banks


def tail_pass(registrations, bank_entries):
    """Pass 3: same tail, amount not reconciled."""
    regs = list(registrations)

    for i, reg in enumerate(regs):
        if not _can_match(reg) or reg.reconciliation_note or not reg.last_five_digits:
            continue

        bank = next(
            (b for b in bank_entries
             if b.status == BankStatus.AVAILABLE and b.last_five_digits == reg.last_five_digits),
            None,
        )
        if bank is None:
            continue

        bank_str = f"bank ${format_amount(bank.amount)}"
        if bank.amount > reg.total_amount:
            note = f"tail digits match, bank amount higher by ${format_amount(bank.amount - reg.total_amount)} ({bank_str})"
        elif bank.amount < reg.total_amount:
            note = f"tail digits match, bank amount lower by ${format_amount(reg.total_amount - bank.amount)} ({bank_str})"
        else:
            note = f"tail digits match, amounts equal ({bank_str})"
        regs[i] = replace(reg, status=RegistrationStatus.PARTIAL, reconciliation_note=note)

    return regs, list(bank_entries)


def message_pass(registrations, bank_entries):
    """Pass 4: player name found in the bank transfer message."""
    regs = list(registrations)
    banks = list(bank_entries)

    for j, bank in enumerate(banks):
        if bank.status != BankStatus.AVAILABLE or not bank.message:
            continue

        # First open registration in roster order wins
        hit = next(
            (i for i, reg in enumerate(regs)
             if reg.status in OPEN_STATUSES
             and not reg.reconciliation_note
             and reg.total_amount > 0
             and reg.player_name
             and reg.player_name in bank.message),
            None,
        )
        if hit is None:
            continue

        reg = regs[hit]
        note = (
            f"[message match] bank message mentions '{reg.player_name}',"
            f" bank tail {bank.last_five_digits or 'none'}"
            f" (expected {reg.last_five_digits or 'none'})"
        )
        diff = bank.amount - reg.total_amount
        if diff > 0:
            note += f", over by ${format_amount(diff)}"
        elif diff < 0:
            note += f", under by ${format_amount(-diff)}"

        regs[hit] = replace(
            reg,
            status=RegistrationStatus.MATCHED,
            matched_id=bank.id,
            message_matched=True,
            matched_bank_digits=bank.last_five_digits,
            reconciliation_note=note,
        )
        banks[j] = replace(bank, status=BankStatus.MATCHED, matched_id=reg.id, message_matched=True)

    return regs, banks


PASSES = (exact_pass, group_pass, tail_pass, message_pass)


def basic_reconciliation(registrations, bank_entries):
    """Classify every registration against the bank entries.

    Returns fresh ``(registrations, bank_entries)`` lists; the inputs are
    left untouched. Manually protected entries must be filtered out by the
    caller beforehand.
    """
    regs = [_reset(r) for r in registrations]
    banks = [replace(b) for b in bank_entries]

    for step in PASSES:
        regs, banks = step(regs, banks)
        logger.debug(
            "%s: %d matched, %d partial",
            step.__name__,
            sum(1 for r in regs if r.status == RegistrationStatus.MATCHED),
            sum(1 for r in regs if r.status == RegistrationStatus.PARTIAL),
        )

    logger.info(
        "Reconciled %d registrations against %d bank entries: %d matched, %d partial",
        len(regs),
        len(banks),
        sum(1 for r in regs if r.status == RegistrationStatus.MATCHED),
        sum(1 for r in regs if r.status == RegistrationStatus.PARTIAL),
    )
    return regs, banks


def score_candidate(bank, registration):
    """Rank how plausible it is that ``bank`` pays for ``registration``."""
    score = 0

    # 1. Account tail
    if bank.last_five_digits and bank.last_five_digits == registration.last_five_digits:
        score += 500
    elif bank.last_five_digits and registration.last_five_digits:
        # One mistyped digit out of five scores exactly 80
        if fuzz.ratio(bank.last_five_digits, registration.last_five_digits) >= 80:
            score += 100

    # 2. Amount
    if bank.amount == registration.total_amount:
        score += 300
    elif bank.amount > registration.total_amount:
        score += 50

    # 3. Player name in the transfer message
    if registration.player_name and bank.message:
        if registration.player_name in bank.message:
            score += 150
        elif fuzz.partial_ratio(registration.player_name, bank.message) > 85:
            score += 150

    return score


def suggest_registrations(bank, registrations, query="", limit=None):
    candidates = [r for r in registrations if r.is_open]
    if query:
        candidates = [
            r for r in candidates
            if query in r.player_name
            or query in r.last_five_digits
            or query in str(r.total_amount)
        ]

    scored = [(r, score_candidate(bank, r)) for r in candidates]
    ranked = sorted(scored, key=itemgetter(1), reverse=True)
    if limit is not None:
        ranked = ranked[:limit]
    return ranked
