import logging
import re
import time
import uuid
from decimal import Decimal, InvalidOperation

from fee_matcher.models import BankEntry, RegistrationEntry

logger = logging.getLogger(__name__)

NON_NUMERIC = re.compile(r"[^0-9.]")


def parse_amount(value):
    """'NT$1,200' -> Decimal('1200'). Returns None if nothing numeric is left."""
    cleaned = NON_NUMERIC.sub("", value or "")
    if not cleaned:
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def _col(cols, index):
    return cols[index] if index < len(cols) else ""


def _data_lines(text):
    # First line is the header row copied from the spreadsheet
    lines = (text or "").strip().splitlines()
    return [line for line in lines[1:] if line.strip()]


def _batch_prefix(kind):
    # Unique per import
    return f"{kind}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def parse_registrations(text, strict=True, id_prefix=None):
    """Registration sheet columns: player name, amount, note, account tail.

    When the tail column is missing the trailing characters of the note
    are used instead. Strict mode drops rows without a name, a positive
    amount or a tail; loose mode keeps them so they simply never match.
    """
    id_prefix = id_prefix or _batch_prefix("reg")
    entries = []
    dropped = 0

    for idx, line in enumerate(_data_lines(text)):
        cols = line.split("\t")
        player_name = _col(cols, 0).strip()
        amount = parse_amount(_col(cols, 1))
        last_five_digits = (_col(cols, 3) or _col(cols, 2)).strip()[-5:]

        if strict and (not player_name or amount is None or amount <= 0 or not last_five_digits):
            dropped += 1
            continue

        entries.append(RegistrationEntry(
            id=f"{id_prefix}-{idx}",
            player_name=player_name,
            total_amount=amount if amount is not None else Decimal(0),
            last_five_digits=last_five_digits,
            full_note=_col(cols, 2),
        ))

    if dropped:
        logger.info("Dropped %d incomplete registration rows", dropped)
    return entries


def _bank_entry(line, entry_id):
    cols = line.split("\t")
    amount = parse_amount(_col(cols, 4))
    # cols[3] is the withdrawal column, never used for deposits
    return BankEntry(
        id=entry_id,
        date=_col(cols, 0),
        time=_col(cols, 1),
        summary=_col(cols, 2),
        amount=amount if amount is not None else Decimal(0),
        note=_col(cols, 5),
        bank_info=_col(cols, 6),
        last_five_digits=_col(cols, 7),
        message=_col(cols, 8),
    )


def iter_bank_batches(text, chunk_size=80, id_prefix=None):
    """Yield ``(entries, progress)`` chunks of a pasted bank statement.

    ``progress`` is the share of rows parsed so far, in whole percent.
    """
    id_prefix = id_prefix or _batch_prefix("bank")
    lines = _data_lines(text)
    total = len(lines)

    for start in range(0, total, chunk_size):
        chunk = lines[start:start + chunk_size]
        batch = [_bank_entry(line, f"{id_prefix}-{start + idx}") for idx, line in enumerate(chunk)]
        yield batch, round((start + len(chunk)) / total * 100)


def parse_bank_entries(text, id_prefix=None):
    """Bank statement columns: date, time, summary, withdrawal, deposit,
    passbook note, counterpart bank, account tail, transfer message."""
    entries = []
    for batch, _ in iter_bank_batches(text, id_prefix=id_prefix):
        entries.extend(batch)
    return entries
