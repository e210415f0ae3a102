import logging
from decimal import Decimal

from fee_matcher import config, overrides
from fee_matcher.matcher import suggest_registrations
from fee_matcher.models import BankStatus, RegistrationStatus
from fee_matcher.parser import iter_bank_batches, parse_registrations

logger = logging.getLogger(__name__)

STATUS_PRIORITY = {
    RegistrationStatus.MATCHED: 2,
    RegistrationStatus.PARTIAL: 1,
    RegistrationStatus.PENDING: 0,
    RegistrationStatus.UNMATCHED: 0,
}

STATUS_FILTERS = ("all", "matched", "partial", "pending")


class Ledger:
    """Registrations and bank entries of one event, owned by the caller.

    The engine re-runs whenever the size of either collection changes.
    Operations that rewrite entries in place (binding) call
    ``reconcile()`` explicitly since the sizes stay the same.
    """

    def __init__(self, registrations=None, bank_entries=None):
        self.registrations = list(registrations or [])
        self.bank_entries = list(bank_entries or [])
        self._last_counts = (0, 0)

    # --- lookups -----------------------------------------------------------

    def get_registration(self, registration_id):
        return next((r for r in self.registrations if r.id == registration_id), None)

    def get_bank_entry(self, bank_id):
        return next((b for b in self.bank_entries if b.id == bank_id), None)

    # --- reconciliation ----------------------------------------------------

    def reconcile(self):
        self._last_counts = (len(self.registrations), len(self.bank_entries))
        regs, banks, changed = overrides.reconcile_with_overrides(self.registrations, self.bank_entries)
        if changed:
            self.registrations = regs
            self.bank_entries = banks
        return changed

    def refresh(self):
        counts = (len(self.registrations), len(self.bank_entries))
        if counts == self._last_counts:
            return False
        if not self.registrations or not self.bank_entries:
            self._last_counts = counts
            return False
        return self.reconcile()

    # --- imports -----------------------------------------------------------

    def add_registrations(self, entries):
        self.registrations.extend(entries)
        self.refresh()
        return len(entries)

    def add_bank_entries(self, entries):
        self.bank_entries.extend(entries)
        self.refresh()
        return len(entries)

    def import_registrations(self, text, strict=None):
        strict = config.STRICT_IMPORT if strict is None else strict
        return self.add_registrations(parse_registrations(text, strict=strict))

    def import_bank_entries(self, text, chunk_size=None):
        entries = []
        for batch, progress in iter_bank_batches(text, chunk_size or config.IMPORT_CHUNK_SIZE):
            entries.extend(batch)
            logger.debug("Bank import %d%%", progress)
        return self.add_bank_entries(entries)

    def clear(self):
        self.registrations = []
        self.bank_entries = []
        self._last_counts = (0, 0)

    # --- manual overrides --------------------------------------------------

    def inject_payment(self, registration_id, reason, now=None):
        self.registrations, self.bank_entries = overrides.inject_payment(
            self.registrations, self.bank_entries, registration_id, reason, now=now)
        self.refresh()

    def undo_injection(self, registration_id):
        self.registrations, self.bank_entries = overrides.undo_injection(
            self.registrations, self.bank_entries, registration_id)
        self.refresh()

    def bind_bank_entry(self, bank_id, registration_id):
        self.registrations, self.bank_entries = overrides.bind_bank_entry(
            self.registrations, self.bank_entries, bank_id, registration_id)
        self.reconcile()

    # --- views -------------------------------------------------------------

    def filter_registrations(self, query="", status="all"):
        regs = [
            r for r in self.registrations
            if query in r.player_name or query in r.last_five_digits
        ]
        if status == "pending":
            regs = [r for r in regs if r.status in (RegistrationStatus.PENDING, RegistrationStatus.UNMATCHED)]
        elif status != "all":
            regs = [r for r in regs if r.status == status]
        return sorted(regs, key=lambda r: STATUS_PRIORITY[r.status], reverse=True)

    def unmatched_bank_entries(self, query=""):
        banks = [b for b in self.bank_entries if b.status == BankStatus.AVAILABLE]
        if not query:
            return banks
        return [
            b for b in banks
            if query in b.last_five_digits
            or query in b.message
            or query in b.note
            or query in b.bank_info
        ]

    def bind_candidates(self, bank_id, query="", limit=None):
        bank = self.get_bank_entry(bank_id)
        if bank is None:
            return []
        return suggest_registrations(bank, self.registrations, query=query, limit=limit)

    def summary(self):
        total_expected = sum((r.total_amount for r in self.registrations), Decimal(0))
        total_received = sum((b.amount for b in self.bank_entries), Decimal(0))
        return {
            "matched": sum(1 for r in self.registrations if r.status == RegistrationStatus.MATCHED),
            "partial": sum(1 for r in self.registrations if r.status == RegistrationStatus.PARTIAL),
            "pending": sum(
                1 for r in self.registrations
                if r.status in (RegistrationStatus.PENDING, RegistrationStatus.UNMATCHED)
            ),
            "total_expected": total_expected,
            "total_received": total_received,
            "difference": total_received - total_expected,
        }
