from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

MANUAL_MARKER = "[manual entry]"


class RegistrationStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    MATCHED = "matched"
    UNMATCHED = "unmatched"


class BankStatus(str, Enum):
    AVAILABLE = "available"
    MATCHED = "matched"


class Provenance(str, Enum):
    AUTOMATIC = "automatic"
    MANUAL_INJECTION = "manual_injection"


def format_amount(value):
    # 1000 -> "1,000", 1000.5 -> "1,000.50"
    value = Decimal(value)
    if value == value.to_integral_value():
        return f"{int(value):,}"
    return f"{value:,.2f}"


@dataclass
class RegistrationEntry:
    """One expected payment from the registration roster."""
    id: str
    player_name: str
    total_amount: Decimal
    last_five_digits: str = ""
    full_note: str = ""
    status: RegistrationStatus = RegistrationStatus.PENDING
    matched_id: Optional[str] = None
    reconciliation_note: Optional[str] = None
    message_matched: bool = False
    matched_bank_digits: Optional[str] = None
    provenance: Provenance = Provenance.AUTOMATIC

    @property
    def is_manual(self) -> bool:
        return self.provenance == Provenance.MANUAL_INJECTION

    @property
    def is_open(self) -> bool:
        return self.status != RegistrationStatus.MATCHED

    def to_dict(self):
        return {
            "id": self.id,
            "playerName": self.player_name,
            "totalAmount": float(self.total_amount),
            "lastFiveDigits": self.last_five_digits,
            "fullNote": self.full_note,
            "status": self.status.value,
            "matchedId": self.matched_id,
            "reconciliationNote": self.reconciliation_note,
            "messageMatched": self.message_matched,
            "matchedBankDigits": self.matched_bank_digits,
            "manual": self.is_manual,
        }


@dataclass
class BankEntry:
    """One observed transaction from the bank statement."""
    id: str
    date: str
    time: str
    summary: str
    amount: Decimal
    note: str = ""
    bank_info: str = ""
    last_five_digits: str = ""
    message: str = ""
    status: BankStatus = BankStatus.AVAILABLE
    matched_id: Optional[str] = None
    message_matched: bool = False
    provenance: Provenance = Provenance.AUTOMATIC

    @property
    def is_manual(self) -> bool:
        return self.provenance == Provenance.MANUAL_INJECTION

    @property
    def is_available(self) -> bool:
        return self.status == BankStatus.AVAILABLE

    def to_dict(self):
        return {
            "id": self.id,
            "date": self.date,
            "time": self.time,
            "summary": self.summary,
            "amount": float(self.amount),
            "note": self.note,
            "bankInfo": self.bank_info,
            "lastFiveDigits": self.last_five_digits,
            "message": self.message,
            "status": self.status.value,
            "matchedId": self.matched_id,
            "messageMatched": self.message_matched,
            "manual": self.is_manual,
        }
