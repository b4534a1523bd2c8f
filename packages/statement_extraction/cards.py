"""Card directory: last-4 digits to representative, plus system-account exclusion.

The directory is a fixed table for the PNC commercial card statement family.
Lookups are pure and O(1). Exclusion is a conjunction: the account must be
one of the excluded system accounts AND the merchant text must contain one of
the excluded payment descriptions.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

UNASSIGNED = "Sin asignar"
UNKNOWN_PREFIX = "Desconocido"

SYSTEM_REPRESENTATIVE = "Hemisphere Trading O"

_DEFAULT_CARDS: dict[str, str] = {
    "5456": "Allia Klipp",
    "0166": "Danielle Bury",
    "1463": "Denise Urbach",
    "3841": "Erica Chaparro",
    "2469": "Fabio Novick",
    "2543": "Gail Moore",
    "2451": "Ivana Novick",
    "2153": "Josue Garcia",
    "0082": "Landon Hamel",
    "7181": "Meredith Wellen",
    "9923": "Nancy Colon",
    "2535": "Sharon Pinto",
    "0983": "Suzanne Strazzeri",
    "8012": "Tara Sarris",
    "4641": "Timothy Hawver Scott",
    "4216": "Alexis Rosenthal",
    "1785": SYSTEM_REPRESENTATIVE,
}

_DEFAULT_EXCLUDED_ACCOUNTS: frozenset[str] = frozenset({"1785"})
_DEFAULT_EXCLUDED_DESCRIPTIONS: tuple[str, ...] = (
    "payment - auto payment deduction",
    "hemisphere trading",
    "payment - auto",
    "auto payment",
)

# Masked card numbers such as "*XXXX-XXXX-XXXX-1234" or "XXXX XXXX XXXX 1234".
_MASKED_CARD = re.compile(r"[\*X](?:[\*X]{3,4}[\s-]?){3}(\d{4})", re.IGNORECASE)
_ENDING_IN = re.compile(
    r"(?:ending in|ending|\.\.\.|last 4 digits|\d{4}-\d{4}-\d{4}-)\s*(\d{4})(?!\d)",
    re.IGNORECASE,
)
_TRAILING_FOUR = re.compile(r"(\d{4})\s*$")


def extract_last4(text: object) -> str | None:
    """Return the last four digits of a card/account reference, if any.

    Handles masked numbers (``*XXXX-XXXX-XXXX-1234``), phrases such as
    ``"ending in 1234"`` or ``"...1234"``, and bare trailing digits.
    """

    if text is None:
        return None
    s = str(text).strip()
    if not s:
        return None
    for pattern in (_MASKED_CARD, _ENDING_IN, _TRAILING_FOUR):
        m = pattern.search(s)
        if m:
            return m.group(1)
    return None


def account_key(text: object) -> str:
    """Last four digits when resolvable, else the trimmed raw text."""

    last4 = extract_last4(text)
    if last4 is not None:
        return last4
    return "" if text is None else str(text).strip()


def unknown_label(last4: str | None) -> str:
    return f"{UNKNOWN_PREFIX} ({last4})" if last4 else UNASSIGNED


@dataclass(frozen=True, slots=True)
class CardDirectory:
    """Static card table with an exclusion rule for system accounts."""

    cards: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(_DEFAULT_CARDS))
    )
    excluded_accounts: frozenset[str] = _DEFAULT_EXCLUDED_ACCOUNTS
    excluded_descriptions: tuple[str, ...] = _DEFAULT_EXCLUDED_DESCRIPTIONS

    def resolve(self, last4: str | None) -> str | None:
        """Return the representative for ``last4`` or ``None`` when unknown."""

        if not last4:
            return None
        return self.cards.get(last4.strip())

    def resolve_text(self, account_text: object) -> str | None:
        return self.resolve(extract_last4(account_text))

    def is_excluded_account(self, last4: str | None, merchant_text: str | None) -> bool:
        """True only when the account AND the description both match."""

        if not last4 or last4.strip() not in self.excluded_accounts:
            return False
        merchant = (merchant_text or "").casefold()
        return any(d in merchant for d in self.excluded_descriptions)

    def is_system_representative(self, name: str | None) -> bool:
        if not name:
            return False
        system_names = {self.cards[a].casefold() for a in self.excluded_accounts if a in self.cards}
        return name.strip().casefold() in system_names

    def card_for(self, name: str) -> str | None:
        """Reverse lookup: last-4 digits for a representative name."""

        wanted = name.strip().casefold()
        for last4, rep in self.cards.items():
            if rep.casefold() == wanted:
                return last4
        return None

    def representatives(self) -> Iterable[tuple[str, str]]:
        """``(last4, name)`` pairs sorted by name, system accounts excluded."""

        return sorted(
            ((k, v) for k, v in self.cards.items() if k not in self.excluded_accounts),
            key=lambda kv: kv[1],
        )


DEFAULT_DIRECTORY = CardDirectory()


__all__ = [
    "CardDirectory",
    "DEFAULT_DIRECTORY",
    "SYSTEM_REPRESENTATIVE",
    "UNASSIGNED",
    "UNKNOWN_PREFIX",
    "account_key",
    "extract_last4",
    "unknown_label",
]
