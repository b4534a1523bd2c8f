"""Prompt construction for LLM statement extraction.

Builds:
- the system message (role and output discipline), and
- the user content: the card-to-representative table, exclusion and
  continuation rules, the self-validation instructions and the exact JSON
  layout, followed by the statement text between ``BEGIN_STATEMENT`` /
  ``END_STATEMENT`` markers.
"""

from __future__ import annotations

from .cards import DEFAULT_DIRECTORY, SYSTEM_REPRESENTATIVE, CardDirectory

BEGIN_STATEMENT = "BEGIN_STATEMENT\n"
END_STATEMENT = "\nEND_STATEMENT"

_RESPONSE_LAYOUT = """{
  "nombre_archivo": "<file name or null>",
  "comerciales": {
    "<Representative Name>": {
      "total_extracto": <total printed on the statement for this card, number or null>,
      "total_calculado": <sum of the amounts you extracted, number>,
      "transacciones": [
        {
          "descripcion": "<supplier exactly as printed>",
          "monto": <amount as a positive number>,
          "fecha": "<posting date exactly as printed>",
          "fecha_transaccion": "<tran date exactly as printed>",
          "tarjeta": "<last 4 digits of the card>",
          "fila": <row number from the [row N] tag, only when lines carry one>
        }
      ]
    }
  },
  "analisis_preliminar": {"total_general": <statement grand total, number or null>}
}"""


def build_system_message() -> str:
    return (
        "You are a specialized assistant for extracting bank statement data. "
        "You read commercial card statements and return every transaction as JSON. "
        "Never invent transactions, dates or amounts. Output a single JSON document only."
    )


def _card_table(directory: CardDirectory) -> str:
    return "\n".join(f"- {last4}: {name}" for last4, name in directory.representatives())


def build_user_content(
    statement_text: str,
    *,
    directory: CardDirectory = DEFAULT_DIRECTORY,
    part_label: str | None = None,
) -> str:
    """User message for one extraction call.

    ``part_label`` (e.g. ``"part 1 of 2"``) tells the model it sees only a
    slice of the statement so it does not expect every representative.
    """

    excluded_cards = ", ".join(sorted(directory.excluded_accounts))
    scope = (
        f"This is {part_label} of a longer statement; extract only what appears in this text.\n\n"
        if part_label
        else ""
    )
    return (
        f"{scope}"
        "Extract EVERY transaction from the commercial card statement below.\n\n"
        "1. Assign each transaction to its representative using the last 4 digits of the card:\n"
        f"{_card_table(directory)}\n"
        "   Use the card's section header when a line does not repeat the card number.\n"
        f"2. Exclude the system account {SYSTEM_REPRESENTATIVE} (card {excluded_cards}) and any "
        '"Payment - Auto Payment Deduction" / auto payment lines entirely.\n'
        '3. Lines "--- Page X of Y ---" are page breaks. A representative\'s section can continue '
        "on the next page; keep collecting until the next card header.\n"
        '4. Lines such as "Debit Total USD", "Credit Total USD" or "Total USD" are totals, not '
        "transactions. Use them as total_extracto. When a section spans pages, add its partial "
        "totals.\n"
        "5. Copy dates exactly as printed (do not reformat, do not guess, leave empty when "
        "missing).\n"
        "6. Self-check: for each representative sum the amounts you extracted into "
        "total_calculado and compare it to total_extracto. If they differ, re-read that section "
        "for missed or duplicated lines before answering.\n\n"
        "Respond with JSON in exactly this layout:\n"
        f"{_RESPONSE_LAYOUT}\n\n"
        f"{BEGIN_STATEMENT}{statement_text}{END_STATEMENT}"
    )


def extract_statement_text(user_content: str) -> str:
    """Inverse of the embedding in :func:`build_user_content` (used by tests/tools)."""

    b = user_content.find(BEGIN_STATEMENT)
    e = user_content.rfind(END_STATEMENT)
    if b == -1 or e == -1 or e < b:
        raise ValueError("user content missing embedded statement block")
    return user_content[b + len(BEGIN_STATEMENT) : e]


__all__ = [
    "BEGIN_STATEMENT",
    "END_STATEMENT",
    "build_system_message",
    "build_user_content",
    "extract_statement_text",
]
