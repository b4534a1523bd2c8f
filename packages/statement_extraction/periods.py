"""Statement period from the uploaded file name (``PNC CC 042025.pdf`` -> ``Abril 2025``)."""

from __future__ import annotations

import re
from os import PathLike
from pathlib import PurePath

MESES: tuple[str, ...] = (
    "Enero",
    "Febrero",
    "Marzo",
    "Abril",
    "Mayo",
    "Junio",
    "Julio",
    "Agosto",
    "Septiembre",
    "Octubre",
    "Noviembre",
    "Diciembre",
)

_MMYYYY = re.compile(r"(?<!\d)(0[1-9]|1[0-2])(20\d{2})(?!\d)")


def period_from_filename(name: str | PathLike[str]) -> str | None:
    m = _MMYYYY.search(PurePath(name).stem)
    if m is None:
        return None
    return f"{MESES[int(m.group(1)) - 1]} {m.group(2)}"


__all__ = ["MESES", "period_from_filename"]
