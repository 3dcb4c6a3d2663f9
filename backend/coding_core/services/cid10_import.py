"""CID-10 (Brazilian ICD-10) catalog import from the SSF export.

The SSF ``cid.csv`` export is semicolon-separated, one code per line:

    id;codigo;opcao;categoria;subcategoria;descricao;extendida;restricao

- opcao: dagger/asterisk marker ('+' etiology, '*' manifestation, '0' none)
- categoria / subcategoria: 'S' or 'N'
- descricao / extendida: short and full descriptions
- restricao: sex restriction ('1' male only, '3' female only, '5' both)

Categories (three-character codes) are imported before subcategories so
every subcategory can reference its category as parent.
"""

import csv
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from coding_core.schemas.base import CodeSystemKind, CrossAsterisk, SexRestriction
from coding_core.schemas.coding import BulkImportRequest, CodeSystemUpsert, ImportResult, MedicalCodeInput
from coding_core.services.catalog_import import build_searchable_text, classification_terms

logger = logging.getLogger(__name__)

DEFAULT_CID10_VERSION = "2025-SSF"
CID10_SYSTEM_NAME = "CID-10 Brasil"
CID10_SYSTEM_DESCRIPTION = "Classificação Internacional de Doenças - 10ª Revisão (importado do SSF)"
MIN_COLUMNS = 7


@dataclass
class CID10Row:
    """One parsed line of the SSF export."""

    code: str
    option: str = "0"
    category: str = "N"
    subcategory: str = "N"
    short_text: str = ""
    extended_text: str = ""
    restriction: str = "5"

    @property
    def is_category(self) -> bool:
        return self.category == "S"

    @property
    def parent_code(self) -> str | None:
        if self.is_category or "." not in self.code:
            return None
        return self.code.split(".", 1)[0]


def parse_cid10_rows(lines: Iterable[str]) -> list[CID10Row]:
    """Parse SSF export lines, skipping blank, short and header lines."""
    rows: list[CID10Row] = []
    for parts in csv.reader(lines, delimiter=";"):
        if len(parts) < MIN_COLUMNS:
            continue
        parts = [p.strip() for p in parts]
        code = parts[1]
        if not code or code.lower() == "codigo":
            continue
        rows.append(
            CID10Row(
                code=code,
                option=parts[2] or "0",
                category=parts[3] or "N",
                subcategory=parts[4] or "N",
                short_text=parts[5],
                extended_text=parts[6],
                restriction=(parts[7] if len(parts) > 7 else "") or "5",
            )
        )
    return rows


def chapter_for_code(code: str) -> str | None:
    """Roman-numeral CID-10 chapter of a code, from its letter and number."""
    if not code:
        return None
    letter = code[0].upper()
    digits = code[1:3]
    number = int(digits) if digits.isdigit() else 0

    if letter in "AB":
        return "I"
    if letter == "C" or (letter == "D" and number <= 48):
        return "II"
    if letter == "D":
        return "III" if number >= 50 else None
    if letter == "H":
        return "VII" if number <= 59 else "VIII"
    if letter in "STVWXY":
        return "XIX" if letter in "ST" else "XX"
    return {
        "E": "IV",
        "F": "V",
        "G": "VI",
        "I": "IX",
        "J": "X",
        "K": "XI",
        "L": "XII",
        "M": "XIII",
        "N": "XIV",
        "O": "XV",
        "P": "XVI",
        "Q": "XVII",
        "R": "XVIII",
        "Z": "XXI",
        "U": "XXII",
    }.get(letter)


def sex_restriction_for(restriction: str) -> SexRestriction | None:
    return {"1": SexRestriction.MALE, "3": SexRestriction.FEMALE}.get(restriction)


def cross_asterisk_for(option: str) -> CrossAsterisk | None:
    return {"+": CrossAsterisk.ETIOLOGY, "*": CrossAsterisk.MANIFESTATION}.get(option)


def row_to_code_input(row: CID10Row) -> MedicalCodeInput:
    """Map an SSF row to a catalog entry.

    The extended description is the display text. When the short one
    differs, it is kept as description, short description and synonym.
    The searchable text adds chapter, sex and dagger/asterisk terms so
    those can be found by name.
    """
    chapter = chapter_for_code(row.code)
    sex = sex_restriction_for(row.restriction)
    cross = cross_asterisk_for(row.option)
    display = row.extended_text or row.short_text or row.code
    distinct_short = row.short_text if row.short_text and row.short_text != display else None

    extra_terms = classification_terms(chapter, sex, cross)
    synonyms = [distinct_short] if distinct_short else []
    return MedicalCodeInput(
        code=row.code,
        display=display,
        description=distinct_short,
        short_description=distinct_short,
        parent_code=row.parent_code,
        synonyms=synonyms or None,
        chapter=chapter,
        sex_restriction=sex,
        is_category=row.is_category,
        cross_asterisk=cross,
        searchable_text=build_searchable_text(row.code, row.short_text, row.extended_text, extra_terms=extra_terms),
    )


async def import_cid10_rows(
    service,
    rows: list[CID10Row],
    version: str = DEFAULT_CID10_VERSION,
) -> ImportResult:
    """Register the CID-10 code system and import the given rows into it.

    ``service`` is a CodingService (or anything exposing
    ``upsert_code_system`` and ``bulk_import_codes``).
    """
    await service.upsert_code_system(
        CodeSystemUpsert(
            kind=CodeSystemKind.CID10,
            name=CID10_SYSTEM_NAME,
            version=version,
            description=CID10_SYSTEM_DESCRIPTION,
        )
    )

    seen: set[str] = set()
    ordered: list[CID10Row] = []
    for row in [r for r in rows if r.is_category] + [r for r in rows if not r.is_category]:
        if row.code in seen:
            continue
        seen.add(row.code)
        ordered.append(row)

    categories = sum(1 for r in ordered if r.is_category)
    logger.info(f"Importing {len(ordered)} CID-10 codes ({categories} categories) as version {version}")

    return await service.bulk_import_codes(
        BulkImportRequest(
            system_kind=CodeSystemKind.CID10,
            system_version=version,
            codes=[row_to_code_input(r) for r in ordered],
        )
    )


def read_cid10_file(path: Path) -> list[CID10Row]:
    """Read and parse an SSF ``cid.csv`` file."""
    if not path.exists():
        raise FileNotFoundError(f"CID-10 file not found: {path}")
    with open(path, encoding="utf-8", newline="") as f:
        return parse_cid10_rows(f)
