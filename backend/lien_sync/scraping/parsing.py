"""Text extraction for document detail pages"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional
import re

from lien_sync.scraping.config import DEFAULT_AMOUNT_PATTERN, ParsingConfig

RECORDING_DATE_PATTERN = re.compile(r"(\d{1,2}/\d{1,2}/\d{4})")
NAMES_SECTION_PATTERN = re.compile(r"Name\(s\)[\s\S]*?Document Code", re.IGNORECASE)
GRANTOR_PATTERN = re.compile(r"Grantor[\s:]+([^\n]+)", re.IGNORECASE)
GRANTEE_PATTERN = re.compile(r"Grantee[\s:]+([^\n]+)", re.IGNORECASE)

DEFAULT_ADDRESS_PATTERN = (
    r"(\d+\s+[A-Za-z0-9\s]+(?:ST|STREET|AVE|AVENUE|RD|ROAD|DR|DRIVE|LN|LANE|CT|COURT|WAY"
    r"|BLVD|BOULEVARD|PL|PLACE)[\s,]*[A-Za-z\s]+,?\s+AZ\s+\d{5})"
)

# How far past the grantor name to look for an address
ADDRESS_WINDOW_CHARS = 200


@dataclass
class DetailFields:
    """Fields pulled from a detail page's visible text"""
    recording_date: Optional[datetime] = None
    grantor: str = ""
    grantee: str = ""
    address: str = ""
    amount: Decimal = Decimal("0")


def parse_recording_date(text: str) -> Optional[datetime]:
    match = RECORDING_DATE_PATTERN.search(text)
    if not match:
        return None
    try:
        return datetime.strptime(match.group(1), "%m/%d/%Y")
    except ValueError:
        return None


def parse_amount(text: str, pattern: Optional[str] = None) -> Decimal:
    match = re.search(pattern or DEFAULT_AMOUNT_PATTERN, text, re.IGNORECASE)
    if not match:
        return Decimal("0")
    try:
        return Decimal(match.group(1).replace(",", ""))
    except (InvalidOperation, IndexError):
        return Decimal("0")


def _names_from_section(text: str) -> List[str]:
    match = NAMES_SECTION_PATTERN.search(text)
    if not match:
        return []
    lines = [line.strip() for line in match.group(0).split("\n")]
    return [
        line for line in lines
        if line
        and not re.match(r"^Name\(s\)", line, re.IGNORECASE)
        and not re.match(r"^Document Code", line, re.IGNORECASE)
    ]


def _first_group(pattern: Optional[str], text: str) -> str:
    """Group 1 of a configured pattern (the whole match if it has no group), or """""
    if not pattern:
        return ""
    match = re.search(pattern, text, re.IGNORECASE)
    if not match:
        return ""
    value = match.group(1) if match.groups() else match.group(0)
    return (value or "").strip()


def parse_detail_text(text: str, parsing: Optional[ParsingConfig] = None) -> DetailFields:
    """
    Extract lien fields from a detail page's inner text.

    Names come from the "Name(s) ... Document Code" block (first line is the
    grantor, second the grantee), with "Grantor:"/"Grantee:" labels as a
    fallback. A configured debtor or creditor pattern is tried before
    either. The address is searched for just after the grantor name.
    """
    parsing = parsing or ParsingConfig()
    fields = DetailFields(recording_date=parse_recording_date(text))

    fields.grantor = _first_group(parsing.debtor_pattern, text)
    fields.grantee = _first_group(parsing.creditor_pattern, text)

    names = _names_from_section(text)
    if names and not fields.grantor:
        fields.grantor = names[0]
    if len(names) > 1 and not fields.grantee:
        fields.grantee = names[1]

    if not fields.grantor:
        match = GRANTOR_PATTERN.search(text)
        if match:
            fields.grantor = match.group(1).strip()
    if not fields.grantee:
        match = GRANTEE_PATTERN.search(text)
        if match:
            fields.grantee = match.group(1).strip()

    if fields.grantor:
        index = text.find(fields.grantor)
        if index != -1:
            start = index + len(fields.grantor)
            window = text[start:start + ADDRESS_WINDOW_CHARS]
            match = re.search(parsing.address_pattern or DEFAULT_ADDRESS_PATTERN, window, re.IGNORECASE)
            if match:
                fields.address = match.group(1).strip()

    fields.amount = parse_amount(text, parsing.amount_pattern)
    return fields
