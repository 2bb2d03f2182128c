"""tailor_import.column_map

Maps human-authored spreadsheet headers onto canonical measurement fields.

Headers are normalized (lowercase, trimmed) and looked up in COLUMN_SYNONYMS.
Headers with no entry are left out of the mapping, and therefore out of
every normalized row.  That is silent, not an error.
"""

from __future__ import annotations

from typing import Iterable

# ---------------------------------------------------------------------------
# Canonical fields
# ---------------------------------------------------------------------------

CLIENT_FIELDS = ("client_name", "client_phone", "client_email", "client_address")

TOP_FIELDS = (
    "across_back",
    "chest",
    "sleeve_length",
    "around_arm",
    "neck",
    "top_length",
    "wrist",
)

TROUSER_FIELDS = (
    "trouser_waist",
    "trouser_thigh",
    "trouser_knee",
    "trouser_length",
    "trouser_bars",
)

NUMERIC_FIELDS = TOP_FIELDS + TROUSER_FIELDS

TEXT_FIELDS = ("entry_id", "additional_info", "branch")

CANONICAL_FIELDS = CLIENT_FIELDS + ("units",) + NUMERIC_FIELDS + TEXT_FIELDS


# ---------------------------------------------------------------------------
# Synonym table (normalized header → canonical field)
# ---------------------------------------------------------------------------

COLUMN_SYNONYMS: dict[str, str] = {
    # Client info
    "client name": "client_name",
    "name": "client_name",
    "customer name": "client_name",
    "full name": "client_name",
    "name (reference)": "client_name",
    "client information (name (reference))": "client_name",
    "top (name (reference))": "client_name",
    "trouser (name (reference))": "client_name",
    "client phone": "client_phone",
    "phone": "client_phone",
    "phone number": "client_phone",
    "telephone": "client_phone",
    "mobile": "client_phone",
    "client information (phone number)": "client_phone",
    "top (phone number)": "client_phone",
    "trouser (phone number)": "client_phone",
    "client email": "client_email",
    "email": "client_email",
    "email address": "client_email",
    "client information (email)": "client_email",
    "client address": "client_address",
    "address": "client_address",
    "client information (address)": "client_address",

    # Entry info
    "entry id": "entry_id",
    "entry_id": "entry_id",
    "branch": "branch",
    "units": "units",
    "unit": "units",

    # Top measurements
    "across back": "across_back",
    "chest": "chest",
    "sleeve length": "sleeve_length",
    "sleeve lenght": "sleeve_length",  # spelling used by the shop's export
    "sleeve": "sleeve_length",
    "around arm": "around_arm",
    "neck": "neck",
    "top length": "top_length",
    "wrist": "wrist",

    # Trouser measurements
    "trouser waist": "trouser_waist",
    "waist": "trouser_waist",
    "trouser thigh": "trouser_thigh",
    "thigh": "trouser_thigh",
    "trouser knee": "trouser_knee",
    "knee": "trouser_knee",
    "trouser length": "trouser_length",
    "trouser bars": "trouser_bars",
    "bars": "trouser_bars",

    # Additional
    "additional info": "additional_info",
    "additional information": "additional_info",
    "notes": "additional_info",
}

# Canonical names map to themselves so a re-uploaded export of our own data
# ("chest", "trouser_waist", ...) maps cleanly.
for _field in CANONICAL_FIELDS:
    COLUMN_SYNONYMS.setdefault(_field, _field)
del _field


def normalize_header(name: str) -> str:
    """Lowercase and trim a header for synonym lookup."""
    return str(name).lower().strip()


def map_columns(headers: Iterable[str]) -> dict[str, str]:
    """Return {source header: canonical field} for every recognized header."""
    mapping: dict[str, str] = {}
    for header in headers:
        canonical = COLUMN_SYNONYMS.get(normalize_header(header))
        if canonical:
            mapping[header] = canonical
    return mapping
