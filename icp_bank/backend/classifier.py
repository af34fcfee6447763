"""
Column and role classification.
Infers column types and semantic tags from header names and sampled values,
and buckets wide-format role columns into industry categories by keyword.
"""
import re
from datetime import date, datetime
from functools import lru_cache
from typing import Any, Iterable, Mapping, Sequence

from dataset import ColumnDescriptor, ColumnType, SemanticTag


SAMPLE_SIZE = 100
SAMPLE_VALUES_KEPT = 5
# Share of non-null sampled values that must agree for number/date typing
TYPE_DOMINANCE = 0.8

BOOLEAN_TOKENS = {"true", "false", "yes", "no", "0", "1"}
TRUTHY_TOKENS = {"true", "yes", "1"}


# ============================================================================
# Semantic Tag Keywords
# ============================================================================

# Matched as case-insensitive substrings of the column name.
TAG_KEYWORDS: dict[SemanticTag, list[str]] = {
    SemanticTag.LOCATION: ["state", "province", "country", "nation", "location", "territory"],
    SemanticTag.CITY: ["city", "town", "municipality"],
    SemanticTag.POSTAL_CODE: ["zip", "postal", "postcode"],
    SemanticTag.ICP_FLAG: ["icp", "persona", "fit", "ideal"],
    SemanticTag.ORGANIZATION: ["company", "organization", "organisation", "business", "employer", "account"],
    SemanticTag.STATUS: ["status", "stage", "phase", "lead"],
    SemanticTag.INDUSTRY: ["industry", "sector", "vertical", "category", "niche", "segment"],
    SemanticTag.AUDIENCE_LEVEL: ["level", "size", "tier", "segment", "audience", "target", "market"],
    SemanticTag.DOMAIN: ["domain", "b2b", "b2c", "channel", "business model"],
}

# Columns carrying any of these tags are never treated as role columns
NON_ROLE_TAGS = {
    SemanticTag.LOCATION,
    SemanticTag.CITY,
    SemanticTag.POSTAL_CODE,
    SemanticTag.ICP_FLAG,
}


# ============================================================================
# Value Parsing
# ============================================================================

DATE_PATTERNS = [
    re.compile(r"^\d{4}-\d{2}-\d{2}$"),
    re.compile(r"^\d{1,2}/\d{1,2}/\d{2,4}$"),
    re.compile(r"^\d{1,2}-\d{1,2}-\d{2,4}$"),
    re.compile(r"^[A-Za-z]+ \d{1,2}, \d{4}$"),
]


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and value != value:
        return True
    return isinstance(value, str) and not value.strip()


def coerce_number(value: Any) -> int | float | None:
    """
    Parse a cell as a number. Currency symbols and thousands separators are
    stripped. Returns None for anything unparseable (including booleans).
    """
    if is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    cleaned = str(value).replace("$", "").replace(",", "").strip()
    if not cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return int(number) if number.is_integer() and "." not in cleaned else number


def is_date_like(value: Any) -> bool:
    if isinstance(value, (datetime, date)):
        return True
    if not isinstance(value, str):
        return False
    text = value.strip()
    return any(pattern.match(text) for pattern in DATE_PATTERNS)


def is_boolean_token(value: Any) -> bool:
    if isinstance(value, bool):
        return True
    if isinstance(value, (int, float)):
        return value in (0, 1)
    return str(value).strip().lower() in BOOLEAN_TOKENS


def is_truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if value is None:
        return False
    return str(value).strip().lower() in TRUTHY_TOKENS


# ============================================================================
# Column Classifier
# ============================================================================

def infer_column_type(values: Sequence[Any]) -> ColumnType:
    """Dominant value type of a sample of non-null values."""
    if not values:
        return ColumnType.TEXT

    threshold = TYPE_DOMINANCE * len(values)
    numeric = sum(1 for v in values if coerce_number(v) is not None)
    if numeric >= threshold:
        return ColumnType.NUMBER

    dates = sum(1 for v in values if is_date_like(v))
    if dates >= threshold:
        return ColumnType.DATE

    if all(is_boolean_token(v) for v in values):
        return ColumnType.BOOLEAN

    return ColumnType.TEXT


def infer_tags(name: str, column_type: ColumnType, values: Sequence[Any]) -> frozenset[SemanticTag]:
    lower_name = name.lower()
    tags = {
        tag for tag, keywords in TAG_KEYWORDS.items()
        if any(keyword in lower_name for keyword in keywords)
    }

    # Yes/no style text columns are ICP flags even without a telling name
    if column_type in (ColumnType.TEXT, ColumnType.BOOLEAN) and values:
        if all(is_boolean_token(v) for v in values):
            tags.add(SemanticTag.ICP_FLAG)

    if SemanticTag.LOCATION in tags:
        tags.discard(SemanticTag.STATUS)
    if SemanticTag.ICP_FLAG in tags:
        tags.discard(SemanticTag.AUDIENCE_LEVEL)
    return frozenset(tags)


def classify_column(name: str, values: Iterable[Any]) -> ColumnDescriptor:
    non_null = [v for v in values if not is_missing(v)]
    column_type = infer_column_type(non_null)
    return ColumnDescriptor(
        name=name,
        type=column_type,
        tags=infer_tags(name, column_type, non_null),
        sample_values=tuple(non_null[:SAMPLE_VALUES_KEPT]),
    )


def classify_columns(rows: Sequence[Mapping[str, Any]], headers: Sequence[str]) -> list[ColumnDescriptor]:
    """
    Classify every header against the first SAMPLE_SIZE rows.
    Output order follows `headers`.
    """
    sample = rows[:SAMPLE_SIZE]
    return [classify_column(name, (row.get(name) for row in sample)) for name in headers]


def role_columns(columns: Iterable[ColumnDescriptor]) -> list[ColumnDescriptor]:
    """Wide-format role columns: numeric headcount columns that are not geography or ICP fields."""
    return [
        col for col in columns
        if col.type == ColumnType.NUMBER and not (col.tags & NON_ROLE_TAGS)
    ]


# ============================================================================
# Role / Industry Classifier
# ============================================================================

FASHION = "Fashion & Apparel"
MUSIC = "Music & Audio"
MOVIE = "Movie & Entertainment"

# Ordered: the first category with a keyword hit wins
INDUSTRY_RULES: list[tuple[str, list[str]]] = [
    (FASHION, [
        "Fashion", "Apparel", "Textile", "Tailor", "Dressmaker", "Stylist", "Model",
        "Runway", "Merchandiser", "Bridal", "Jewelry", "Swimwear", "Activewear",
        "Costume", "Wardrobe", "Makeup", "Hair",
    ]),
    (MUSIC, [
        "Songwriter", "Composer", "Arranger", "Musician", "Vocal", "Beat", "Mixing",
        "Mixer", "Sound", "Engineer", "Pro Tools", "MIDI", "Tour", "FOH", "Backline",
        "A&R", "Music Supervisor", "Booking", "Sync", "Royalty", "Podcast", "DJ", "Audio",
    ]),
]

# Catch-all bucket for roles no rule claims
DEFAULT_INDUSTRY = MOVIE

INDUSTRY_CATEGORIES = [MOVIE, MUSIC, FASHION]


@lru_cache(maxsize=4096)
def classify_role_industry(role_name: str) -> str:
    lower_role = role_name.lower()
    for category, keywords in INDUSTRY_RULES:
        for keyword in keywords:
            if keyword.lower() in lower_role:
                return category
    return DEFAULT_INDUSTRY


# Keywords for free-text industry cells (not role headers)
INDUSTRY_VALUE_KEYWORDS: list[tuple[str, list[str]]] = [
    (MOVIE, ["movie", "film", "entertainment", "cinema"]),
    (MUSIC, ["music", "audio", "sound", "recording"]),
    (FASHION, ["fashion", "apparel", "clothing", "textile"]),
]


def categorize_industry_value(value: Any) -> str | None:
    """Map a row's industry cell to a category, or None when nothing matches."""
    if is_missing(value):
        return None
    text = str(value).strip().lower()
    for category, keywords in INDUSTRY_VALUE_KEYWORDS:
        if category.lower() == text or any(keyword in text for keyword in keywords):
            return category
    return None
