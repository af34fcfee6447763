"""
Core dataset records shared by the classifiers, filters and aggregation engine.
Rows keep their normalized location/industry as sidecar fields instead of
suffixed keys inside the value mapping.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union


CellValue = Union[str, int, float, bool, datetime, None]


class ColumnType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"


class SemanticTag(str, Enum):
    LOCATION = "location"
    CITY = "city"
    POSTAL_CODE = "postal_code"
    ORGANIZATION = "organization"
    STATUS = "status"
    INDUSTRY = "industry"
    AUDIENCE_LEVEL = "audience_level"
    DOMAIN = "domain"
    ICP_FLAG = "icp_flag"


@dataclass(frozen=True)
class ColumnDescriptor:
    name: str
    type: ColumnType = ColumnType.TEXT
    tags: frozenset[SemanticTag] = field(default_factory=frozenset)
    sample_values: tuple[Any, ...] = ()

    def has(self, tag: SemanticTag) -> bool:
        return tag in self.tags


@dataclass(frozen=True)
class Row:
    """
    One dataset row.

    `values` maps column name -> typed cell value. `location` and `industry`
    are attached at ingestion time; `source_file` is set by the merge engine.
    """
    values: dict[str, CellValue]
    location: str | None = None
    industry: str | None = None
    source_file: str | None = None

    def get(self, column: str, default: CellValue = None) -> CellValue:
        return self.values.get(column, default)


@dataclass(frozen=True)
class Dataset:
    id: str
    file_name: str
    columns: tuple[ColumnDescriptor, ...]
    rows: tuple[Row, ...]
    row_count: int
    geography: str | None = None
    uploaded_at: datetime | None = None

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def available_locations(self) -> list[str]:
        """Sorted distinct normalized location codes present in the rows."""
        return sorted({row.location for row in self.rows if row.location})
