"""
Data loading, ingestion and dataset merging for the ICP analytics backend.
Handles CSV loading, column classification, location/industry sidecars,
paged row retrieval and the merged multi-file view.
"""
import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol, Sequence
from uuid import uuid4

import pandas as pd

from classifier import categorize_industry_value, classify_columns, coerce_number, is_missing
from dataset import ColumnDescriptor, ColumnType, Dataset, Row, SemanticTag
from filters import AppState, FilterState, apply_app_action
from geography import (
    GEOGRAPHY_PROFILES,
    GeographyProfile,
    detect_geography,
    generic_profile,
    get_profile,
    normalize_location,
)
from metrics import build_role_metadata
from models import MergeSummary, RoleMetadata

logger = logging.getLogger(__name__)


MERGED_DATASET_ID = "__merged__"
DEFAULT_PAGE_SIZE = 1000
NA_VALUES = ["", "NA", "N/A", "null", "NULL"]


class DatasetUnavailableError(RuntimeError):
    """Rows for a dataset could not be retrieved from the row store."""


# ============================================================================
# Row Store
# ============================================================================

class RowStore(Protocol):
    """
    Persistent row storage. Records are dicts with `row_data`,
    `location_normalized` and `industry_category` keys, returned in insertion
    order.
    """

    def insert(self, dataset_id: str, records: Iterable[dict]) -> None:
        ...

    def delete(self, dataset_id: str) -> None:
        ...

    def fetch_page(self, dataset_id: str, offset: int, limit: int) -> list[dict]:
        ...


class InMemoryRowStore:
    def __init__(self):
        self._records: dict[str, list[dict]] = {}

    def insert(self, dataset_id: str, records: Iterable[dict]) -> None:
        self._records.setdefault(dataset_id, []).extend(records)

    def delete(self, dataset_id: str) -> None:
        self._records.pop(dataset_id, None)

    def fetch_page(self, dataset_id: str, offset: int, limit: int) -> list[dict]:
        if dataset_id not in self._records:
            raise KeyError(dataset_id)
        return self._records[dataset_id][offset:offset + limit]


def fetch_all_rows(store: RowStore, dataset_id: str, page_size: int = DEFAULT_PAGE_SIZE) -> list[dict]:
    """
    Retrieve every stored record of a dataset, one page at a time.

    Pages are fetched in order until a page comes back shorter than
    `page_size`. Any store failure aborts the whole retrieval.

    Raises:
        DatasetUnavailableError: if the store fails on any page
    """
    records: list[dict] = []
    offset = 0
    while True:
        try:
            page = store.fetch_page(dataset_id, offset, page_size)
        except Exception as exc:
            logger.error("Row retrieval failed for dataset %s at offset %d: %s", dataset_id, offset, exc)
            raise DatasetUnavailableError(f"Rows for dataset {dataset_id!r} are unavailable") from exc

        records.extend(page)
        if len(page) < page_size:
            break
        offset += page_size
    return records


def rows_to_records(rows: Iterable[Row]) -> list[dict]:
    return [
        {
            "row_data": dict(row.values),
            "location_normalized": row.location,
            "industry_category": row.industry,
        }
        for row in rows
    ]


def rows_from_records(records: Iterable[Mapping[str, Any]]) -> list[Row]:
    return [
        Row(
            values=dict(record.get("row_data") or {}),
            location=record.get("location_normalized"),
            industry=record.get("industry_category"),
        )
        for record in records
    ]


# ============================================================================
# Ingestion
# ============================================================================

def _typed_value(value: Any, column: ColumnDescriptor) -> Any:
    if is_missing(value):
        return None
    if column.type == ColumnType.NUMBER:
        return coerce_number(value)
    return value


def _first_sidecar_column(columns: Sequence[ColumnDescriptor], tag: SemanticTag) -> ColumnDescriptor | None:
    for col in columns:
        if col.has(tag) and col.type != ColumnType.NUMBER:
            return col
    return None


def ingest(
    rows: Sequence[Mapping[str, Any]],
    headers: Sequence[str],
    file_name: str,
    dataset_id: str | None = None,
    geography: str | None = None,
) -> Dataset:
    """
    Build a Dataset from parsed rows.

    Args:
        rows: Raw rows keyed by header
        headers: Column order
        file_name: Original file name
        dataset_id: Id to assign; a new uuid when omitted
        geography: Registered profile id to use instead of detection

    Returns:
        Dataset with typed values and location/industry sidecars. Rows whose
        location cannot be normalized keep a None location.
    """
    columns = classify_columns(rows, headers)
    location_col = _first_sidecar_column(columns, SemanticTag.LOCATION)
    industry_col = _first_sidecar_column(columns, SemanticTag.INDUSTRY)

    profile: GeographyProfile
    if geography:
        if geography not in GEOGRAPHY_PROFILES:
            raise ValueError(f"Unknown geography profile: {geography!r}")
        if geography == "GENERIC" and location_col is not None:
            profile = generic_profile(row.get(location_col.name) for row in rows)
        else:
            profile = GEOGRAPHY_PROFILES[geography]
    elif location_col is not None:
        profile = detect_geography(row.get(location_col.name) for row in rows)
    else:
        profile = get_profile(None)

    typed_rows = []
    unmapped = 0
    for raw in rows:
        values = {col.name: _typed_value(raw.get(col.name), col) for col in columns}
        location = None
        if location_col is not None:
            location = normalize_location(raw.get(location_col.name), profile)
            if location is None and not is_missing(raw.get(location_col.name)):
                unmapped += 1
        industry = categorize_industry_value(raw.get(industry_col.name)) if industry_col else None
        typed_rows.append(Row(values=values, location=location, industry=industry))

    if unmapped:
        logger.info("%s: %d rows with unmapped %s values", file_name, unmapped, location_col.name)

    dataset = Dataset(
        id=dataset_id or str(uuid4()),
        file_name=file_name,
        columns=tuple(columns),
        rows=tuple(typed_rows),
        row_count=len(typed_rows),
        geography=profile.id,
        uploaded_at=datetime.now(),
    )
    logger.info(
        "Ingested %s: %d rows, %d columns, geography=%s",
        file_name, dataset.row_count, len(columns), profile.id,
    )
    return dataset


def load_csv(csv_path: str | Path, geography: str | None = None) -> Dataset:
    """
    Load a CSV file into a Dataset.

    Raises:
        FileNotFoundError: if the file does not exist
    """
    csv_path = Path(csv_path)
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    logger.info("Loading data from %s", csv_path)
    df = pd.read_csv(
        csv_path,
        low_memory=False,
        na_values=NA_VALUES,
    )

    # Strip whitespace from column names and text cells
    df.columns = df.columns.str.strip()
    df = df.astype(object).where(df.notna(), None)
    df = df.map(lambda v: v.strip() if isinstance(v, str) else v)
    records = df.to_dict(orient="records")
    return ingest(records, list(df.columns), csv_path.name, geography=geography)


# ============================================================================
# Merge Engine
# ============================================================================

def merge_datasets(datasets: Sequence[Dataset]) -> Dataset | None:
    """
    Combine datasets into one virtual dataset.

    Columns are the first dataset's descriptors whose names occur in every
    dataset; rows are concatenated in input order and tagged with their source
    file. With no common columns the result has zero columns but keeps all
    rows. A single dataset is returned unchanged.
    """
    if not datasets:
        return None
    if len(datasets) == 1:
        return datasets[0]

    common = set(datasets[0].column_names)
    for ds in datasets[1:]:
        common &= set(ds.column_names)
    columns = tuple(col for col in datasets[0].columns if col.name in common)

    rows = tuple(
        replace(row, source_file=ds.file_name)
        for ds in datasets
        for row in ds.rows
    )

    merged = Dataset(
        id=MERGED_DATASET_ID,
        file_name=f"{len(datasets)} files merged",
        columns=columns,
        rows=rows,
        row_count=sum(ds.row_count for ds in datasets),
        geography=datasets[0].geography,
        uploaded_at=datetime.now(),
    )
    logger.info("Merged %d datasets: %d rows, %d common columns", len(datasets), merged.row_count, len(columns))
    return merged


def merge_summary(datasets: Sequence[Dataset], merged: Dataset | None) -> MergeSummary | None:
    if merged is None or len(datasets) < 2:
        return None
    return MergeSummary(
        file_count=len(datasets),
        total_rows=merged.row_count,
        label=f"{len(datasets)} files merged · {merged.row_count:,} rows total",
    )


# ============================================================================
# Data Store
# ============================================================================

class DataStore:
    """
    Singleton-like store for uploaded datasets and the dataset-level app state.

    Rows live in the row store; materialized datasets are cached by id.
    """

    def __init__(self, row_store: RowStore | None = None, page_size: int = DEFAULT_PAGE_SIZE):
        self.row_store = row_store if row_store is not None else InMemoryRowStore()
        self.page_size = page_size
        self.state = AppState()
        self._headers: dict[str, Dataset] = {}
        self._row_cache: dict[str, tuple[Row, ...]] = {}
        self._metadata_cache: dict[str, list[RoleMetadata]] = {}

    @property
    def is_loaded(self) -> bool:
        return bool(self.state.dataset_ids)

    @property
    def filters(self) -> FilterState:
        return self.state.filters

    def add_dataset(self, dataset: Dataset) -> Dataset:
        """Persist a dataset's rows, make it active and reset the filters."""
        self.row_store.delete(dataset.id)
        self.row_store.insert(dataset.id, rows_to_records(dataset.rows))
        self._headers[dataset.id] = replace(dataset, rows=())
        self._row_cache[dataset.id] = dataset.rows
        self._metadata_cache.clear()
        self.state = apply_app_action(self.state, "dataset_added", dataset.id)
        return dataset

    def remove_dataset(self, dataset_id: str) -> None:
        if dataset_id not in self._headers:
            raise KeyError(dataset_id)
        self.row_store.delete(dataset_id)
        del self._headers[dataset_id]
        self._row_cache.pop(dataset_id, None)
        self._metadata_cache.clear()
        self.state = apply_app_action(self.state, "dataset_removed", dataset_id)
        logger.info("Removed dataset %s", dataset_id)

    def set_active(self, dataset_id: str) -> None:
        self.state = apply_app_action(self.state, "select_dataset", dataset_id)

    def set_merge_all(self, merge_all: bool) -> None:
        self.state = apply_app_action(self.state, "set_merge_all", merge_all)

    def set_filters(self, filters: FilterState) -> None:
        self.state = apply_app_action(self.state, "set_filters", filters)

    def get_dataset(self, dataset_id: str) -> Dataset:
        """
        Materialize a dataset, fetching its rows from the row store on a cache miss.

        Raises:
            KeyError: for an unknown dataset id
            DatasetUnavailableError: if the rows cannot be retrieved
        """
        header = self._headers[dataset_id]
        if dataset_id not in self._row_cache:
            records = fetch_all_rows(self.row_store, dataset_id, self.page_size)
            self._row_cache[dataset_id] = tuple(rows_from_records(records))
            logger.info("Fetched %d rows for dataset %s", len(records), dataset_id)
        return replace(header, rows=self._row_cache[dataset_id])

    def list_datasets(self) -> list[Dataset]:
        """Dataset headers (without rows), most recently added first."""
        return [self._headers[i] for i in self.state.dataset_ids]

    def all_datasets(self) -> list[Dataset]:
        return [self.get_dataset(i) for i in self.state.dataset_ids]

    def active_dataset(self) -> Dataset | None:
        """The merged view when merging is on, otherwise the selected dataset."""
        if self.state.merge_all:
            return merge_datasets(self.all_datasets())
        if self.state.active_dataset_id is None:
            return None
        return self.get_dataset(self.state.active_dataset_id)

    def merge_summary(self) -> MergeSummary | None:
        if not self.state.merge_all:
            return None
        datasets = self.all_datasets()
        return merge_summary(datasets, merge_datasets(datasets))

    def role_metadata(self, dataset: Dataset) -> list[RoleMetadata]:
        if dataset.id not in self._metadata_cache:
            self._metadata_cache[dataset.id] = build_role_metadata(dataset)
        return self._metadata_cache[dataset.id]


# Global data store instance
data_store = DataStore()


def get_data_store() -> DataStore:
    """Get the global data store instance."""
    return data_store


def load_csv_data(csv_path: str | Path, geography: str | None = None) -> DataStore:
    """
    Load a CSV into the global store and make it the active dataset.
    Returns the data store instance.
    """
    data_store.add_dataset(load_csv(csv_path, geography=geography))
    return data_store
