"""
FastAPI application for the ICP analytics backend.
Provides endpoints for dataset management, filter state and dashboard analytics.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from classifier import INDUSTRY_CATEGORIES
from config import configure_logging, get_settings
from data_loader import (
    DataStore,
    DatasetUnavailableError,
    get_data_store,
    ingest,
    load_csv_data,
)
from dataset import Dataset
from filters import (
    FilterState,
    apply_filter_action,
    filter_options,
    normalize_filters,
    resolve_effective_selections,
)
from geography import GEOGRAPHY_PROFILES, get_profile, region_colors
from icp import ICPConfig, count_icp, default_icp_config
from metrics import (
    aggregate,
    distribution_metrics,
    location_role_breakdown,
    location_summaries,
    pareto_of,
    region_industry_matrix,
    role_region_matrix,
    select_rows,
    targeting_metrics,
)
from models import (
    ActiveDatasetRequest,
    AnalyticsRequest,
    AnalyticsResponse,
    ConfigResponse,
    DatasetListResponse,
    DatasetSummary,
    DatasetUploadRequest,
    EffectiveSelectionsModel,
    FilterActionRequest,
    FilterOptionsModel,
    FilterStateModel,
    GeographyResponse,
    HealthResponse,
    MergeRequest,
)
from tree import build_drilldown_tree

logger = logging.getLogger(__name__)


# ============================================================================
# Application Lifecycle
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and load the startup CSV, if one is configured."""
    settings = get_settings()
    configure_logging(settings.log_level)

    store = get_data_store()
    store.page_size = settings.page_size

    if settings.csv_path is None:
        logger.info("ICP_CSV_PATH not set; waiting for uploads")
    elif settings.csv_path.exists():
        load_csv_data(settings.csv_path, geography=settings.geography)
    else:
        logger.warning("CSV file not found at %s", settings.csv_path)
        logger.warning("API will start but analytics endpoints will fail until data is uploaded.")

    yield


# ============================================================================
# FastAPI Application
# ============================================================================

app = FastAPI(
    title="ICP Bank Analytics API",
    description="Backend API for faceted filtering and aggregation of ICP datasets",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Helpers
# ============================================================================

def _require_active(store: DataStore) -> Dataset:
    if not store.is_loaded:
        raise HTTPException(status_code=503, detail="No dataset loaded. Upload a dataset first.")
    try:
        dataset = store.active_dataset()
    except DatasetUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    if dataset is None:
        raise HTTPException(status_code=503, detail="No active dataset.")
    return dataset


def _summary(dataset: Dataset) -> DatasetSummary:
    return DatasetSummary(
        id=dataset.id,
        file_name=dataset.file_name,
        row_count=dataset.row_count,
        column_count=len(dataset.columns),
        geography=dataset.geography,
    )


def _dataset_list(store: DataStore) -> DatasetListResponse:
    return DatasetListResponse(
        datasets=[_summary(ds) for ds in store.list_datasets()],
        active_dataset_id=store.state.active_dataset_id,
        merge_all=store.state.merge_all,
        merge_summary=store.merge_summary(),
    )


def _filter_state_model(state: FilterState) -> FilterStateModel:
    return FilterStateModel(
        locations=list(state.locations),
        regions=list(state.regions),
        roles=list(state.roles),
        industries=list(state.industries),
        industry_mode=state.industry_mode,
    )


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Simple health check endpoint."""
    return HealthResponse(status="ok")


# ============================================================================
# Configuration
# ============================================================================

@app.get("/config", response_model=ConfigResponse)
async def get_config():
    """
    Get configuration for the active dataset: geography labels, filter
    options and role metadata.
    """
    store = get_data_store()
    dataset = _require_active(store)
    profile = get_profile(dataset.geography)
    role_metadata = store.role_metadata(dataset)
    options = filter_options(dataset, profile, role_metadata)

    return ConfigResponse(
        geography_profiles=list(GEOGRAPHY_PROFILES),
        industries=list(INDUSTRY_CATEGORIES),
        active_dataset=_summary(dataset),
        geography=profile.id,
        location_label=profile.location_label,
        region_label=profile.region_label,
        map_kind=profile.map_kind,
        filter_options=FilterOptionsModel(
            locations=list(options.locations),
            regions=list(options.regions),
            roles=list(options.roles),
            industries=list(options.industries),
        ),
        role_metadata=role_metadata,
    )


@app.get("/geography/{profile_id}", response_model=GeographyResponse)
async def get_geography(profile_id: str):
    profile = GEOGRAPHY_PROFILES.get(profile_id.upper())
    if profile is None:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown geography profile. Must be one of: {list(GEOGRAPHY_PROFILES)}",
        )
    return GeographyResponse(
        id=profile.id,
        display_name=profile.display_name,
        location_label=profile.location_label,
        region_label=profile.region_label,
        map_kind=profile.map_kind,
        locations=profile.locations,
        regions={name: list(codes) for name, codes in profile.regions.items()},
        region_colors=region_colors(profile),
    )


# ============================================================================
# Datasets
# ============================================================================

@app.get("/datasets", response_model=DatasetListResponse)
async def list_datasets():
    return _dataset_list(get_data_store())


@app.post("/datasets", response_model=DatasetSummary)
async def upload_dataset(request: DatasetUploadRequest):
    """Ingest rows parsed by the upload client and make them the active dataset."""
    if not request.headers:
        raise HTTPException(status_code=400, detail="headers must not be empty")
    try:
        dataset = ingest(
            request.rows,
            request.headers,
            request.file_name,
            geography=request.geography.upper() if request.geography else None,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    get_data_store().add_dataset(dataset)
    return _summary(dataset)


@app.delete("/datasets/{dataset_id}", response_model=DatasetListResponse)
async def delete_dataset(dataset_id: str):
    store = get_data_store()
    try:
        store.remove_dataset(dataset_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown dataset: {dataset_id}") from exc
    return _dataset_list(store)


@app.post("/datasets/active", response_model=DatasetListResponse)
async def select_dataset(request: ActiveDatasetRequest):
    store = get_data_store()
    try:
        store.set_active(request.dataset_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _dataset_list(store)


@app.post("/datasets/merge", response_model=DatasetListResponse)
async def set_merge(request: MergeRequest):
    store = get_data_store()
    store.set_merge_all(request.merge_all)
    return _dataset_list(store)


# ============================================================================
# Filter State
# ============================================================================

@app.get("/filters", response_model=FilterStateModel)
async def get_filters():
    return _filter_state_model(get_data_store().filters)


@app.post("/filters/actions", response_model=FilterStateModel)
async def apply_filter(request: FilterActionRequest):
    """
    Apply one user action (set/toggle/select/clear) to the stored filter state.
    Picks that the active dataset does not offer are dropped.
    """
    store = get_data_store()
    dataset = _require_active(store)
    options = filter_options(dataset, get_profile(dataset.geography), store.role_metadata(dataset))

    value = request.value
    if request.action == "select_top_roles" and value is None:
        value = get_settings().top_roles

    try:
        state = apply_filter_action(store.filters, request.action, value, options=options)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    store.set_filters(state)
    return _filter_state_model(state)


# ============================================================================
# Analytics
# ============================================================================

@app.post("/analytics", response_model=AnalyticsResponse)
async def analytics(request: AnalyticsRequest):
    """
    Resolve the filter state against the active dataset and return every
    derived view of the selection.
    """
    store = get_data_store()
    dataset = _require_active(store)
    profile = get_profile(dataset.geography)
    role_metadata = store.role_metadata(dataset)

    if request.filters is not None:
        state = normalize_filters(request.filters.model_dump())
    else:
        state = store.filters

    effective = resolve_effective_selections(state, dataset, profile=profile, role_metadata=role_metadata)
    available = dataset.available_locations
    selected = select_rows(dataset.rows, effective.locations, available)

    kpis = aggregate(
        dataset.rows,
        effective.locations,
        effective.roles,
        profile=profile,
        available_locations=available,
    )
    per_location = location_role_breakdown(selected, effective.roles)

    icp_config = ICPConfig(**request.icp.model_dump()) if request.icp else default_icp_config(dataset.columns)
    pareto_limit = request.pareto_limit or get_settings().pareto_limit

    logger.debug(
        "analytics dataset=%s locations=%d roles=%d rows=%d",
        dataset.id, len(effective.locations), len(effective.roles), len(selected),
    )

    return AnalyticsResponse(
        effective=EffectiveSelectionsModel(
            locations=list(effective.locations),
            roles=list(effective.roles),
        ),
        kpis=kpis,
        targeting=targeting_metrics(kpis, profile),
        distribution=distribution_metrics(kpis.location_breakdown),
        pareto=pareto_of(kpis.role_breakdown)[:pareto_limit],
        tree=build_drilldown_tree(
            kpis.location_breakdown,
            kpis.role_breakdown,
            per_location,
            profile=profile,
        ),
        location_summaries=location_summaries(
            selected, effective.roles, kpis.total_people, profile, icp_config,
        ),
        region_industry=region_industry_matrix(selected, effective.roles, profile),
        role_region=role_region_matrix(selected, effective.roles, profile),
        icp_count=count_icp(selected, icp_config),
        row_count=len(selected),
    )


# ============================================================================
# Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
