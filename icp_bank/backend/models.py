"""
Pydantic models for derived analytics and API request/response schemas.
"""
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field


# ============================================================================
# Role Metadata
# ============================================================================

class RoleMetadata(BaseModel):
    """Industry classification and dataset-wide total for one role column."""
    column_name: str
    industry: str
    total_people: float = 0.0
    percent_of_total: float = 0.0


# ============================================================================
# KPI Snapshot
# ============================================================================

class RankedEntry(BaseModel):
    """A single named value picked out of a breakdown (top/bottom)."""
    name: str
    count: float = 0.0


class KPISnapshot(BaseModel):
    """Rollup of the selected rows over the effective role selection."""
    total_people: float = 0.0
    locations_included: int = 0
    regions_included: int = 0
    average_per_location: int = 0
    top_location: Optional[RankedEntry] = None
    bottom_location: Optional[RankedEntry] = None
    top_role: Optional[RankedEntry] = None
    top_industry: Optional[RankedEntry] = None
    role_coverage: int = 0
    role_breakdown: dict[str, float] = Field(default_factory=dict)
    industry_breakdown: dict[str, float] = Field(default_factory=dict)
    region_breakdown: dict[str, float] = Field(default_factory=dict)
    location_breakdown: dict[str, float] = Field(default_factory=dict)


# ============================================================================
# Concentration / Diversity
# ============================================================================

class TargetingMetrics(BaseModel):
    """Concentration and diversity indices derived from a KPI snapshot."""
    concentration_index: int = 0  # top-3 location share, %
    average_per_role: int = 0
    diversity_score: int = 0  # (1 - Herfindahl over regions), %
    top5_role_share: int = 0
    top_industry_share: int = 0
    top3_locations: list[str] = Field(default_factory=list)
    top5_roles: list[str] = Field(default_factory=list)


class DistributionMetrics(BaseModel):
    """Inequality of the per-location totals."""
    gini: float = 0.0
    theil: float = 0.0
    max_min_ratio: float = 0.0
    equity_score: int = 100


# ============================================================================
# Pareto / Tree
# ============================================================================

class ParetoPoint(BaseModel):
    role: str
    count: float
    cumulative: float
    cumulative_percent: float


class TreeNode(BaseModel):
    """Drill-down node: root -> region -> location -> role."""
    id: str
    name: str
    value: Optional[float] = None
    color: str
    children: Optional[list["TreeNode"]] = None


TreeNode.model_rebuild()


# ============================================================================
# Breakdown Tables
# ============================================================================

class RoleCount(BaseModel):
    name: str
    count: float


class LocationSummary(BaseModel):
    """Per-location row of the filtered location table."""
    code: str
    name: str
    region: Optional[str] = None
    total: float = 0.0
    percent_of_total: float = 0.0
    top_roles: list[RoleCount] = Field(default_factory=list)
    icp_count: int = 0


class RegionIndustryRow(BaseModel):
    region: str
    industries: dict[str, float] = Field(default_factory=dict)
    total: float = 0.0


class RoleRegionRow(BaseModel):
    role: str
    regions: dict[str, float] = Field(default_factory=dict)
    total: float = 0.0


# ============================================================================
# API Requests
# ============================================================================

class FilterStateModel(BaseModel):
    """Declarative filter state as sent by the dashboard."""
    locations: list[str] = Field(default_factory=list)
    regions: list[str] = Field(default_factory=list)
    roles: list[str] = Field(default_factory=list)
    industries: list[str] = Field(default_factory=list)
    industry_mode: str = Field(default="AND", pattern="^(AND|OR)$")


class ICPConfigModel(BaseModel):
    mode: Literal["column", "threshold"] = "column"
    column_name: Optional[str] = None
    threshold_column: Optional[str] = None
    threshold: Optional[float] = None


class FilterActionRequest(BaseModel):
    """One user action applied to the stored filter state."""
    action: str
    value: Any = None


class AnalyticsRequest(BaseModel):
    """Request body for POST /analytics. Omitted filters use the stored filter state."""
    filters: Optional[FilterStateModel] = None
    icp: Optional[ICPConfigModel] = None
    pareto_limit: Optional[int] = Field(default=None, ge=1, le=500)


class DatasetUploadRequest(BaseModel):
    """Rows already parsed by the upload collaborator."""
    file_name: str
    headers: list[str]
    rows: list[dict[str, Any]]
    geography: Optional[str] = Field(
        default=None,
        description="Force a geography profile id instead of detecting one",
    )


class ActiveDatasetRequest(BaseModel):
    dataset_id: str


class MergeRequest(BaseModel):
    merge_all: bool = True


# ============================================================================
# API Responses
# ============================================================================

class DatasetSummary(BaseModel):
    id: str
    file_name: str
    row_count: int
    column_count: int
    geography: Optional[str] = None


class MergeSummary(BaseModel):
    file_count: int
    total_rows: int
    label: str


class DatasetListResponse(BaseModel):
    datasets: list[DatasetSummary] = Field(default_factory=list)
    active_dataset_id: Optional[str] = None
    merge_all: bool = False
    merge_summary: Optional[MergeSummary] = None


class FilterOptionsModel(BaseModel):
    locations: list[str] = Field(default_factory=list)
    regions: list[str] = Field(default_factory=list)
    roles: list[str] = Field(default_factory=list)
    industries: list[str] = Field(default_factory=list)


class ConfigResponse(BaseModel):
    """Response model for GET /config endpoint."""
    geography_profiles: list[str]
    industries: list[str]
    active_dataset: Optional[DatasetSummary] = None
    geography: Optional[str] = None
    location_label: str = "Locations"
    region_label: str = "Regions"
    map_kind: str = "none"
    filter_options: FilterOptionsModel = Field(default_factory=FilterOptionsModel)
    role_metadata: list[RoleMetadata] = Field(default_factory=list)


class GeographyResponse(BaseModel):
    id: str
    display_name: str
    location_label: str
    region_label: str
    map_kind: str
    locations: dict[str, str]
    regions: dict[str, list[str]]
    region_colors: dict[str, str]


class EffectiveSelectionsModel(BaseModel):
    locations: list[str] = Field(default_factory=list)
    roles: list[str] = Field(default_factory=list)


class AnalyticsResponse(BaseModel):
    """Response for POST /analytics endpoint."""
    effective: EffectiveSelectionsModel
    kpis: KPISnapshot
    targeting: TargetingMetrics
    distribution: DistributionMetrics
    pareto: list[ParetoPoint] = Field(default_factory=list)
    tree: TreeNode
    location_summaries: list[LocationSummary] = Field(default_factory=list)
    region_industry: list[RegionIndustryRow] = Field(default_factory=list)
    role_region: list[RoleRegionRow] = Field(default_factory=list)
    icp_count: int = 0
    row_count: int = 0


class HealthResponse(BaseModel):
    """Response for GET /health endpoint."""
    status: str = "ok"
