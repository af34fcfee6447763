"""
ICP (Ideal Customer Profile) flag evaluation.
"""
from dataclasses import dataclass
from typing import Iterable, Literal

from classifier import coerce_number, is_truthy
from dataset import ColumnDescriptor, ColumnType, Row, SemanticTag


@dataclass(frozen=True)
class ICPConfig:
    mode: Literal["column", "threshold"] = "column"
    column_name: str | None = None
    threshold_column: str | None = None
    threshold: float | None = None


def default_icp_config(columns: Iterable[ColumnDescriptor]) -> ICPConfig:
    """Use the first ICP-tagged flag column, if any."""
    for col in columns:
        if col.has(SemanticTag.ICP_FLAG) and col.type != ColumnType.NUMBER:
            return ICPConfig(mode="column", column_name=col.name)
    return ICPConfig()


def is_icp_row(row: Row, config: ICPConfig) -> bool:
    if config.mode == "threshold":
        if not config.threshold_column or config.threshold is None:
            return False
        value = coerce_number(row.get(config.threshold_column))
        return value is not None and value >= config.threshold

    if not config.column_name:
        return False
    return is_truthy(row.get(config.column_name))


def count_icp(rows: Iterable[Row], config: ICPConfig) -> int:
    return sum(1 for row in rows if is_icp_row(row, config))
