"""
Rule engine that splits a report table into per-warehouse sheets.

Each segment is filtered from the original table on its own, so segments
may overlap (Inventory AU "VIC&OFF" holds exactly the rows of "VIC" and
"OFF" together). Results are collected into a table set: an ordered
mapping of sheet name to DataFrame with replace-on-insert semantics.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd

from backend.report_types import (
    BRAND,
    BRAND_COLUMN,
    ReportDescriptor,
    ReportType,
    SegmentRule,
    get_descriptor,
)

logger = logging.getLogger(__name__)

TableSet = Dict[str, pd.DataFrame]

# ===============================================================================
# FIELD ACCESSORS
# ===============================================================================

def numeric_field(table: pd.DataFrame, key: str) -> pd.Series:
    """Column ``key`` as numbers; absent, blank or non-numeric cells become 0."""
    if key not in table.columns:
        return pd.Series(0, index=table.index, dtype="int64")
    return pd.to_numeric(table[key], errors="coerce").fillna(0)


def text_field(table: pd.DataFrame, key: str) -> pd.Series:
    """Column ``key`` as-is, or an all-null column when absent."""
    if key not in table.columns:
        return pd.Series(None, index=table.index, dtype="object")
    return table[key]


# ===============================================================================
# TABLE SET
# ===============================================================================

def with_sheet(table_set: TableSet, name: str, table: pd.DataFrame) -> TableSet:
    """Return a copy of ``table_set`` with ``name`` set to ``table``.

    An existing sheet of the same name is dropped and the new one goes
    to the end; sheets are never merged. The input mapping is untouched.
    """
    updated = {sheet: rows for sheet, rows in table_set.items() if sheet != name}
    updated[name] = table
    return updated


@dataclass
class ProcessResult:
    report_type: ReportType
    original_rows: int
    worksheets: List[Dict[str, Any]] = field(default_factory=list)
    table_set: TableSet = field(default_factory=dict)


# ===============================================================================
# PROCESSOR
# ===============================================================================

class ReportProcessor:
    """Applies one report type's segment rules to a table."""

    def __init__(self, descriptor: ReportDescriptor):
        self.descriptor = descriptor

    def get_report_name(self) -> str:
        return self.descriptor.report_type.label

    def prepare(self, table: pd.DataFrame) -> pd.DataFrame:
        derived = self.descriptor.derived
        if derived is None:
            return table
        prepared = table.copy()
        total = numeric_field(table, derived.sources[0])
        for source in derived.sources[1:]:
            total = total + numeric_field(table, source)
        prepared[derived.name] = total
        return prepared

    def mask(self, table: pd.DataFrame, segment: SegmentRule) -> pd.Series:
        d = self.descriptor
        selected = text_field(table, BRAND_COLUMN).isin([BRAND])
        selected &= text_field(table, d.warehouse_column).isin(list(segment.warehouses))
        if d.stock_location is not None:
            selected &= text_field(table, "Stock Location").isin([d.stock_location])
        selected &= numeric_field(table, d.quantity_column) > 0
        return selected

    def project(self, rows: pd.DataFrame) -> pd.DataFrame:
        if self.descriptor.columns is None:
            return rows
        # Listed columns always appear, empty when the source lacks them
        return rows.reindex(columns=list(self.descriptor.columns))

    def segment(self, table: pd.DataFrame, segment: SegmentRule) -> pd.DataFrame:
        rows = table.loc[self.mask(table, segment)]
        return self.project(rows).reset_index(drop=True)

    def process(self, table: pd.DataFrame, base: Optional[TableSet] = None) -> ProcessResult:
        logger.info("Processing %s with %d rows", self.get_report_name(), len(table))

        prepared = self.prepare(table)
        result = ProcessResult(
            report_type=self.descriptor.report_type,
            original_rows=len(table),
            table_set=dict(base or {}),
        )
        for rule in self.descriptor.segments:
            rows = self.segment(prepared, rule)
            result.table_set = with_sheet(result.table_set, rule.name, rows)
            result.worksheets.append({"name": rule.name, "rows": len(rows)})
            logger.debug("Segment %s: %d rows", rule.name, len(rows))

        logger.info(
            "%s split into %s",
            self.get_report_name(),
            ", ".join(f"{ws['name']}={ws['rows']}" for ws in result.worksheets),
        )
        return result


# ===============================================================================
# DISPATCH
# ===============================================================================

PROCESSORS: Dict[ReportType, ReportProcessor] = {
    report_type: ReportProcessor(get_descriptor(report_type)) for report_type in ReportType
}


def get_processor(report_type) -> ReportProcessor:
    # get_descriptor raises UnsupportedReportType for anything unknown
    descriptor = get_descriptor(report_type)
    return PROCESSORS[descriptor.report_type]


def process(report_type, table: pd.DataFrame, base: Optional[TableSet] = None) -> ProcessResult:
    """Split ``table`` by the segment rules of ``report_type``.

    ``base`` optionally seeds the table set (e.g. with the uploaded
    workbook's own sheets); segment sheets replace any of the same name.
    """
    return get_processor(report_type).process(table, base)
