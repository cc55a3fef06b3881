"""
Report type descriptors and filename classification.

Every supported export is described once here: the keywords that identify
its file name, the quantity column that must be positive, an optional
derived column, the output projection, and the ordered warehouse segments.
The rule engine in ``processors.py`` and the ``/api/report-types`` listing
both read from this table.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from backend.errors import UnrecognizedReportType, UnsupportedReportType

logger = logging.getLogger(__name__)

# ===============================================================================
# FIELD AND VALUE CONSTANTS
# ===============================================================================

BRAND_COLUMN = "Brand Name"
BRAND = "MG"
NORMAL_LOCATION = "Normal"

CEVA_QLD = "CEVA QLD"
CEVA_VIC = "CEVA VIC"
CEVA_OFFSITE = "CEVA OFFSITE"
CEVA_AUC = "CEVA AUC"

PURCHASE_COLUMNS = [
    "Brand Name", "Order #", "Purchase Group", "Processed Part #",
    "Inbound QTY", "Pending QTY", "Total", "Shipment Mode", "To Warehouse",
]

SALES_COLUMNS = ["Brand Name", "Processed Part #", "Submitted Time", "Warehouse", "BO QTY"]


class ReportType(Enum):
    INVENTORY_AU = "Inventory Enquiry AU"
    INVENTORY_NZ = "Inventory Enquiry NZ"
    PURCHASE_AU = "Purchase Item AU"
    PURCHASE_NZ = "Purchase Item NZ"
    SALES_AU = "Sales Item AU"
    SALES_NZ = "Sales Item NZ"

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value) -> "ReportType":
        """Resolve a label ('Sales Item NZ') or member name ('SALES_NZ')."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip()
            for member in cls:
                if text == member.value or text.upper() == member.name:
                    return member
        raise UnsupportedReportType(value)


@dataclass(frozen=True)
class SegmentRule:
    """One output sheet: rows whose warehouse is in ``warehouses``."""
    name: str
    warehouses: Tuple[str, ...]


@dataclass(frozen=True)
class DerivedColumn:
    """A column computed as the numeric sum of ``sources`` (absent counts as 0)."""
    name: str
    sources: Tuple[str, ...]


@dataclass(frozen=True)
class ReportDescriptor:
    report_type: ReportType
    keywords: Tuple[str, ...]
    description: str
    warehouse_column: str
    quantity_column: str
    segments: Tuple[SegmentRule, ...]
    stock_location: Optional[str] = None
    derived: Optional[DerivedColumn] = None
    columns: Optional[Tuple[str, ...]] = None

    def matches(self, filename: str) -> bool:
        # Plain substrings: "au" is also found inside "Auckland" or "August",
        # so a name carrying both region tokens resolves by DESCRIPTORS order.
        name = filename.lower()
        return all(keyword in name for keyword in self.keywords)

    def describe_rules(self) -> List[str]:
        """Human-readable rule lines, one per derived column and segment."""
        lines = []
        if self.derived:
            lines.append(f"Add {self.derived.name} column ({' + '.join(self.derived.sources)})")
        for segment in self.segments:
            conditions = [f"{BRAND_COLUMN} = {BRAND}"]
            if len(segment.warehouses) == 1:
                conditions.append(f"{self.warehouse_column} = {segment.warehouses[0]}")
            else:
                conditions.append(f"{self.warehouse_column} in ({', '.join(segment.warehouses)})")
            if self.stock_location:
                conditions.append(f"Stock Location = {self.stock_location}")
            conditions.append(f"{self.quantity_column} > 0")
            lines.append(f"{segment.name}: " + " + ".join(conditions))
        return lines


# ===============================================================================
# DESCRIPTOR TABLE (classification priority order)
# ===============================================================================

_PURCHASE_TOTAL = DerivedColumn("Total", ("Inbound QTY", "Pending QTY"))

DESCRIPTORS: Dict[ReportType, ReportDescriptor] = {
    ReportType.INVENTORY_AU: ReportDescriptor(
        report_type=ReportType.INVENTORY_AU,
        keywords=("inventory", "enquiry", "au"),
        description="Australian inventory enquiry (stock on hand)",
        warehouse_column="Warehouse",
        quantity_column="SOH",
        stock_location=NORMAL_LOCATION,
        segments=(
            SegmentRule("QLD", (CEVA_QLD,)),
            SegmentRule("VIC&OFF", (CEVA_OFFSITE, CEVA_VIC)),
            SegmentRule("VIC", (CEVA_VIC,)),
            SegmentRule("OFF", (CEVA_OFFSITE,)),
        ),
    ),
    ReportType.INVENTORY_NZ: ReportDescriptor(
        report_type=ReportType.INVENTORY_NZ,
        keywords=("inventory", "enquiry", "nz"),
        description="New Zealand inventory enquiry (stock on hand)",
        warehouse_column="Warehouse",
        quantity_column="SOH",
        stock_location=NORMAL_LOCATION,
        segments=(SegmentRule("NZ", (CEVA_AUC,)),),
    ),
    ReportType.PURCHASE_AU: ReportDescriptor(
        report_type=ReportType.PURCHASE_AU,
        keywords=("purchase", "item", "au"),
        description="Australian purchase items (stock in transit)",
        warehouse_column="To Warehouse",
        quantity_column="Total",
        derived=_PURCHASE_TOTAL,
        columns=tuple(PURCHASE_COLUMNS),
        segments=(
            SegmentRule("QLD", (CEVA_QLD,)),
            SegmentRule("VIC", (CEVA_VIC,)),
        ),
    ),
    ReportType.PURCHASE_NZ: ReportDescriptor(
        report_type=ReportType.PURCHASE_NZ,
        keywords=("purchase", "item", "nz"),
        description="New Zealand purchase items (stock in transit)",
        warehouse_column="To Warehouse",
        quantity_column="Total",
        derived=_PURCHASE_TOTAL,
        columns=tuple(PURCHASE_COLUMNS),
        segments=(SegmentRule("NZ", (CEVA_AUC,)),),
    ),
    ReportType.SALES_AU: ReportDescriptor(
        report_type=ReportType.SALES_AU,
        keywords=("sales", "item", "au"),
        description="Australian sales items (back orders)",
        warehouse_column="Warehouse",
        quantity_column="BO QTY",
        columns=tuple(SALES_COLUMNS),
        segments=(
            SegmentRule("QLD", (CEVA_QLD,)),
            SegmentRule("VIC", (CEVA_VIC, CEVA_OFFSITE)),
        ),
    ),
    ReportType.SALES_NZ: ReportDescriptor(
        report_type=ReportType.SALES_NZ,
        keywords=("sales", "item", "nz"),
        description="New Zealand sales items (back orders)",
        warehouse_column="Warehouse",
        quantity_column="BO QTY",
        columns=tuple(SALES_COLUMNS),
        segments=(SegmentRule("NZ", (CEVA_AUC,)),),
    ),
}


def get_descriptor(report_type) -> ReportDescriptor:
    if not isinstance(report_type, ReportType) or report_type not in DESCRIPTORS:
        raise UnsupportedReportType(report_type)
    return DESCRIPTORS[report_type]


# ===============================================================================
# CLASSIFICATION
# ===============================================================================

def classify(filename: str) -> Optional[ReportType]:
    """Return the first report type whose keywords all occur in ``filename``.

    Keywords are matched as case-insensitive substrings in any order, so
    ``"INVENTORY enquiry au 2024.xlsx"`` and ``"inventory_Enquiry_AU.xlsx"``
    are both Inventory Enquiry AU. Returns None when nothing matches.
    """
    for report_type, descriptor in DESCRIPTORS.items():
        if descriptor.matches(filename or ""):
            logger.info("Classified '%s' as %s", filename, report_type.label)
            return report_type
    logger.warning("No report type matches '%s'", filename)
    return None


def require_report_type(filename: str) -> ReportType:
    report_type = classify(filename)
    if report_type is None:
        raise UnrecognizedReportType(filename)
    return report_type
