"""Reading uploaded workbooks into tables and writing table sets back to .xlsx."""

import io
import logging
import os
import uuid
from datetime import datetime
from typing import Collection, Optional, Tuple

import pandas as pd

from backend.errors import WorkbookReadError
from backend.processors import TableSet

logger = logging.getLogger(__name__)


def _open(content: bytes) -> pd.ExcelFile:
    try:
        xls = pd.ExcelFile(io.BytesIO(content))
    except Exception as e:
        raise WorkbookReadError(f"Could not read workbook: {e}") from e
    if not xls.sheet_names:
        raise WorkbookReadError("Workbook has no worksheets")
    return xls


def _clean(df: pd.DataFrame) -> pd.DataFrame:
    # Header row becomes the keys; fully blank rows carry no record
    return df.dropna(how="all").reset_index(drop=True)


def read_table(content: bytes) -> Tuple[str, pd.DataFrame]:
    """Return the first sheet's name and its rows, header row as column names."""
    xls = _open(content)
    sheet_name = xls.sheet_names[0]
    return sheet_name, _clean(xls.parse(sheet_name))


def read_workbook(content: bytes) -> TableSet:
    """Every sheet of the workbook as a raw cell grid, in workbook order.

    No header row is taken and no row is dropped, so a sheet written back
    with ``write_table_set(..., raw=...)`` keeps its cells where they were.
    """
    xls = _open(content)
    sheets = {name: xls.parse(name, header=None) for name in xls.sheet_names}
    logger.debug("Read %d sheet(s): %s", len(sheets), ", ".join(sheets))
    return sheets


def write_table_set(table_set: TableSet, raw: Collection[str] = ()) -> bytes:
    """Serialize ``table_set`` to .xlsx bytes, one sheet per entry in order.

    Sheets named in ``raw`` are cell grids from ``read_workbook`` and are
    written without a header row.
    """
    if not table_set:
        raise ValueError("Cannot write a workbook without sheets")

    excel_buffer = io.BytesIO()
    with pd.ExcelWriter(excel_buffer, engine="openpyxl") as writer:
        for sheet_name, table in table_set.items():
            table.to_excel(writer, index=False, header=sheet_name not in raw, sheet_name=sheet_name)
    excel_buffer.seek(0)
    return excel_buffer.read()


def output_filename(original: Optional[str], now: Optional[datetime] = None,
                    token: Optional[str] = None) -> str:
    """``processed_<timestamp>_<token>_<name>.xlsx`` for an uploaded file name.

    The random token keeps names unique between uploads of the same file.
    """
    stem = os.path.splitext(os.path.basename(original or ""))[0] or "report"
    timestamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    token = token or uuid.uuid4().hex[:12]
    return f"processed_{timestamp}_{token}_{stem}.xlsx"
