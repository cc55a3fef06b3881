"""
MG Warehouse Report Splitter API
================================
Splits AU/NZ inventory, purchase and sales exports into one sheet per
warehouse segment.

Usage:
    uvicorn backend.main:app --reload

Features:
- Upload an Excel export; the report type is detected from the file name
  (or given explicitly as ``fileType``)
- Returns per-sheet row counts and the output workbook as base64
- Processed workbooks can be downloaded again from /api/download until they expire
"""

import base64
import binascii
import logging
import os
from typing import Optional
from urllib.parse import quote

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel

from backend import __version__, config
from backend.errors import ReportError
from backend.processors import process
from backend.report_types import DESCRIPTORS, ReportType, require_report_type
from backend.store import ProcessedFileStore
from backend.workbook import output_filename, read_table, read_workbook, write_table_set

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="MG Warehouse Report Splitter API")

# Enable CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials="*" not in config.CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

processed_files = ProcessedFileStore(ttl=config.RESULT_TTL_SECONDS)


class DownloadRequest(BaseModel):
    filename: str
    fileData: Optional[str] = None


# ===============================================================================
# HELPERS
# ===============================================================================

def resolve_report_type(filename: str, file_type: Optional[str]) -> ReportType:
    """Explicit ``fileType`` wins; otherwise classify the file name."""
    if file_type:
        return ReportType.parse(file_type)
    return require_report_type(filename)


def attachment_headers(filename: str) -> dict:
    ascii_name = filename.encode("ascii", "ignore").decode() or "processed.xlsx"
    return {
        "Content-Disposition": f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"
    }


def read_upload(file: UploadFile) -> bytes:
    """Read at most one byte past the upload limit and reject anything larger."""
    too_large = HTTPException(
        status_code=400,
        detail=f"File exceeds the {config.MAX_UPLOAD_MB} MB upload limit",
    )
    if file.size is not None and file.size > config.MAX_UPLOAD_BYTES:
        raise too_large
    content = file.file.read(config.MAX_UPLOAD_BYTES + 1)
    if len(content) > config.MAX_UPLOAD_BYTES:
        raise too_large
    return content


# ===============================================================================
# API ENDPOINTS
# ===============================================================================

@app.get("/")
async def root():
    return {
        "message": "MG Warehouse Report Splitter API",
        "version": __version__,
        "report_types_supported": [report_type.label for report_type in ReportType],
    }


@app.get("/api/report-types")
async def report_types():
    """List supported report types with their detection keywords and rules."""
    return {
        "success": True,
        "data": [
            {
                "type": descriptor.report_type.label,
                "description": descriptor.description,
                "keywords": list(descriptor.keywords),
                "worksheets": [segment.name for segment in descriptor.segments],
                "rules": descriptor.describe_rules(),
            }
            for descriptor in DESCRIPTORS.values()
        ],
    }


# Plain def: FastAPI runs these in its thread pool, off the event loop
@app.post("/api/process")
def process_file(file: UploadFile = File(...), fileType: Optional[str] = Form(None)):
    """Split an uploaded export into warehouse sheets."""
    filename = file.filename or ""
    try:
        if not filename.lower().endswith(config.ALLOWED_EXTENSIONS):
            raise HTTPException(status_code=400, detail="Only Excel files (.xlsx, .xls) are allowed")

        report_type = resolve_report_type(filename, fileType)
        content = read_upload(file)

        logger.info("Processing file: %s, type: %s", filename, report_type.label)

        _, table = read_table(content)
        if config.KEEP_SOURCE_SHEETS:
            base = read_workbook(content)
        else:
            base = {}

        result = process(report_type, table, base)
        # Source sheets not replaced by a segment go back out cell for cell
        raw = [name for name, sheet in result.table_set.items() if base.get(name) is sheet]
        output = write_table_set(result.table_set, raw=raw)

        out_name = output_filename(filename)
        processed_files.put(out_name, output)

        return {
            "success": True,
            "data": {
                "filename": out_name,
                "reportType": report_type.label,
                "originalRows": result.original_rows,
                "worksheets": result.worksheets,
                "fileData": base64.b64encode(output).decode(),
            },
        }

    except HTTPException:
        raise
    except ReportError as e:
        logger.warning("Rejected %s: %s", filename, e)
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Processing error for %s", filename)
        raise HTTPException(status_code=500, detail=f"Error processing file: {str(e)}")


@app.post("/api/download")
def download_file(request: DownloadRequest):
    """Return a processed workbook, from the request's base64 data or the store."""
    filename = os.path.basename(request.filename)
    if request.fileData:
        try:
            content = base64.b64decode(request.fileData, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(status_code=400, detail="fileData is not valid base64")
    else:
        content = processed_files.pop(filename)
        if content is None:
            raise HTTPException(status_code=404, detail="File not found or already expired")

    return Response(
        content=content,
        media_type=config.XLSX_MEDIA_TYPE,
        headers=attachment_headers(filename),
    )


if __name__ == "__main__":
    import uvicorn
    print("\n" + "=" * 80)
    print(" " * 24 + "MG WAREHOUSE REPORT SPLITTER")
    print("=" * 80)
    print("\nSupported Report Types:")
    for report_type in ReportType:
        print(f"  - {report_type.label}")
    print("=" * 80)
    print(f"\nStarting server on http://{config.HOST}:{config.PORT}")
    print("=" * 80 + "\n")
    uvicorn.run(app, host=config.HOST, port=config.PORT)
