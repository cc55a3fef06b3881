import os
from typing import List


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


# ===============================================================================
# SERVER SETTINGS
# ===============================================================================

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = _env_list("CORS_ORIGINS", "*")

# ===============================================================================
# UPLOAD AND RESULT HANDLING
# ===============================================================================

ALLOWED_EXTENSIONS = (".xlsx", ".xls")
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "50"))
MAX_UPLOAD_BYTES = MAX_UPLOAD_MB * 1024 * 1024

# Processed workbooks are kept for /api/download for this long
RESULT_TTL_SECONDS = int(os.getenv("RESULT_TTL_SECONDS", "3600"))

# Output keeps the uploaded sheets ahead of the generated warehouse sheets
KEEP_SOURCE_SHEETS = _env_bool("KEEP_SOURCE_SHEETS", True)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
