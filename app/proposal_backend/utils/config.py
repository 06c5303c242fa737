"""
Configuration module for the proposal generator backend.

All settings are configurable via environment variables with sensible defaults
for Databricks Apps deployment.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# ---------------------------------------------------------------------------
# Unity Catalog
# ---------------------------------------------------------------------------
CATALOG_NAME: str = os.getenv("CATALOG_NAME", "sales_catalog")
SCHEMA_PROPOSALS: str = os.getenv("SCHEMA_PROPOSALS", "proposals")


def _fqn(schema: str, table: str) -> str:
    """Return a fully-qualified three-level Unity Catalog table name."""
    return f"{CATALOG_NAME}.{schema}.{table}"


TABLE_PROPOSALS: str = _fqn(SCHEMA_PROPOSALS, "proposals")
TABLE_SIGNATURES: str = _fqn(SCHEMA_PROPOSALS, "proposal_signatures")

# ---------------------------------------------------------------------------
# SQL Warehouse
# ---------------------------------------------------------------------------
WAREHOUSE_ID: str = os.getenv("DATABRICKS_WAREHOUSE_ID", "your-warehouse-id")

# ---------------------------------------------------------------------------
# Model Serving (transcript insights / executive summaries)
# ---------------------------------------------------------------------------
INSIGHTS_SERVING_ENDPOINT: str = os.getenv("INSIGHTS_SERVING_ENDPOINT", "")
INSIGHTS_MAX_TOKENS: int = int(os.getenv("INSIGHTS_MAX_TOKENS", "1500"))
SUMMARY_MAX_TOKENS: int = int(os.getenv("SUMMARY_MAX_TOKENS", "300"))

# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------
CACHE_TTL: int = int(os.getenv("CACHE_TTL", "300"))  # seconds

# ---------------------------------------------------------------------------
# Databricks connection (local dev fallback)
# ---------------------------------------------------------------------------
DATABRICKS_HOST: str = os.getenv("DATABRICKS_HOST", "")
DATABRICKS_TOKEN: str = os.getenv("DATABRICKS_TOKEN", "")

# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------
APP_TITLE: str = "Proposal Generator"
APP_VERSION: str = "1.0.0"
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
STATIC_FILES_DIR: str = os.getenv("STATIC_FILES_DIR", "static")
PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")
SLUG_MAX_LENGTH: int = 60
