"""
lmiadata_shared — shared utilities, models, and configuration for lmiadata.

Usage:
    from lmiadata_shared.config import settings
    from lmiadata_shared.db import get_supabase_client, get_duckdb_connection
    from lmiadata_shared.models import LmiaRecord
    from lmiadata_shared.geo import province_from_abbreviation
    from lmiadata_shared.noc import noc_family
"""

__version__ = "0.1.0"
