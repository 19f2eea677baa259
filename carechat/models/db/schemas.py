"""PostgreSQL schema constants.

- core: tenancy (associations) and shared resources
- care: patients and conversation state
"""

# Core system schema - tenancy and shared resources
CORE_SCHEMA = "core"

# Care domain schema - patients and conversations
CARE_SCHEMA = "care"

# Default search path for SQLAlchemy connections
DEFAULT_SEARCH_PATH = f"public,{CORE_SCHEMA},{CARE_SCHEMA}"

# All managed schemas (for Alembic configuration)
MANAGED_SCHEMAS = frozenset({
    "public",
    CORE_SCHEMA,
    CARE_SCHEMA,
})
