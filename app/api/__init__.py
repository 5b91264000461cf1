# =============================================================================
# API Package - FastAPI Route Handlers
# =============================================================================
# Each module defines a FastAPI APIRouter for a specific feature:
#   - chat.py: streaming question answering (Server-Sent Events)
#   - catalog.py: lists the tabs the selector can choose from
#   - deps.py: shared dependencies (orchestrator, catalog)
# =============================================================================
