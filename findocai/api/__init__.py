# =============================================================================
# API Package - FastAPI Route Handlers
# =============================================================================
# Each module defines a FastAPI APIRouter for a specific feature:
#   - chat.py: ask questions, list / read / rename / delete conversations
#   - embeddings.py: enqueue (re-)embedding, report embedding status
#   - deps.py: caller identity and injectable service providers
# =============================================================================
