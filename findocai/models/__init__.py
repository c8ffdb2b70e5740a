# =============================================================================
# Models Package - Pydantic V2 Schemas
# =============================================================================
# Request/response schemas for the HTTP API, kept apart from the ORM models
# in findocai/db/models.py so stored fields (embedding vectors, raw message
# metadata) never leak into responses.
# =============================================================================
