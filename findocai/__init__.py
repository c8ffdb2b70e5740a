# =============================================================================
# FinDocAI Chat - Conversational Q&A over a User's Financial Documents
# =============================================================================
# A retrieval-augmented chat service: users ask questions about the invoices,
# bank statements and receipts they uploaded, and get answers grounded in
# those documents with source citations.
#
# Package structure:
#   findocai/
#   ├── api/          → FastAPI route handlers (chat, embeddings)
#   ├── agents/       → LangGraph answer pipeline (retrieve → analyse → record)
#   ├── db/           → Database engines, sessions, and ORM models
#   ├── models/       → Pydantic V2 request/response schemas
#   ├── services/     → Business logic (chunking, embedding, retrieval,
#   │                    context/citations, conversations, ingestion, LLM)
#   └── workers/      → Celery task definitions and configuration
# =============================================================================
