# =============================================================================
# Services Package - Business Logic
# =============================================================================
# Contains the core business logic, separated from API handlers:
#   - chunker.py: sentence-greedy, character-bounded chunking
#   - embedder.py: deterministic hash embeddings (+ OpenAI-compatible option)
#   - documents.py: read access to uploaded documents, OCR text and analysis
#   - embedding_store.py: chunk + vector persistence (PostgreSQL, in-memory)
#   - ingestion.py: document → chunks → vectors → store, status reporting
#   - retriever.py: cosine similarity and linear-scan ranking
#   - context.py: LLM context block and citation builders
#   - conversations.py: conversation/message persistence and titles
#   - llm.py: multi-provider LLM abstraction (Anthropic, OpenAI-compatible)
# =============================================================================
