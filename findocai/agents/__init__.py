# =============================================================================
# Agents Package - LangGraph Answer Pipeline
# =============================================================================
#   - orchestrator.py: LangGraph graph (retrieve → analyse → record) and the
#     answer() entry point used by the chat endpoint
#   - analyst.py: prompt selection (grounded vs. "no relevant data"), the
#     LLM call under a deadline, and the fallback reply
# =============================================================================
