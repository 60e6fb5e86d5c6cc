# =============================================================================
# Services Package - External Integrations
# =============================================================================
#   - scraper.py:      Playwright page scraper (Ok / Degraded results)
#   - embedder.py:     provider-agnostic embeddings + chunked summariser
#   - llm.py:          multi-provider LLM abstraction (Anthropic, OpenAI, Gemini)
#   - vectorstore.py:  pluggable vector index (pgvector, Chroma)
#   - auth.py:         password hashing, JWTs, share hashes
#   - rate_limiter.py: Redis sliding window per user
# =============================================================================
