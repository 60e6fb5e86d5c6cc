# Request-scoped orchestration: ingestion (scrape → store → embed → index)
# and retrieval (embed → index → hydrate → answer).
