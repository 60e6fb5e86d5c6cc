# =============================================================================
# Service Container - Long-Lived Clients Built Once at Startup
# =============================================================================
#
# The embedder, LLM provider, vector index and scraper are constructed once
# in the application lifespan and stored on `app.state.services`. Routes
# reach them through the `get_services` dependency, and tests swap in fakes
# by building a ServiceContainer by hand.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass

from brainvault.config import Settings
from brainvault.services.embedder import Embedder, build_embedding_backend
from brainvault.services.llm import LLMProvider, build_llm_provider
from brainvault.services.scraper import PageScraper
from brainvault.services.vectorstore import VectorIndex, build_vector_index

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    embedder: Embedder
    llm: LLMProvider
    vector_index: VectorIndex
    scraper: PageScraper


def build_services(settings: Settings) -> ServiceContainer:
    """
    Build every external-facing client from settings.

    Raises:
        ValueError: Unknown provider/backend name or missing API key.
    """
    llm = build_llm_provider(settings)
    embedder = Embedder(
        backend=build_embedding_backend(settings),
        dimensions=settings.embedding_dimensions,
        llm=llm,
        summary_chunk_size=settings.summary_chunk_size,
    )
    services = ServiceContainer(
        embedder=embedder,
        llm=llm,
        vector_index=build_vector_index(settings),
        scraper=PageScraper(settings),
    )
    logger.info(
        "Services ready (llm=%s, embedding=%s, index=%s)",
        settings.llm_provider, settings.embedding_provider, settings.vectorstore_type,
    )
    return services
