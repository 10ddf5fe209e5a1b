"""Public interface definitions for every external backend.

Services depend only on the abstract base classes defined here.  Concrete
adapters live in ``src/providers/`` and are constructed once in
``src/main.py``; tests substitute in-memory fakes.

CONCRETE PROVIDER MAP:
    Interface                  ->  Concrete implementation (in src/providers/)
    ---------------------------------------------------------------------
    IEmbeddingProvider         ->  OpenAIEmbeddingProvider
    ILLMProvider               ->  OpenAILLMProvider
    IVectorStoreProvider       ->  ChromaDBProvider
    ICacheProvider             ->  MemoryCacheProvider
    IObjectStorageProvider     ->  S3StorageProvider
    IMetadataStore             ->  SQLiteMetadataStore
"""

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.metadata_store import IMetadataStore
from src.interfaces.object_storage_provider import IObjectStorageProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "ICacheProvider",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IMetadataStore",
    "IObjectStorageProvider",
    "IVectorStoreProvider",
]
