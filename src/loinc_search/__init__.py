"""
LOINC Semantic Search Module

Matches free-text medical queries to LOINC codes by comparing embedding
vectors against a pre-computed corpus.

Key components:
- core/: Domain types, exceptions, and logging utilities
- config/: YAML and environment configuration
- corpus/: Chunked reading and incremental parsing of the vector file
- retrieval/: Embedding store, cosine top-K search, and the query service
- importer/: Resumable batch generation of the vector file
- providers/: Embedding and explanation provider clients (Ollama)
- cli/: Command-line entry points
"""

__version__ = "0.1.0"
