"""
Funding Assistant - Danish life-science funding call aggregator.

Architecture:
- core/: Stable foundation (models, HTTP client, normalizers, selectors)
- sources/: Source adapters (curated lists, live listings, program pages)
- storage/: Call store (in-memory and SQLite) with vector ranking
- chat/: Retrieval-augmented chat assistant
- config/: YAML-driven settings and source definitions
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
