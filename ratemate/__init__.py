"""
RateMate - retrieval-augmented mortgage assistant.

Layout:
    ratemate.config        settings + prompt templates
    ratemate.src.core      answer pipeline, retrieval, sessions, providers
    ratemate.src.database  LanceDB corpus store
    ratemate.src.api       FastAPI app and routes
    ratemate.scripts       corpus setup CLI
"""

__version__ = "0.1.0"
