"""
semantic-spine: semantic annotation of a song-lyrics corpus.

Assigns hierarchical semantic tags to every word of a corpus through a
validated classification cascade, persists progress in resumable jobs and
watches its own throughput, errors, latency and quota for anomalies.

Packages:
    core       errors, logging, settings, persistence primitives
    taxonomy   tagset vocabulary and lifecycle
    cache      (word, context) → tag memo with curation guard
    cascade    lexicon → rules → cache → LLM classification
    llm        provider protocol, gateway, budget, usage telemetry
    jobs       chunked, resumable annotation jobs
    monitor    statistical anomaly sweep
    ops        transport-agnostic operations
    api, cli   FastAPI and Typer surfaces
"""

__version__ = "0.1.0"
