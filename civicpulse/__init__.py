"""
civicpulse Package.

Query orchestration and statistical intelligence over a civic-engagement
survey dataset, served through FastAPI.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, record store and dependencies
    - models: Pydantic schemas and enums
    - services: Classifier, profiler, handlers, enhancement gate, orchestrator
"""

__version__ = "1.0.0"
