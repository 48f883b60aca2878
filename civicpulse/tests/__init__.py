'''
civicpulse Test Suite

Test Modules:
-------------
- test_statistical_profiler.py: satisfaction CI and reliability tiers,
  insufficient-data marker, equity gap, issue severity tie-break, funnel strings
- test_intent_classifier.py: ordered intent rules, satisfaction polarity,
  data needs, classification purity
- test_knowledge_handler.py: sub-type selection, aggregation caps,
  cross-analysis, empty-data summaries
- test_notification_handler.py: segment precedence, full resident lists,
  priorities, abandoned / not-interested segments, segment reports
- test_operations_handler.py: delivery funnel, providers, follow-ups,
  degraded results from the handler router
- test_text_generation.py: OpenAI-compatible client error translation
- test_enhancement_gate.py: rubric, splice, adoption rule, skip reasons
- test_response_assembler.py: confidence arithmetic, provenance, response variants
- test_orchestrator.py: answer() end to end with in-memory collaborators
- test_data_store.py: JSON file store, malformed records, TTL cache
- test_api.py: FastAPI endpoints with dependency overrides (integration marker)

Running Tests:
--------------
    pip install -e ".[test]"
    pytest civicpulse/tests -v

Configuration:
--------------
See conftest.py for shared fixtures and test configuration.
'''

__all__ = []
