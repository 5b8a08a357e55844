"""
App Agent Test Suite
====================

Test organization mirrors the source code structure:
    tests/
    ├── test_core/          → Tests for appagent.core (config, models, session state)
    ├── test_infrastructure/→ Tests for appagent.infrastructure (pattern + context stores)
    ├── test_orchestration/ → Tests for appagent.orchestration (engine, sessions, workflow)
    ├── test_integrations/  → Tests for appagent.integrations (LLM, discovery, schema)
    ├── test_interfaces/    → Tests for appagent.interfaces (CLI)
    ├── test_integration/   → End-to-end integration tests
    └── conftest.py         → Shared pytest fixtures

Running Tests:
    pytest                              # Run all tests
    pytest tests/test_orchestration/    # Run only orchestration tests
    pytest --cov=appagent               # Run with coverage report
"""
