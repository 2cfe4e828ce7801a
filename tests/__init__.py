"""
Salon AI Tests

Unit tests for closure rules, availability checks, closure administration
and the conversational booking pipeline. Collaborators (LLM, booking
backend, Twilio) are mocked; SQL storage runs on in-memory SQLite.

Running Tests:
    # Install with test extras
    pip install -e ".[test]"

    # Run all tests
    pytest tests/ -v

    # Run one module
    pytest tests/unit/test_closure_registry.py -v
"""
