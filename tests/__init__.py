"""
Test suite for the resource analysis engine.

One module per service, plus end-to-end tests of the engine and the
request wrapper. Shared records live in conftest.py.
"""
