"""Testing Infrastructure Package.

- test_framework: TestSuite runner and console formatting
- test_utilities: standard runner factory and polling helpers
- protocol_mocks: in-memory driver and element doubles
"""
