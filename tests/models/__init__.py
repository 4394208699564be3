"""Sample entity declarations used by the test suite."""
