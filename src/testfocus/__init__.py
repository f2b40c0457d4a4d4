"""
TestFocus - relevance ranking and failure correlation for test runs.

This package provides tools to:
- Find the test files most likely affected by a set of changed source files
- Order test results by import-graph distance to the change
- Attach the most plausible HTTP exchange to each assertion failure
"""

__version__ = "0.1.0"
__author__ = "TestFocus Team"
