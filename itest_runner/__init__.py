"""
Integration test runner.

Launches a dependent server, waits until it is ready, runs the integration
test process against it and always tears the server down again.
"""

__version__ = "1.0.0"
