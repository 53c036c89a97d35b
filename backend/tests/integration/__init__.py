"""
Integration tests: HTTP flows through the Flask test client, concurrent
borrow and return races, and the management CLI.
"""
