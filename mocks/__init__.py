"""
Mock external services for local runs and tests.
"""
