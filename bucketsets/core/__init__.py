"""
Core business logic for storage sets.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
or read the process environment. Backends are reached through the
ObjectStore protocol, so the listing and pruning rules can be tested
against in-memory stores.
"""
