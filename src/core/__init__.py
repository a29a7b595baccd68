"""Core domain package for ledgerscope.

Core contains tag parsing, view aggregation, and relevance logic without any
storage or transport-specific code, keeping the business logic portable.
"""
