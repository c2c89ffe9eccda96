"""
Core modules for GenStudio.

This package contains request orchestration, response caching, error
classification, and usage/cost accounting.
"""
