"""
Core modules for Fleet Cost.

This package contains the usage aggregation, pricing, and shared
free-tier allocation logic.
"""
