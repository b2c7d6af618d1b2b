"""Reasoning oracle for cluster merges and category hierarchy."""

from taxonomy_cleanup.oracle.client import CategoryOracle, parse_json_content

__all__ = [
    "CategoryOracle",
    "parse_json_content",
]
