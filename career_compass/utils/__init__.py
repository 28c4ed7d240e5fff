"""Utility exports."""

from .helpers import dedupe_strings, join_or, parse_llm_json
from .logger import get_logger

__all__ = [
    "get_logger",
    "parse_llm_json",
    "dedupe_strings",
    "join_or",
]
