"""Base-definition generation: filters, views, rendering and parsing."""

from .definition import BaseDefinition, GroupSpec, SortKey, ViewDefinition
from .generator import base_file_path, build_base_definition, build_parent_task_definition, generate_views
from .naming import pluralize, sanitize_file_name
from .parser import parse_base, validate_base
from .serializer import serialize_base

__all__ = [
    "BaseDefinition",
    "GroupSpec",
    "SortKey",
    "ViewDefinition",
    "base_file_path",
    "build_base_definition",
    "build_parent_task_definition",
    "generate_views",
    "parse_base",
    "pluralize",
    "sanitize_file_name",
    "serialize_base",
    "validate_base",
]
