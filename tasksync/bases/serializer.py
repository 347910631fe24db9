"""Render a BaseDefinition to the on-disk base file format.

Layout::

    ---
    title: Tasks
    view: table
    type: task
    auto-generate: true
    auto-update: true
    ---

    ```base
    formulas: ...
    properties: ...
    views: ...
    ```

Output is byte-identical for equal definitions: key order is fixed and
YAML is dumped with ``sort_keys=False``.
"""

from __future__ import annotations

import yaml

from .definition import BaseDefinition

BASE_FENCE = "```base"
HEADER_VIEW = "table"


def _dump(data: dict) -> str:
    return yaml.safe_dump(
        data,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=4096,
    )


def header_fields(definition: BaseDefinition) -> dict:
    return {
        "title": definition.title,
        "view": HEADER_VIEW,
        "type": definition.entity_type,
        "auto-generate": True,
        "auto-update": True,
    }


def body_fields(definition: BaseDefinition) -> dict:
    body: dict = {}
    if definition.formulas:
        body["formulas"] = {name: expr for name, expr in definition.formulas}
    if definition.properties:
        body["properties"] = {ref: {"displayName": name} for ref, name in definition.properties}
    body["views"] = [view.to_dict() for view in definition.views]
    return body


def serialize_base(definition: BaseDefinition) -> str:
    return (
        "---\n"
        + _dump(header_fields(definition))
        + "---\n\n"
        + BASE_FENCE
        + "\n"
        + _dump(body_fields(definition))
        + "```\n"
    )
