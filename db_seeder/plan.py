"""
Generation plan models.

A plan names the value pools a run needs and, per target table, the ordered
list of column generators. Plans are plain JSON/YAML documents, typically
hand-written or produced by an external model.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from db_seeder.exceptions import PlanLoadError


class DataPoolConfig(BaseModel):
    """
    Declaration of a named value pool.

    The instruction text is not interpreted here; it is handed to whatever
    pool source materializes the values.
    """

    model_config = ConfigDict(populate_by_name=True)

    description: str = ""
    uniqueness_ratio: Optional[float] = None
    instruction: str = Field(default="", alias="gemini_prompt_for_pool")
    values: Optional[list[str]] = None


class FieldTemplate(BaseModel):
    """Assignment of one generator to one column."""

    column_name: str
    # Unknown generator names are accepted here and rejected at evaluation time
    generator: str
    params: dict[str, Any] = Field(default_factory=dict)


class EntityTemplate(BaseModel):
    """A named generation unit mapped to exactly one table."""

    entity_name: str
    target_table: str
    fields: list[FieldTemplate] = Field(default_factory=list)


class ArchitecturalPlan(BaseModel):
    """Full description of pools and entity templates for one run."""

    theme: str = ""
    data_pools: dict[str, DataPoolConfig] = Field(default_factory=dict)
    entity_templates: list[EntityTemplate] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_entity_names(self) -> ArchitecturalPlan:
        seen: set[str] = set()
        for template in self.entity_templates:
            if template.entity_name in seen:
                raise ValueError(f"Duplicate entity name '{template.entity_name}'")
            seen.add(template.entity_name)
        return self

    def get_entity(self, entity_name: str) -> EntityTemplate | None:
        """Get entity template by name."""
        for template in self.entity_templates:
            if template.entity_name == entity_name:
                return template
        return None

    @property
    def target_tables(self) -> list[str]:
        """Target tables in plan order, without duplicates."""
        return list(dict.fromkeys(t.target_table for t in self.entity_templates))

    def referenced_pools(self) -> set[str]:
        """Pool names used by from_pool generators."""
        names = set()
        for template in self.entity_templates:
            for field in template.fields:
                pool_name = field.params.get("pool_name")
                if field.generator == "from_pool" and isinstance(pool_name, str):
                    names.add(pool_name)
        return names

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ArchitecturalPlan:
        """
        Validate a plan document.

        Raises:
            PlanLoadError: If the document does not match the plan structure
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise PlanLoadError(f"Invalid plan: {e}") from e


def load_plan(path: Path | str) -> ArchitecturalPlan:
    """
    Load a plan from a JSON or YAML file.

    Args:
        path: Plan file (.json, .yaml or .yml)

    Returns:
        Validated ArchitecturalPlan

    Raises:
        PlanLoadError: If the file is missing, unparsable or invalid
    """
    plan_path = Path(path)
    if not plan_path.exists():
        raise PlanLoadError(f"Plan file not found: {plan_path}")

    text = plan_path.read_text()
    try:
        if plan_path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise PlanLoadError(f"Could not parse plan file {plan_path}: {e}") from e

    if not isinstance(data, dict):
        raise PlanLoadError(f"Plan file {plan_path} must contain a mapping at top level")

    return ArchitecturalPlan.from_dict(data)
