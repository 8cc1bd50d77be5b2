"""
Workflow definitions.

A workflow is an ordered sequence of steps; each step is a set of tasks that
run concurrently. Steps run strictly one after another.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Tuple, Union
import logging

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkflowTask:
    """One capability invocation inside a step."""

    capability_name: str
    params: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def coerce(cls, value: Any) -> 'WorkflowTask':
        """
        Build a task from a WorkflowTask, a capability name, a
        ``(name, params)`` pair or a ``{'capability': ..., 'params': ...}``
        mapping.
        """
        if isinstance(value, WorkflowTask):
            return value
        if isinstance(value, str):
            return cls(value)
        if isinstance(value, tuple) and len(value) == 2:
            return cls(value[0], dict(value[1] or {}))
        if isinstance(value, Mapping):
            name = value.get('capability') or value.get('capability_name')
            if not name:
                raise ValueError(f"Workflow task is missing 'capability': {value!r}")
            return cls(name, dict(value.get('params') or {}))
        raise TypeError(f"Cannot build a workflow task from {type(value).__name__}")

    def to_dict(self) -> Dict[str, Any]:
        return {'capability': self.capability_name, 'params': dict(self.params)}


WorkflowStep = Tuple[WorkflowTask, ...]


@dataclass(frozen=True)
class Workflow:
    """Ordered sequence of steps of concurrently executed tasks."""

    steps: Tuple[WorkflowStep, ...] = ()
    name: str = 'workflow'

    @classmethod
    def coerce(cls, value: Union['Workflow', Iterable[Iterable[Any]]], name: str = 'workflow') -> 'Workflow':
        """Build a workflow from a Workflow or nested step/task lists."""
        if isinstance(value, Workflow):
            return value
        steps = tuple(
            tuple(WorkflowTask.coerce(task) for task in step)
            for step in value
        )
        return cls(steps=steps, name=name)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> 'Workflow':
        """
        Load a workflow file.

        Format:
            name: field_processing
            steps:
              - - capability: MetadataExtractionAgent
              - - capability: GeoClusteringAgent
                  params: {radius_m: 50}
        """
        path = Path(path)
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        if isinstance(data, list):
            steps, name = data, path.stem
        elif isinstance(data, dict) and 'steps' in data:
            steps, name = data['steps'], data.get('name', path.stem)
        else:
            raise ValueError(f"Workflow file has no 'steps': {path}")

        try:
            return cls.coerce(steps, name=name)
        except TypeError as e:
            raise ValueError(f"Malformed workflow file {path}: {e}") from e

    def with_params(self, **params: Any) -> 'Workflow':
        """Copy with extra params merged under every first-step task's own."""
        if not self.steps:
            return self
        first = tuple(
            WorkflowTask(task.capability_name, {**params, **task.params})
            for task in self.steps[0]
        )
        return Workflow(steps=(first,) + self.steps[1:], name=self.name)

    @property
    def capability_names(self) -> List[str]:
        return [task.capability_name for step in self.steps for task in step]

    def __len__(self) -> int:
        return len(self.steps)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'name': self.name,
            'steps': [[task.to_dict() for task in step] for step in self.steps],
        }
