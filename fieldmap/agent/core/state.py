"""
Orchestrator state snapshots.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from fieldmap.agent.tools.base import AgentResult
from fieldmap.agent.workflows.base import Workflow


class OrchestratorStatus(Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


@dataclass(frozen=True)
class OrchestratorState:
    """
    Immutable snapshot of the engine state.

    The engine replaces its snapshot on every mutation; subscribers only ever
    see complete snapshots.
    """

    status: OrchestratorStatus = OrchestratorStatus.IDLE
    workflow: Optional[Workflow] = None
    current_step_index: int = 0
    active_capability_names: Tuple[str, ...] = ()
    per_step_results: Tuple[Tuple[AgentResult, ...], ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.status in (OrchestratorStatus.SUCCESS, OrchestratorStatus.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization (result data omitted)."""
        return {
            'status': self.status.value,
            'workflow': self.workflow.to_dict() if self.workflow else None,
            'current_step_index': self.current_step_index,
            'active_capability_names': list(self.active_capability_names),
            'per_step_results': [
                [{'success': r.success, 'summary': r.summary} for r in step]
                for step in self.per_step_results
            ],
        }
