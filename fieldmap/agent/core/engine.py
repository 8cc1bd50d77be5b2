"""
Workflow orchestration engine.

Runs workflows step by step. Tasks within a step run concurrently on a
thread pool and the engine joins all of them before judging the step: a
failing task never cancels its siblings. The combined output data of a step
becomes the inherited input of the next one.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from fieldmap.agent.core.cancellation import CancellationToken
from fieldmap.agent.core.state import OrchestratorState, OrchestratorStatus
from fieldmap.agent.tools.base import AgentResult
from fieldmap.agent.tools.registry import CapabilityRegistry
from fieldmap.agent.workflows.base import Workflow, WorkflowStep, WorkflowTask
from fieldmap.config import section
from fieldmap.errors import CapabilityNotFoundError
from fieldmap.logging_config import log_step_results, log_workflow_end, log_workflow_start

logger = logging.getLogger(__name__)


StateListener = Callable[[OrchestratorState], None]


def merge_step_data(results: Sequence[AgentResult]) -> Dict[str, Any]:
    """
    Shallow-merge the data of a step's results in task order.

    On key collisions the later task in the step wins.
    """
    merged: Dict[str, Any] = {}
    for result in results:
        merged.update(result.data)
    return merged


class OrchestrationEngine:
    """
    Executes workflows and single capabilities from an injected registry.

    State machine: IDLE -> RUNNING -> SUCCESS | FAILED. A new workflow may be
    started from IDLE or a terminal state; a start request while RUNNING is
    rejected. The engine is the only writer of its state and notifies every
    subscriber synchronously with each new snapshot.

    Reads the ``orchestration`` config section:
        max_workers: Thread pool size per step
        task_timeout_sec: Per-task deadline measured from the start of the
            step, or None for no deadline

    Example:
        >>> engine = OrchestrationEngine(create_default_registry(config), config)
        >>> state = engine.start_workflow([[('MetadataExtractionAgent', {'assets': assets})]])
        >>> state.status
        <OrchestratorStatus.SUCCESS: 'SUCCESS'>
    """

    def __init__(self, registry: CapabilityRegistry, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        orchestration = section(config, 'orchestration')

        self.registry = registry
        self.max_workers = max(1, int(orchestration['max_workers']))
        timeout = orchestration['task_timeout_sec']
        self.task_timeout: Optional[float] = float(timeout) if timeout is not None else None

        self._state = OrchestratorState()
        self._state_lock = threading.RLock()
        self._listeners: List[StateListener] = []
        self._listeners_lock = threading.Lock()
        self._workflow_token: Optional[CancellationToken] = None

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def state(self) -> OrchestratorState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a listener for state snapshots.

        Returns:
            Callable that unsubscribes the listener
        """
        with self._listeners_lock:
            self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: StateListener) -> None:
        with self._listeners_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _update_state(self, **changes: Any) -> OrchestratorState:
        with self._state_lock:
            self._state = replace(self._state, **changes)
            snapshot = self._state

        with self._listeners_lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.error("State listener failed", exc_info=True)

        return snapshot

    # ------------------------------------------------------------------
    # Workflow execution
    # ------------------------------------------------------------------

    def start_workflow(
        self,
        steps: Union[Workflow, Iterable[Iterable[Any]]]
    ) -> OrchestratorState:
        """
        Run a workflow to completion.

        Args:
            steps: Workflow, or nested lists of tasks (WorkflowTask, name,
                ``(name, params)`` or ``{'capability', 'params'}``)

        Returns:
            Final state snapshot. If another workflow is running, the request
            is rejected and the current snapshot is returned unchanged.
        """
        workflow = Workflow.coerce(steps)

        with self._state_lock:
            if self._state.status is OrchestratorStatus.RUNNING:
                logger.warning("Workflow already running; start request rejected")
                return self._state

            token = CancellationToken()
            self._workflow_token = token
            self._update_state(
                status=OrchestratorStatus.RUNNING,
                workflow=workflow,
                current_step_index=0,
                active_capability_names=(),
                per_step_results=(),
            )

        log_workflow_start(logger, workflow.steps)
        try:
            return self._run(workflow, token)
        finally:
            self._workflow_token = None

    def cancel(self) -> None:
        """
        Cancel the running workflow.

        Running tasks see their token cancelled; the workflow fails before
        the next step starts.
        """
        token = self._workflow_token
        if token is not None:
            logger.warning("Workflow cancellation requested")
            token.cancel()

    def _run(self, workflow: Workflow, token: CancellationToken) -> OrchestratorState:
        previous_data: Dict[str, Any] = {}

        for index, step in enumerate(workflow.steps):
            if token.cancelled:
                return self._fail(f"Workflow cancelled before step {index}")

            self._update_state(
                current_step_index=index,
                active_capability_names=tuple(task.capability_name for task in step),
            )

            results = self._run_step(step, previous_data, token)

            self._update_state(
                active_capability_names=(),
                per_step_results=self._state.per_step_results + (tuple(results),),
            )
            log_step_results(logger, index, results)

            failed = [result for result in results if not result.success]
            if failed:
                causes = '; '.join(result.summary for result in failed)
                return self._fail(f"Step {index} failed: {causes}", failed)

            if token.cancelled:
                return self._fail(f"Workflow cancelled during step {index}")

            previous_data = merge_step_data(results)
            self._update_state(current_step_index=index + 1)

        log_workflow_end(logger, OrchestratorStatus.SUCCESS.value)
        return self._update_state(status=OrchestratorStatus.SUCCESS, active_capability_names=())

    def _fail(self, summary: str, failed: Sequence[AgentResult] = ()) -> OrchestratorState:
        """Transition to FAILED, appending a synthetic result with the cause."""
        logger.error(summary)
        errors = [result.data.get('error', result.summary) for result in failed]
        synthetic = AgentResult.failure(summary, errors=errors)

        log_workflow_end(logger, OrchestratorStatus.FAILED.value)
        return self._update_state(
            status=OrchestratorStatus.FAILED,
            active_capability_names=(),
            per_step_results=self._state.per_step_results + ((synthetic,),),
        )

    def _run_step(
        self,
        step: WorkflowStep,
        previous_data: Dict[str, Any],
        token: CancellationToken
    ) -> List[AgentResult]:
        """Fan out every task of a step and join all of them."""
        if not step:
            return []

        executor = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(step)),
            thread_name_prefix='fieldmap-task',
        )
        pending: List[Tuple[WorkflowTask, Optional[Future], Optional[CancellationToken], Optional[AgentResult]]] = []
        timed_out = False

        try:
            for task in step:
                # Task params win over inherited data
                params = {**previous_data, **task.params}
                try:
                    capability = self.registry.lookup(task.capability_name)
                except CapabilityNotFoundError as e:
                    logger.error(str(e))
                    pending.append((task, None, None, AgentResult.failure(
                        f"{task.capability_name}: capability not found", error=e,
                    )))
                    continue

                task_token = token.child()
                future = executor.submit(capability.execute, params, task_token)
                pending.append((task, future, task_token, None))

            deadline = time.monotonic() + self.task_timeout if self.task_timeout is not None else None
            results = []
            for task, future, task_token, result in pending:
                if future is not None:
                    result, expired = self._join(task, future, deadline)
                    if expired:
                        task_token.cancel()
                        timed_out = True
                results.append(result)
            return results

        finally:
            # Abandon overrunning tasks; their tokens are already cancelled
            executor.shutdown(wait=not timed_out, cancel_futures=timed_out)

    def _join(
        self,
        task: WorkflowTask,
        future: Future,
        deadline: Optional[float]
    ) -> Tuple[AgentResult, bool]:
        timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
        try:
            return future.result(timeout=timeout), False
        except FutureTimeoutError:
            logger.error(f"{task.capability_name} timed out after {self.task_timeout}s")
            return AgentResult.failure(
                f"{task.capability_name}: timed out after {self.task_timeout:g}s",
                error_type='TimeoutError',
            ), True
        except Exception as e:
            # Registered objects that do not derive from Capability may raise
            logger.error(f"{task.capability_name} raised: {e}", exc_info=True)
            return AgentResult.failure(f"{task.capability_name} failed: {e}", error=e), False

    # ------------------------------------------------------------------
    # Single capability execution
    # ------------------------------------------------------------------

    def run_single_agent(
        self,
        capability_name: str,
        params: Optional[Dict[str, Any]] = None,
        token: Optional[CancellationToken] = None
    ) -> AgentResult:
        """
        Execute one capability outside the workflow state machine.

        ``active_capability_names`` shows the capability while it runs and is
        cleared afterwards whatever the outcome.
        """
        try:
            capability = self.registry.lookup(capability_name)
        except CapabilityNotFoundError as e:
            logger.error(str(e))
            return AgentResult.failure(f"{capability_name}: capability not found", error=e)

        self._update_state(active_capability_names=(capability_name,))
        try:
            return capability.execute(dict(params or {}), token or CancellationToken())
        finally:
            self._update_state(active_capability_names=())
