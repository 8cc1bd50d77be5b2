"""
Unit tests for the workflow orchestration engine.
"""

import threading
import time

import pytest

from fieldmap.agent.core.engine import OrchestrationEngine, merge_step_data
from fieldmap.agent.core.state import OrchestratorStatus
from fieldmap.agent.tools.base import AgentResult, Capability
from fieldmap.agent.tools.registry import CapabilityRegistry
from fieldmap.agent.workflows.base import Workflow, WorkflowTask


class Recorder(Capability):
    """Records the params it receives and returns configured data."""

    def __init__(self, name, data=None, success=True, delay=0.0):
        self.name = name
        self._data = data or {}
        self._success = success
        self._delay = delay
        self.calls = []
        super().__init__()

    def handle(self, params, token):
        self.calls.append(params.model_dump() if hasattr(params, 'model_dump') else params)
        if self._delay:
            token_deadline = time.monotonic() + self._delay
            while time.monotonic() < token_deadline and not token.cancelled:
                time.sleep(0.01)
        return AgentResult(self._success, f"{self.name} {'ok' if self._success else 'failed'}", dict(self._data))

    def execute(self, params=None, token=None):
        self.received = dict(params or {})
        return super().execute(params, token)


def _registry(*capabilities):
    registry = CapabilityRegistry()
    for capability in capabilities:
        registry.register(capability)
    return registry


class TestMergeStepData:
    """Tests for merge_step_data."""

    def test_later_task_wins(self):
        merged = merge_step_data([
            AgentResult(True, 'a', {'x': 1, 'shared': 'first'}),
            AgentResult(True, 'b', {'y': 2, 'shared': 'second'}),
        ])

        assert merged == {'x': 1, 'y': 2, 'shared': 'second'}


class TestStartWorkflow:
    """Tests for OrchestrationEngine.start_workflow."""

    def test_initial_state(self):
        engine = OrchestrationEngine(CapabilityRegistry())

        assert engine.state.status is OrchestratorStatus.IDLE
        assert engine.state.per_step_results == ()

    def test_success_threads_data_between_steps(self):
        a = Recorder('A', {'from_a': 1})
        b = Recorder('B', {'from_b': 2})
        c = Recorder('C')
        engine = OrchestrationEngine(_registry(a, b, c))

        state = engine.start_workflow([['A', 'B'], [('C', {'own': 3})]])

        assert state.status is OrchestratorStatus.SUCCESS
        assert len(state.per_step_results) == 2
        assert [len(step) for step in state.per_step_results] == [2, 1]
        assert state.current_step_index == 2
        assert c.received == {'from_a': 1, 'from_b': 2, 'own': 3}

    def test_task_params_override_inherited_data(self):
        a = Recorder('A', {'radius_m': 100})
        b = Recorder('B')
        engine = OrchestrationEngine(_registry(a, b))

        engine.start_workflow([['A'], [('B', {'radius_m': 50})]])

        assert b.received['radius_m'] == 50

    def test_merge_order_within_step(self):
        a = Recorder('A', {'key': 'a'})
        b = Recorder('B', {'key': 'b'})
        c = Recorder('C')
        engine = OrchestrationEngine(_registry(a, b, c))

        engine.start_workflow([['A', 'B'], ['C']])

        assert c.received['key'] == 'b'

    def test_failure_stops_workflow_after_joining_siblings(self):
        a = Recorder('A', success=False)
        b = Recorder('B', delay=0.05)
        c = Recorder('C')
        engine = OrchestrationEngine(_registry(a, b, c))

        state = engine.start_workflow([['A', 'B'], ['C']])

        assert state.status is OrchestratorStatus.FAILED
        assert len(b.calls) == 1
        assert c.calls == []
        assert state.current_step_index == 0
        assert len(state.per_step_results) == 2
        assert [r.summary for r in state.per_step_results[0]] == ['A failed', 'B ok']
        synthetic = state.per_step_results[-1]
        assert len(synthetic) == 1
        assert not synthetic[0].success
        assert 'Step 0 failed' in synthetic[0].summary

    def test_unknown_capability_fails_its_task_only(self):
        a = Recorder('A')
        engine = OrchestrationEngine(_registry(a))

        state = engine.start_workflow([['A', 'Ghost']])

        assert state.status is OrchestratorStatus.FAILED
        assert len(a.calls) == 1
        results = state.per_step_results[0]
        assert results[0].success
        assert results[1].summary == 'Ghost: capability not found'
        assert results[1].data['error_type'] == 'CapabilityNotFoundError'

    def test_empty_workflow_succeeds(self):
        engine = OrchestrationEngine(CapabilityRegistry())

        state = engine.start_workflow([])

        assert state.status is OrchestratorStatus.SUCCESS
        assert state.per_step_results == ()

    def test_malformed_task_rejected_before_running(self):
        engine = OrchestrationEngine(CapabilityRegistry())

        with pytest.raises(ValueError):
            engine.start_workflow([[{'params': {}}]])

        assert engine.state.status is OrchestratorStatus.IDLE

    def test_restart_after_terminal_state(self):
        a = Recorder('A')
        engine = OrchestrationEngine(_registry(a))

        engine.start_workflow([['A']])
        state = engine.start_workflow([['A'], ['A']])

        assert state.status is OrchestratorStatus.SUCCESS
        assert len(state.per_step_results) == 2

    def test_start_while_running_rejected(self):
        started = threading.Event()
        release = threading.Event()

        class Blocking(Capability):
            name = 'Blocking'

            def handle(self, params, token):
                started.set()
                release.wait(5)
                return AgentResult(True, 'done')

        engine = OrchestrationEngine(_registry(Blocking()))
        runner = threading.Thread(target=engine.start_workflow, args=([['Blocking']],))
        runner.start()
        try:
            assert started.wait(5)
            rejected = engine.start_workflow([['Blocking']])
            assert rejected.status is OrchestratorStatus.RUNNING
            assert rejected.active_capability_names == ('Blocking',)
        finally:
            release.set()
            runner.join(5)

        assert engine.state.status is OrchestratorStatus.SUCCESS

    def test_accepts_workflow_objects(self):
        a = Recorder('A')
        engine = OrchestrationEngine(_registry(a))
        workflow = Workflow(steps=((WorkflowTask('A', {'x': 1}),),), name='single')

        state = engine.start_workflow(workflow)

        assert state.workflow is workflow
        assert a.received == {'x': 1}


class TestObservability:
    """Tests for state subscriptions."""

    def test_subscriber_sees_running_then_terminal(self):
        engine = OrchestrationEngine(_registry(Recorder('A')))
        snapshots = []
        engine.subscribe(snapshots.append)

        engine.start_workflow([['A']])

        statuses = [s.status for s in snapshots]
        assert statuses[0] is OrchestratorStatus.RUNNING
        assert statuses[-1] is OrchestratorStatus.SUCCESS
        assert any(s.active_capability_names == ('A',) for s in snapshots)
        assert snapshots[-1].active_capability_names == ()

    def test_unsubscribe(self):
        engine = OrchestrationEngine(_registry(Recorder('A')))
        snapshots = []
        unsubscribe = engine.subscribe(snapshots.append)
        unsubscribe()

        engine.start_workflow([['A']])

        assert snapshots == []

    def test_failing_listener_does_not_break_engine(self):
        engine = OrchestrationEngine(_registry(Recorder('A')))

        def bad_listener(state):
            raise RuntimeError("listener bug")

        engine.subscribe(bad_listener)

        assert engine.start_workflow([['A']]).status is OrchestratorStatus.SUCCESS


class TestTimeoutAndCancellation:
    """Tests for per-task deadlines and cooperative cancellation."""

    def test_task_timeout(self):
        slow = Recorder('Slow', delay=2.0)
        engine = OrchestrationEngine(
            _registry(slow), {'orchestration': {'task_timeout_sec': 0.1}},
        )

        start = time.monotonic()
        state = engine.start_workflow([['Slow']])

        assert time.monotonic() - start < 1.5
        assert state.status is OrchestratorStatus.FAILED
        result = state.per_step_results[0][0]
        assert result.summary == 'Slow: timed out after 0.1s'
        assert result.data['error_type'] == 'TimeoutError'

    def test_cancel_stops_before_next_step(self):
        engine = None

        class CancelDuring(Capability):
            name = 'CancelDuring'

            def handle(self, params, token):
                engine.cancel()
                return AgentResult(True, 'ok')

        after = Recorder('After')
        engine = OrchestrationEngine(_registry(CancelDuring(), after))

        state = engine.start_workflow([['CancelDuring'], ['After']])

        assert state.status is OrchestratorStatus.FAILED
        assert after.calls == []
        assert 'cancelled' in state.per_step_results[-1][0].summary

    def test_cancel_without_running_workflow_is_noop(self):
        engine = OrchestrationEngine(CapabilityRegistry())

        engine.cancel()

        assert engine.state.status is OrchestratorStatus.IDLE


class TestRunSingleAgent:
    """Tests for OrchestrationEngine.run_single_agent."""

    def test_runs_outside_state_machine(self):
        a = Recorder('A', {'value': 1})
        engine = OrchestrationEngine(_registry(a))
        snapshots = []
        engine.subscribe(snapshots.append)

        result = engine.run_single_agent('A', {'x': 2})

        assert result.success
        assert result.data == {'value': 1}
        assert engine.state.status is OrchestratorStatus.IDLE
        assert snapshots[0].active_capability_names == ('A',)
        assert engine.state.active_capability_names == ()

    def test_unknown_capability(self):
        engine = OrchestrationEngine(CapabilityRegistry())

        result = engine.run_single_agent('Ghost')

        assert not result.success
        assert result.summary == 'Ghost: capability not found'

    def test_active_names_cleared_on_failure(self):
        engine = OrchestrationEngine(_registry(Recorder('A', success=False)))

        result = engine.run_single_agent('A')

        assert not result.success
        assert engine.state.active_capability_names == ()
