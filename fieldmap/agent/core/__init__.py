"""
Orchestration core: engine, state snapshots and cancellation tokens.
"""
