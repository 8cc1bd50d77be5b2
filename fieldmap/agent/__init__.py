"""
Capability orchestration: registry, workflow engine and workflow templates.
"""
