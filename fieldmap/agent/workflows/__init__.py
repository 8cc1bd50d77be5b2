"""
Workflow definitions and templates.
"""
