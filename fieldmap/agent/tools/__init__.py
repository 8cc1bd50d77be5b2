"""
Capability system for workflow orchestration.

Wrappers around fieldmap stages that provide:
- Standardized execution interface
- Typed parameter validation
- Error handling and logging
"""
