from .workflow_db import WorkflowDB

__all__ = ["WorkflowDB"]
