from .run_service import RunService

__all__ = ['RunService']
