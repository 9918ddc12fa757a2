"""
Utility modules for the orchestrator
"""
from .config_loader import OrchestratorConfig, load_orchestrator_config, require_env

__all__ = [
    'OrchestratorConfig',
    'load_orchestrator_config',
    'require_env',
]
