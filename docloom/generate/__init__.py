from .analysis import AnalysisLoop, convert_agent_tools
from .orchestrator import Orchestrator

__all__ = ["AnalysisLoop", "Orchestrator", "convert_agent_tools"]
