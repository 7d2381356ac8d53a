from .base_agent import AgentContext, AgentExecutionError, AgentTool, AgentTrace, BaseAgent
from .multi_step_agent import MultiStepQueryAgent
from .orchestrator import AgentOrchestrator
from .simple_agent import SimpleQueryAgent
from .tools import build_tool_table

__all__ = [
    "AgentContext",
    "AgentExecutionError",
    "AgentOrchestrator",
    "AgentTool",
    "AgentTrace",
    "BaseAgent",
    "MultiStepQueryAgent",
    "SimpleQueryAgent",
    "build_tool_table",
]
