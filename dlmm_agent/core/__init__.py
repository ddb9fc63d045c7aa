from dlmm_agent.core.adapters.BaseAdapter import BaseAdapter
from dlmm_agent.core.errors import AgentError

__all__ = [
    "AgentError",
    "BaseAdapter",
]
