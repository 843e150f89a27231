"""Core components"""
from .types import *
from .errors import *
from .llm_client import LLMClient
from .agent_loop import AgentLoop, AgentConfig
