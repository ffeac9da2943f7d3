"""
llmfanout - one prompt, many models

Sends a single prompt (plus optional context documents) to several LLM
providers concurrently and collects one structured result per model.

Basic Usage:
    from llmfanout import FanoutWorkflow, RunOptions

    workflow = FanoutWorkflow()
    result = await workflow.run(RunOptions(prompt="Explain CRDTs", group_name="chat"))
    print(result.summary)
"""

from llmfanout.core import (
    AppConfig,
    FanoutConfig,
    FanoutWorkflow,
    LLMResponse,
    ModelConfig,
    QueryExecutionResult,
    QueryExecutor,
    QueryOptions,
    RunOptions,
    SelectionCriteria,
    execute_queries,
    select_models,
)
from llmfanout.utils.errors import ErrorCategory, FanoutError

__version__ = "0.1.0"
__author__ = "SAI"
__all__ = [
    # Workflow
    "FanoutWorkflow",
    "RunOptions",
    # Engine
    "QueryExecutor",
    "execute_queries",
    "select_models",
    # Types
    "AppConfig",
    "ModelConfig",
    "SelectionCriteria",
    "QueryOptions",
    "LLMResponse",
    "QueryExecutionResult",
    # Config
    "FanoutConfig",
    # Errors
    "ErrorCategory",
    "FanoutError",
    # Version
    "__version__",
]
