"""Core fan-out engine.

This module provides the main components of a run:
- ModelSelector: resolve which models to query
- QueryExecutor: query the selected models concurrently
- FanoutWorkflow: input, selection, queries and output in one call
"""

from llmfanout.core.types import (
    AppConfig,
    Group,
    GroupInfo,
    LLMResponse,
    ModelConfig,
    ModelQueryStatus,
    ModelSpec,
    PromptSource,
    QueryExecutionResult,
    QueryOptions,
    QueryStatus,
    SelectionCriteria,
    SelectionResult,
    SystemPrompt,
)
from llmfanout.core.catalog import find_group_for
from llmfanout.core.config import (
    DEFAULT_QUERY_TIMEOUT_MS,
    FanoutConfig,
    get_config,
    load_app_config,
    set_config,
)
from llmfanout.core.credentials import EnvCredentialStore, StaticCredentialStore
from llmfanout.core.selector import ModelSelector, select_models
from llmfanout.core.executor import QueryExecutor, execute_queries
from llmfanout.core.workflow import (
    FanoutWorkflow,
    RunOptions,
    RunResult,
    handle_workflow_error,
    run_fanout,
)

__all__ = [
    # Types
    "AppConfig",
    "Group",
    "GroupInfo",
    "LLMResponse",
    "ModelConfig",
    "ModelQueryStatus",
    "ModelSpec",
    "PromptSource",
    "QueryExecutionResult",
    "QueryOptions",
    "QueryStatus",
    "SelectionCriteria",
    "SelectionResult",
    "SystemPrompt",
    # Config
    "DEFAULT_QUERY_TIMEOUT_MS",
    "FanoutConfig",
    "get_config",
    "set_config",
    "load_app_config",
    # Collaborators
    "find_group_for",
    "EnvCredentialStore",
    "StaticCredentialStore",
    # Engine
    "ModelSelector",
    "select_models",
    "QueryExecutor",
    "execute_queries",
    # Workflow
    "FanoutWorkflow",
    "RunOptions",
    "RunResult",
    "handle_workflow_error",
    "run_fanout",
]
