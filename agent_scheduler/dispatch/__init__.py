# Batch Dispatch
# Contiguous batching, paced delivery and update message construction

from agent_scheduler.dispatch.payload import (
    UPDATE_TYPE,
    ProcessorInfo,
    UpdatePayload,
    build_update_payload,
    build_update_tags,
    generate_contextual_prompts,
)
from agent_scheduler.dispatch.dispatcher import (
    DEFAULT_BATCH_DELAY_SECONDS,
    BatchDispatcher,
    BatchResult,
    DispatchSummary,
    create_batches,
)

__all__ = [
    "UPDATE_TYPE",
    "ProcessorInfo",
    "UpdatePayload",
    "build_update_payload",
    "build_update_tags",
    "generate_contextual_prompts",
    "DEFAULT_BATCH_DELAY_SECONDS",
    "BatchDispatcher",
    "BatchResult",
    "DispatchSummary",
    "create_batches",
]
