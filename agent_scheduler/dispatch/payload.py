"""
Update Payload

The context-refresh message sent to each agent: the registry context,
the agent's own metadata/health/priority, and a few contextual prompts.

Prompts are fixed templates selected by threshold checks, not generated
text.
"""

from typing import Any

from pydantic import BaseModel, Field

from agent_scheduler.clock import ms_to_iso
from agent_scheduler.health.models import HealthSnapshot
from agent_scheduler.priority.models import AgentMetadata, AgentRecord, SortingCriteria
from agent_scheduler.priority.strategies import is_under_reflective
from agent_scheduler.registry.context import RecentActivity, RegistryContext

UPDATE_TYPE = "oracle-update"

PROMPT_REGISTRY_ACTIVE = (
    "The registry shows high activity. Consider how current governance "
    "discussions might influence your thoughts and actions."
)
PROMPT_STALE = (
    "You have been silent for a while since your last update. Reflect on any "
    "changes in your perspective or new insights gained."
)
PROMPT_UNDER_REFLECTIVE = (
    "Your memory-to-journal ratio suggests you might benefit from more "
    "reflective journaling about your experiences."
)
PROMPT_RECENT_PROPOSAL = (
    'A recent {category} proposal "{title}" is {status}. How might this '
    "affect the broader community context?"
)


class ProcessorInfo(BaseModel):
    """What the scheduler knows about the receiving agent."""
    last_update: str | None = Field(default=None, description="ISO time of the scheduler's last cycle")
    sorting_criteria: SortingCriteria
    agent_metadata: AgentMetadata
    agent_health: HealthSnapshot
    priority: int


class UpdatePayload(BaseModel):
    """Body of an update message."""
    type: str = UPDATE_TYPE
    timestamp: str
    oracle_status: RegistryContext | None = None
    processor_info: ProcessorInfo
    contextual_prompts: list[str] = Field(default_factory=list)

    def to_message(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def generate_contextual_prompts(
    agent: AgentRecord,
    context: RegistryContext | None,
) -> list[str]:
    """Select the prompt templates that apply to this agent."""
    prompts = []

    if context is not None and context.recent_activity == RecentActivity.ACTIVE:
        prompts.append(PROMPT_REGISTRY_ACTIVE)

    if agent.health.is_stale:
        prompts.append(PROMPT_STALE)

    if is_under_reflective(agent.metadata):
        prompts.append(PROMPT_UNDER_REFLECTIVE)

    if context is not None and context.recent_proposals:
        newest = context.recent_proposals[0]
        prompts.append(PROMPT_RECENT_PROPOSAL.format(
            category=newest.category,
            title=newest.title,
            status=newest.status,
        ))

    return prompts


def build_update_payload(
    agent: AgentRecord,
    context: RegistryContext | None,
    sorting_criteria: SortingCriteria,
    last_update: int | None,
    now: int,
) -> UpdatePayload:
    return UpdatePayload(
        timestamp=ms_to_iso(now),
        oracle_status=context,
        processor_info=ProcessorInfo(
            last_update=ms_to_iso(last_update) if last_update else None,
            sorting_criteria=sorting_criteria,
            agent_metadata=agent.metadata,
            agent_health=agent.health,
            priority=agent.priority,
        ),
        contextual_prompts=generate_contextual_prompts(agent, context),
    )


def build_update_tags(oracle_process_id: str, agent: AgentRecord) -> dict[str, str]:
    """Action tags attached to every update message."""
    return {
        "Action": "Oracle-Update",
        "Update-Type": "Context-Refresh",
        "Oracle-Process": oracle_process_id,
        "Priority-Level": str(agent.priority),
        "Health-Status": agent.health.status.value,
    }
