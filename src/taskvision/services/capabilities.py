"""Collapse role, assignment and team facts into a single capability."""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass, field
from enum import Enum

from sqlmodel.ext.asyncio.session import AsyncSession

from ..models import AssignmentType, Task, User, UserRole
from ..repositories import TaskRepository, TeamRepository


class Capability(str, Enum):
    """What an actor may do with a particular task."""

    ADMIN = "admin"
    ASSIGNEE = "assignee"
    TEAM_LEADER = "team_leader"
    TEAM_MEMBER = "team_member"
    NONE = "none"

    @property
    def can_control_status(self) -> bool:
        return self in {Capability.ADMIN, Capability.ASSIGNEE, Capability.TEAM_LEADER}

    @property
    def can_view(self) -> bool:
        return self is not Capability.NONE


@dataclass(slots=True, frozen=True)
class AssignmentFacts:
    assignment_type: AssignmentType
    assignee_ids: frozenset[int] = field(default_factory=frozenset)
    team_leader_id: int | None = None
    team_member_ids: frozenset[int] = field(default_factory=frozenset)


def resolve_capability(actor_id: int, actor_role: UserRole, facts: AssignmentFacts) -> Capability:
    if actor_role == UserRole.ADMIN:
        return Capability.ADMIN
    if facts.assignment_type == AssignmentType.INDIVIDUAL:
        return Capability.ASSIGNEE if actor_id in facts.assignee_ids else Capability.NONE
    if facts.team_leader_id is not None and actor_id == facts.team_leader_id:
        return Capability.TEAM_LEADER
    if actor_id in facts.team_member_ids:
        return Capability.TEAM_MEMBER
    return Capability.NONE


class CapabilityResolver:
    """Load assignment facts for a task and resolve an actor's capability."""

    def __init__(self, session: AsyncSession) -> None:
        self._tasks = TaskRepository(session)
        self._teams = TeamRepository(session)

    async def facts_for(self, task: Task) -> AssignmentFacts:
        if task.assignment_type == AssignmentType.TEAM and task.assigned_team_id is not None:
            team = await self._teams.get(task.assigned_team_id)
            members = await self._teams.member_ids(task.assigned_team_id)
            return AssignmentFacts(
                assignment_type=AssignmentType.TEAM,
                team_leader_id=team.leader_id if team is not None else None,
                team_member_ids=frozenset(members),
            )
        assignees: Collection[int] = await self._tasks.assignee_ids(task.id)
        return AssignmentFacts(
            assignment_type=task.assignment_type,
            assignee_ids=frozenset(assignees),
        )

    async def resolve(self, task: Task, actor: User) -> Capability:
        if actor.role == UserRole.ADMIN:
            return Capability.ADMIN
        facts = await self.facts_for(task)
        return resolve_capability(actor.id, actor.role, facts)


__all__ = ["AssignmentFacts", "Capability", "CapabilityResolver", "resolve_capability"]
