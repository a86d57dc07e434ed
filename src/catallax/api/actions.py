"""Task actions - the write side: announce, propose, update and conclude."""

from __future__ import annotations

import logging

from catallax.events.builders import (
    build_arbiter_announcement,
    build_goal,
    build_task_conclusion,
    build_task_proposal,
    build_task_update,
    generate_task_id,
)
from catallax.interfaces.publisher import EventPublisher
from catallax.models.events import NostrEvent
from catallax.models.records import (
    ArbiterAnnouncement,
    FeeType,
    FundingType,
    ResolutionType,
    TaskProposal,
    TaskStatus,
)

log = logging.getLogger(__name__)


class TaskActions:
    """Publishes protocol events through an ``EventPublisher``.

    Publishing failures propagate to the caller. Nothing is retried here.
    """

    def __init__(self, publisher: EventPublisher, relays: list[str]) -> None:
        self._publisher = publisher
        self._relays = list(relays)

    async def announce_arbiter(
        self,
        arbiter_pubkey: str,
        name: str,
        fee_type: FeeType,
        fee_amount: str,
        **details,
    ) -> NostrEvent:
        event = await self._publisher.publish(
            *build_arbiter_announcement(arbiter_pubkey, name, fee_type, fee_amount, **details)
        )
        log.info("Announced arbiter service %r (%s)", name, event.id[:12])
        return event

    async def propose_task(
        self,
        patron_pubkey: str,
        arbiter: ArbiterAnnouncement,
        title: str,
        description: str,
        requirements: str,
        amount: int,
        funding_type: FundingType = FundingType.SINGLE,
        **details,
    ) -> NostrEvent:
        """Publish a new task; crowdfunded tasks get their zap goal first."""
        task_id = details.pop("task_id", None) or generate_task_id(title)
        goal_id = None
        goal_relay = None

        if FundingType(funding_type) is FundingType.CROWDFUNDING:
            goal = await self._publisher.publish(*build_goal(
                title, amount, patron_pubkey, task_id, arbiter.arbiter_pubkey, self._relays,
            ))
            goal_id = goal.id
            goal_relay = self._relays[0] if self._relays else None
            log.info("Created zap goal %s for task %s", goal_id[:12], task_id)

        event = await self._publisher.publish(*build_task_proposal(
            patron_pubkey,
            arbiter.arbiter_pubkey,
            arbiter.d,
            title,
            description,
            requirements,
            amount,
            funding_type=funding_type,
            goal_id=goal_id,
            goal_relay=goal_relay,
            task_id=task_id,
            **details,
        ))
        log.info("Proposed task %s (%d sats, %s)", task_id, amount, FundingType(funding_type).value)
        return event

    async def update_status(
        self,
        task: TaskProposal,
        status: TaskStatus,
        zap_receipt_id: str | None = None,
        worker_pubkey: str | None = None,
    ) -> NostrEvent:
        event = await self._publisher.publish(
            *build_task_update(task, status, zap_receipt_id, worker_pubkey)
        )
        log.info("Task %s: %s -> %s", task.d, task.status.value, TaskStatus(status).value)
        return event

    async def assign_worker(self, task: TaskProposal, worker_pubkey: str) -> NostrEvent:
        return await self.update_status(task, TaskStatus.IN_PROGRESS, worker_pubkey=worker_pubkey)

    async def remove_worker(
        self, task: TaskProposal, status: TaskStatus = TaskStatus.FUNDED,
    ) -> NostrEvent:
        event = await self._publisher.publish(
            *build_task_update(task, status, keep_worker=False)
        )
        log.info("Task %s: worker removed, back to %s", task.d, TaskStatus(status).value)
        return event

    async def conclude_task(
        self,
        task: TaskProposal,
        resolution: ResolutionType,
        resolution_details: str,
        payout_zap_receipt_id: str | None = None,
    ) -> tuple[NostrEvent, NostrEvent]:
        """Publish the conclusion, then mark the task itself concluded."""
        conclusion = await self._publisher.publish(*build_task_conclusion(
            task, resolution, resolution_details, payout_zap_receipt_id,
        ))
        update = await self._publisher.publish(
            *build_task_update(task, TaskStatus.CONCLUDED)
        )
        log.info("Task %s concluded: %s", task.d, ResolutionType(resolution).value)
        return conclusion, update
