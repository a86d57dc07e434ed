"""Protocol event parsing and construction."""

from catallax.events.parsers import (
    parse_all,
    parse_arbiter_announcement,
    parse_funding_goal,
    parse_task_conclusion,
    parse_task_proposal,
)
from catallax.events.builders import (
    build_arbiter_announcement,
    build_goal,
    build_task_conclusion,
    build_task_proposal,
    build_task_update,
    generate_service_id,
    generate_task_id,
    task_address,
)

__all__ = [
    "parse_all",
    "parse_arbiter_announcement",
    "parse_funding_goal",
    "parse_task_conclusion",
    "parse_task_proposal",
    "build_arbiter_announcement",
    "build_goal",
    "build_task_conclusion",
    "build_task_proposal",
    "build_task_update",
    "generate_service_id",
    "generate_task_id",
    "task_address",
]
