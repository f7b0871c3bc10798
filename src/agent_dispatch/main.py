"""CLI entrypoint for agent-dispatch."""

import logging
from collections.abc import Callable
from pathlib import Path

import rich_click as click

from agent_dispatch import __version__
from agent_dispatch.config import Settings
from agent_dispatch.distribution.controllers import (
    AgentAddCommand,
    AgentUpdateCommand,
    DispatchCliController,
    DistributeCommand,
    EntityCommand,
    ListCommand,
    PageCommand,
    SubAgentAddCommand,
    SubAgentListCommand,
    SubAgentUpdateCommand,
    TaskListCommand,
    TaskPriorityCommand,
    TaskStatusCommand,
)
from agent_dispatch.distribution.models import AssignmentStatus, TaskPriority
from agent_dispatch.distribution.repository import TASK_SORT_COLUMNS

click.rich_click.USE_MARKDOWN = True
DISPATCH_CONTROLLER = DispatchCliController()

_DB_PATH_OPTION = click.option(
    "--db-path",
    type=click.Path(path_type=Path),
    default=None,
    help="SQLite DB path.",
)
_ITEM_OPTION = click.option(
    "--item",
    "items",
    multiple=True,
    required=True,
    help="Work item as '<title>' or '<title>|<description>'. Can be repeated.",
)
_FILENAME_OPTION = click.option(
    "--filename",
    default="inline",
    show_default=True,
    help="Name recorded on the upload batch.",
)


@click.group()
@click.version_option(version=__version__, prog_name="agent-dispatch")
def agent_dispatch() -> None:
    """Agent and sub-agent task distribution CLI."""

    try:
        settings = Settings.from_env()
        settings.validate()
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    logging.basicConfig(
        level=settings.logging_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@agent_dispatch.group()
def agents() -> None:
    """Top-level agent directory."""


@agents.command("add")
@_DB_PATH_OPTION
@click.option("--name", required=True, help="Agent display name.")
@click.option("--email", required=True, help="Agent email (unique, case-insensitive).")
@click.option("--mobile", default="", help="Agent mobile number.")
def agents_add(db_path: Path | None, name: str, email: str, mobile: str) -> None:
    """Register a top-level agent."""

    _run(
        lambda: DISPATCH_CONTROLLER.add_agent(
            AgentAddCommand(db_path=db_path, name=name, email=email, mobile=mobile),
        ),
    )


@agents.command("list")
@_DB_PATH_OPTION
def agents_list(db_path: Path | None) -> None:
    """List agents in registration order."""

    _run(lambda: DISPATCH_CONTROLLER.list_agents(ListCommand(db_path=db_path)))


@agents.command("update")
@_DB_PATH_OPTION
@click.argument("agent_id")
@click.option("--name", default=None)
@click.option("--email", default=None)
@click.option("--mobile", default=None)
def agents_update(
    db_path: Path | None,
    agent_id: str,
    name: str | None,
    email: str | None,
    mobile: str | None,
) -> None:
    """Update agent fields; omitted options stay unchanged."""

    _run(
        lambda: DISPATCH_CONTROLLER.update_agent(
            AgentUpdateCommand(
                db_path=db_path,
                agent_id=agent_id,
                name=name,
                email=email,
                mobile=mobile,
            ),
        ),
    )


@agents.command("remove")
@_DB_PATH_OPTION
@click.argument("agent_id")
def agents_remove(db_path: Path | None, agent_id: str) -> None:
    """Remove an agent."""

    _run(
        lambda: DISPATCH_CONTROLLER.remove_agent(
            EntityCommand(db_path=db_path, entity_id=agent_id),
        ),
    )


@agent_dispatch.group()
def subagents() -> None:
    """Sub-agent pools owned by agents."""


@subagents.command("add")
@_DB_PATH_OPTION
@click.option("--owner", "owner_agent_id", required=True, help="Owner agent id.")
@click.option("--name", required=True, help="Sub-agent display name.")
@click.option("--email", required=True, help="Sub-agent email.")
@click.option("--mobile", default=None, help="Sub-agent mobile number.")
@click.option(
    "--capacity",
    type=click.IntRange(min=0),
    default=None,
    help="Max tasks per upload batch; 0 or omitted means unlimited.",
)
@click.option("--active/--inactive", default=True, show_default=True)
def subagents_add(  # noqa: PLR0913
    db_path: Path | None,
    owner_agent_id: str,
    name: str,
    email: str,
    mobile: str | None,
    capacity: int | None,
    active: bool,
) -> None:
    """Register a sub-agent under an owner agent."""

    _run(
        lambda: DISPATCH_CONTROLLER.add_sub_agent(
            SubAgentAddCommand(
                db_path=db_path,
                owner_agent_id=owner_agent_id,
                name=name,
                email=email,
                mobile=mobile,
                capacity=capacity,
                active=active,
            ),
        ),
    )


@subagents.command("list")
@_DB_PATH_OPTION
@click.option("--owner", "owner_agent_id", required=True, help="Owner agent id.")
@click.option("--search", default=None, help="Case-insensitive name/email/mobile filter.")
@click.option("--page", type=click.IntRange(min=1), default=1, show_default=True)
@click.option("--limit", type=click.IntRange(min=1, max=200), default=10, show_default=True)
def subagents_list(
    db_path: Path | None,
    owner_agent_id: str,
    search: str | None,
    page: int,
    limit: int,
) -> None:
    """List an owner's sub-agents, newest first."""

    _run(
        lambda: DISPATCH_CONTROLLER.list_sub_agents(
            SubAgentListCommand(
                db_path=db_path,
                owner_agent_id=owner_agent_id,
                page=page,
                limit=limit,
                search=search,
            ),
        ),
    )


@subagents.command("update")
@_DB_PATH_OPTION
@click.argument("sub_agent_id")
@click.option("--name", default=None)
@click.option("--email", default=None)
@click.option("--mobile", default=None)
@click.option("--active/--inactive", default=None)
@click.option("--capacity", type=click.IntRange(min=0), default=None)
@click.option("--clear-capacity", is_flag=True, help="Make the sub-agent unlimited.")
def subagents_update(  # noqa: PLR0913
    db_path: Path | None,
    sub_agent_id: str,
    name: str | None,
    email: str | None,
    mobile: str | None,
    active: bool | None,
    capacity: int | None,
    clear_capacity: bool,
) -> None:
    """Update sub-agent fields; omitted options stay unchanged."""

    _run(
        lambda: DISPATCH_CONTROLLER.update_sub_agent(
            SubAgentUpdateCommand(
                db_path=db_path,
                sub_agent_id=sub_agent_id,
                name=name,
                email=email,
                mobile=mobile,
                active=active,
                capacity=capacity,
                clear_capacity=clear_capacity,
            ),
        ),
    )


@subagents.command("remove")
@_DB_PATH_OPTION
@click.argument("sub_agent_id")
def subagents_remove(db_path: Path | None, sub_agent_id: str) -> None:
    """Remove a sub-agent."""

    _run(
        lambda: DISPATCH_CONTROLLER.remove_sub_agent(
            EntityCommand(db_path=db_path, entity_id=sub_agent_id),
        ),
    )


@agent_dispatch.group()
def distribute() -> None:
    """Distribute an upload batch of work items."""


@distribute.command("agents")
@_DB_PATH_OPTION
@_ITEM_OPTION
@_FILENAME_OPTION
def distribute_agents(db_path: Path | None, items: tuple[str, ...], filename: str) -> None:
    """Split items evenly across the first registered agents."""

    _run(
        lambda: DISPATCH_CONTROLLER.distribute(
            DistributeCommand(db_path=db_path, items=items, filename=filename),
        ),
    )


@distribute.command("subagents")
@_DB_PATH_OPTION
@_ITEM_OPTION
@_FILENAME_OPTION
@click.option(
    "--owner",
    "owner_agent_id",
    default=None,
    help="Owner agent id; defaults to AGENT_DISPATCH_DEFAULT_OWNER.",
)
def distribute_subagents(
    db_path: Path | None,
    items: tuple[str, ...],
    filename: str,
    owner_agent_id: str | None,
) -> None:
    """Rotate items across an owner's active sub-agents within capacity."""

    _run(
        lambda: DISPATCH_CONTROLLER.distribute(
            DistributeCommand(
                db_path=db_path,
                items=items,
                filename=filename,
                to_sub_agents=True,
                owner_agent_id=owner_agent_id,
            ),
        ),
    )


@agent_dispatch.group()
def tasks() -> None:
    """Task assignment inspection."""


@tasks.command("list")
@_DB_PATH_OPTION
@click.option("--upload-id", default=None)
@click.option("--agent-id", default=None, help="Filter by top-level assignee.")
@click.option("--owner", "owner_agent_id", default=None, help="Filter by sub-agent owner.")
@click.option("--sub-agent-id", default=None)
@click.option(
    "--status",
    type=click.Choice([status.value for status in AssignmentStatus]),
    default=None,
)
@click.option(
    "--priority",
    type=click.Choice([priority.value for priority in TaskPriority]),
    default=None,
)
@click.option("--search", default=None, help="Case-insensitive title/description filter.")
@click.option("--page", type=click.IntRange(min=1), default=1, show_default=True)
@click.option("--limit", type=click.IntRange(min=1, max=200), default=10, show_default=True)
@click.option(
    "--sort-by",
    type=click.Choice(TASK_SORT_COLUMNS),
    default="created_at",
    show_default=True,
)
@click.option(
    "--sort-order",
    type=click.Choice(["asc", "desc"]),
    default="desc",
    show_default=True,
)
def tasks_list(  # noqa: PLR0913
    db_path: Path | None,
    upload_id: str | None,
    agent_id: str | None,
    owner_agent_id: str | None,
    sub_agent_id: str | None,
    status: str | None,
    priority: str | None,
    search: str | None,
    page: int,
    limit: int,
    sort_by: str,
    sort_order: str,
) -> None:
    """List task assignments."""

    _run(
        lambda: DISPATCH_CONTROLLER.list_tasks(
            TaskListCommand(
                db_path=db_path,
                upload_id=upload_id,
                agent_id=agent_id,
                owner_agent_id=owner_agent_id,
                sub_agent_id=sub_agent_id,
                status=status,
                priority=priority,
                search=search,
                page=page,
                limit=limit,
                sort_by=sort_by,
                sort_order=sort_order,
            ),
        ),
    )


@tasks.command("set-status")
@_DB_PATH_OPTION
@click.argument("task_id")
@click.argument("status", type=click.Choice([status.value for status in AssignmentStatus]))
def tasks_set_status(db_path: Path | None, task_id: str, status: str) -> None:
    """Move a task to another lifecycle state."""

    _run(
        lambda: DISPATCH_CONTROLLER.set_task_status(
            TaskStatusCommand(db_path=db_path, task_id=task_id, status=status),
        ),
    )


@tasks.command("set-priority")
@_DB_PATH_OPTION
@click.argument("task_id")
@click.argument("priority", type=click.Choice([priority.value for priority in TaskPriority]))
def tasks_set_priority(db_path: Path | None, task_id: str, priority: str) -> None:
    """Change the priority of a task."""

    _run(
        lambda: DISPATCH_CONTROLLER.set_task_priority(
            TaskPriorityCommand(db_path=db_path, task_id=task_id, priority=priority),
        ),
    )


@tasks.command("remove")
@_DB_PATH_OPTION
@click.argument("task_id")
def tasks_remove(db_path: Path | None, task_id: str) -> None:
    """Delete a single task."""

    _run(
        lambda: DISPATCH_CONTROLLER.remove_task(
            EntityCommand(db_path=db_path, entity_id=task_id),
        ),
    )


@agent_dispatch.group()
def uploads() -> None:
    """Upload batch history."""


@uploads.command("list")
@_DB_PATH_OPTION
@click.option("--page", type=click.IntRange(min=1), default=1, show_default=True)
@click.option("--limit", type=click.IntRange(min=1, max=200), default=10, show_default=True)
def uploads_list(db_path: Path | None, page: int, limit: int) -> None:
    """List upload batches, newest first."""

    _run(
        lambda: DISPATCH_CONTROLLER.list_uploads(
            PageCommand(db_path=db_path, page=page, limit=limit),
        ),
    )


@uploads.command("remove")
@_DB_PATH_OPTION
@click.argument("upload_id")
def uploads_remove(db_path: Path | None, upload_id: str) -> None:
    """Delete an upload batch together with its tasks."""

    _run(
        lambda: DISPATCH_CONTROLLER.remove_upload(
            EntityCommand(db_path=db_path, entity_id=upload_id),
        ),
    )


@agent_dispatch.command("stats")
@_DB_PATH_OPTION
def stats(db_path: Path | None) -> None:
    """Show agent, upload and task totals."""

    _run(lambda: DISPATCH_CONTROLLER.show_stats(ListCommand(db_path=db_path)))


@agent_dispatch.group()
def cursor() -> None:
    """Rotation cursor inspection."""


@cursor.command("show")
@_DB_PATH_OPTION
@click.option("--owner", "owner_agent_id", required=True, help="Owner agent id.")
def cursor_show(db_path: Path | None, owner_agent_id: str) -> None:
    """Show the persisted rotation cursor of an owner."""

    _run(
        lambda: DISPATCH_CONTROLLER.show_cursor(
            EntityCommand(db_path=db_path, entity_id=owner_agent_id),
        ),
    )


def _run(action: Callable[[], list[str]]) -> None:
    try:
        lines = action()
    except (ValueError, RuntimeError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    agent_dispatch()
