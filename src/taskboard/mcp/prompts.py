"""MCP prompt templates for common workflows."""

from taskboard.mcp.server import mcp


@mcp.prompt()
def status_report(user_id: int | None = None) -> str:
    """Generate a prompt for a board status report."""
    scope = f"the tasks visible to user {user_id}" if user_id is not None else "all tasks"
    return (
        f"Please generate a status report covering {scope}.\n\n"
        f"Use the board_summary, list_tasks and list_teams tools, then provide:\n"
        f"1. Overall progress summary\n"
        f"2. Tasks flagged as at risk and who holds them\n"
        f"3. Team members with the highest workload\n"
        f"4. Deadlines due in the next two days"
    )


@mcp.prompt()
def triage_backlog(goal: str) -> str:
    """Generate a prompt to turn a goal into routed tasks."""
    return (
        f"I need to accomplish the following goal:\n\n"
        f"{goal}\n\n"
        f"Break it into concrete tasks, each with a clear title, a description that mentions "
        f"the skills involved, and a realistic deadline (YYYY-MM-DD). Check list_teams first "
        f"so descriptions use the teams' skill vocabulary, then create each task with create_task. "
        f"Finish by calling run_health_check and summarizing any reassignments."
    )
