"""CLI entry point for hackmate."""

import asyncio
import json
import logging
import sys

import click

from hackmate.ai import models as models_mod
from hackmate.ai.gateway import AIGateway
from hackmate.config import get_config
from hackmate.core.orchestrator import TaskOrchestrator

STATUS_ICONS = {
    "queued": "○",
    "in_progress": "●",
    "done": "✓",
    "failed": "✗",
}


@click.group()
def main():
    """hackmate - multi-agent problem solver"""
    config = get_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ── Task Commands ─────────────────────────────────────────────────────────────


@main.command("solve")
@click.argument("problem")
@click.option("--json-output", "--json", is_flag=True, help="Output as JSON")
def solve(problem, json_output):
    """Plan a problem into tasks and run them to completion."""
    if not problem.strip():
        click.echo("Problem statement must not be empty", err=True)
        sys.exit(1)

    tasks = asyncio.run(_solve(problem))

    if json_output:
        click.echo(json.dumps([t.to_dict() for t in tasks], indent=2))
        return

    for task in tasks:
        icon = STATUS_ICONS.get(task.status.value, "?")
        click.echo(f"  {icon} [{task.agent}] {task.title} ({task.status.value})")
        for line in task.logs:
            click.echo(f"      {line}")

    failed = [t for t in tasks if t.status.value == "failed"]
    click.echo(f"{len(tasks) - len(failed)}/{len(tasks)} tasks done")
    if failed:
        sys.exit(1)


async def _solve(problem: str):
    orchestrator = TaskOrchestrator.from_config()
    try:
        first_id = await orchestrator.create_task_from_problem(problem)
        await orchestrator.wait_idle()
        plan_id = orchestrator.get_task(first_id).metadata.get("plan_id")
        tasks = [t for t in orchestrator.get_all_tasks() if t.metadata.get("plan_id") == plan_id]
    finally:
        await orchestrator.shutdown()
    return list(reversed(tasks))


# ── Status Commands ───────────────────────────────────────────────────────────


@main.command("status")
@click.option("--json-output", "--json", is_flag=True, help="Output as JSON")
def status(json_output):
    """Show agent readiness and enabled integrations."""
    orchestrator = TaskOrchestrator.from_config()
    info = orchestrator.get_agent_status()

    if json_output:
        click.echo(json.dumps(info, indent=2))
        return

    for name, agent in info["agents"].items():
        flags = []
        if agent["ai_enabled"]:
            flags.append("ai")
        if agent.get("github_enabled"):
            flags.append("github")
        if agent.get("slack_enabled"):
            flags.append("slack")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        click.echo(f"  {name}: {agent['status']}{suffix}")
        click.echo(f"    {', '.join(agent['capabilities'])}")
    models = info["ai"]["models"]
    click.echo(f"AI models: {', '.join(models) if models else 'none (fallback mode)'}")
    click.echo(f"Memory: {'enabled' if info['memory']['enabled'] else 'disabled'}")
    github = info["integrations"]["github"]
    slack = info["integrations"]["slack"]
    click.echo(f"GitHub: {github['repository'] or 'not configured'}")
    click.echo(f"Slack: {slack['channel'] or 'not configured'}")


@main.command("models")
@click.option("--task-type", default=None, help="Recommend a model for this task type")
@click.option("--complexity", default="medium", type=click.Choice(["low", "medium", "high"]))
@click.option("--prompt", default=None, help="Estimate the cost of this prompt on the recommended model")
@click.option("--output-chars", default=2000, type=int, help="Expected response length for --prompt")
def models(task_type, complexity, prompt, output_chars):
    """List known models, or recommend one for a task type."""
    if task_type:
        gateway = AIGateway.from_config(get_config())
        rec = gateway.recommend(task_type, complexity)
        click.echo(f"Recommended: {rec['recommended']}")
        click.echo(f"Alternatives: {', '.join(rec['alternatives']) or '-'}")
        click.echo(rec["reasoning"])
        if prompt:
            cost = gateway.estimate_cost(prompt, output_chars, rec["recommended"])
            click.echo(f"Estimated cost: ${cost:.6f}")
        return

    for spec in models_mod.MODELS.values():
        click.echo(
            f"  {spec.name:<16} {spec.provider:<10} "
            f"in ${spec.cost_per_input_token}/tok  out ${spec.cost_per_output_token}/tok  "
            f"max {spec.max_tokens}"
        )


# ── Servers ───────────────────────────────────────────────────────────────────


@main.command("serve")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8787, type=int, help="Port to bind to")
def serve(host, port):
    """Start the HTTP API server."""
    from hackmate.web.app import run_server

    click.echo(f"Starting hackmate API at http://{host}:{port}")
    run_server(host=host, port=port)


@main.group("mcp")
def mcp_group():
    """MCP server commands."""
    pass


@mcp_group.command("serve")
def mcp_serve():
    """Start the MCP server (stdio transport)."""
    from hackmate.mcp.server import run

    run()
