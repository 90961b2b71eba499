"""Command-line interface: validate, plan, run and inspect tools."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tasklane.config import LOG_LEVEL
from tasklane.errors import PlanValidationError
from tasklane.events import EventBus
from tasklane.executor import ToolExecutor
from tasklane.models import ExecutionContext, PlanExecutionResult
from tasklane.orchestrator import TaskOrchestrator
from tasklane.plan.generator import PlanGenerator
from tasklane.plan.schema import IntentClassification, Plan
from tasklane.plan.validator import PlanValidationResult, validate_plan
from tasklane.runtime import default_provider
from tasklane.store import InMemoryTaskStore
from tasklane.tools.definitions import ALL_TOOLS
from tasklane.tools.setup import create_default_registry

console = Console()


def load_plan(path: Path) -> Plan:
    return Plan.model_validate(json.loads(path.read_text(encoding="utf-8")))


def print_plan(plan: Plan):
    table = Table(show_header=True, header_style="bold magenta", title=f"Plan: {plan.intent_type.value}")
    table.add_column("Step", style="cyan")
    table.add_column("Tool", style="green")
    table.add_column("Depends on", style="blue")
    table.add_column("Flags", style="yellow")
    table.add_column("Description")

    for step in plan.steps:
        flags = []
        if step.optional:
            flags.append("optional")
        flags.append(f"retries={step.max_retries if step.retryable else 0}")
        table.add_row(step.id, step.tool_name, ", ".join(step.depends_on) or "-", " ".join(flags), step.description or "")
    console.print(table)


def print_validation(result: PlanValidationResult):
    if result.valid:
        console.print("[bold green]Plan is valid[/bold green]")
    else:
        console.print("[bold red]Plan is invalid[/bold red]")
    for issue in result.errors:
        where = f"{issue.step_id}: " if issue.step_id else ""
        console.print(f"  [red]{issue.code}[/red] {where}{issue.message}")
    for warning in result.warnings:
        console.print(f"  [yellow]warning[/yellow] {warning}")
    for suggestion in result.suggestions:
        console.print(f"  [dim]suggestion[/dim] {suggestion}")


def print_execution(result: PlanExecutionResult):
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Step", style="cyan")
    table.add_column("Tool", style="green")
    table.add_column("Status")
    table.add_column("Time", style="yellow")
    table.add_column("Error", style="red")

    for r in result.results:
        status = "[green]succeeded[/green]" if r.success else "[red]failed[/red]"
        error = r.result.error.message if r.result.error else "-"
        table.add_row(r.step_id, r.tool_name, status, f"{r.execution_time_ms}ms", error[:60])
    console.print(table)

    style = "green" if result.success else "red"
    console.print(
        f"[bold {style}]{result.completed_steps}/{result.total_steps} steps succeeded[/bold {style}]"
        f" in {result.execution_time_ms}ms"
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_validate(args) -> int:
    plan = load_plan(args.plan)
    print_plan(plan)
    result = validate_plan(plan)
    print_validation(result)
    return 0 if result.valid else 1


def cmd_plan(args) -> int:
    classification = IntentClassification(intent_type=args.intent, params=json.loads(args.params))
    generator = PlanGenerator(provider=default_provider())
    plan = asyncio.run(generator.generate(classification))
    print_plan(plan)
    if args.output:
        args.output.write_text(plan.model_dump_json(indent=2), encoding="utf-8")
        console.print(f"[dim]Plan written to {args.output}[/dim]")
    return 0


async def _run(plan: Plan, user_id: str, dry_run: bool) -> PlanExecutionResult | None:
    registry = create_default_registry()
    executor = ToolExecutor(registry)

    if dry_run:
        return await executor.execute_plan(plan, ExecutionContext(user_id=user_id, dry_run=True))

    orchestrator = TaskOrchestrator(store=InMemoryTaskStore(), executor=executor, event_bus=EventBus())
    task = await orchestrator.create_task(chat_id="cli", user_id=user_id, intent_text=plan.describe(), plan=plan)
    result = await orchestrator.execute_task(task.id)
    task = await orchestrator.get_task(task.id)
    console.print(f"Task {task.id}: [bold]{task.status.value}[/bold]" + (f" - {task.error}" if task.error else ""))
    return result


def cmd_run(args) -> int:
    plan = load_plan(args.plan)
    print_plan(plan)
    try:
        result = asyncio.run(_run(plan, args.user, args.dry_run))
    except PlanValidationError as e:
        print_validation(e.result)
        return 1
    if result is None:
        return 1
    print_execution(result)
    for r in result.results:
        if r.success and r.result.data is not None and args.verbose:
            console.print(Panel(json.dumps(r.result.data, indent=2, default=str), title=f"{r.step_id} result", border_style="green"))
    return 0 if result.success else 1


def cmd_tools(args) -> int:
    registry = create_default_registry()
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Tool", style="cyan", no_wrap=True)
    table.add_column("Category", style="green")
    table.add_column("Auth", style="yellow")
    table.add_column("Handler")
    table.add_column("Description")
    for t in ALL_TOOLS:
        handler = "[green]built-in[/green]" if registry.has_handler(t.name) else "[dim]external[/dim]"
        table.add_row(t.name, t.category, "yes" if t.requires_auth else "", handler, t.description)
    console.print(table)
    return 0


def cmd_serve(args) -> int:
    from tasklane.server import main as serve

    serve()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tasklane", description="Plan validation and task execution")
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Logging level (default: %(default)s)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate", help="Validate a plan JSON file")
    p.add_argument("plan", type=Path)
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("plan", help="Generate a plan for an intent")
    p.add_argument("intent")
    p.add_argument("--params", default="{}", help="Intent params as JSON")
    p.add_argument("-o", "--output", type=Path)
    p.set_defaults(func=cmd_plan)

    p = sub.add_parser("run", help="Execute a plan JSON file as a task")
    p.add_argument("plan", type=Path)
    p.add_argument("--user", default="cli-user")
    p.add_argument("--dry-run", action="store_true", help="Validate params and skip side effects")
    p.add_argument("-v", "--verbose", action="store_true", help="Show step result data")
    p.set_defaults(func=cmd_run)

    p = sub.add_parser("tools", help="List the tool catalog")
    p.set_defaults(func=cmd_tools)

    p = sub.add_parser("serve", help="Start the HTTP server")
    p.set_defaults(func=cmd_serve)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
    try:
        return args.func(args)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 2


if __name__ == "__main__":
    sys.exit(main())
