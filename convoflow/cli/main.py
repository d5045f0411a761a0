"""Convoflow CLI - Main entry point."""

import asyncio
import sys
from typing import List, Optional, Tuple

import click
from rich.markup import escape

from convoflow import __version__
from convoflow.config import PacingConfig, get_settings
from convoflow.exceptions import MalformedFlowError
from convoflow.flow.graph import Flow
from convoflow.flow.loader import load_flow
from convoflow.flow.node import NodeType
from convoflow.flow.validator import FlowValidator
from convoflow.logging import configure_logging
from convoflow.runtime.dispatcher import SimulatedActionDispatcher
from convoflow.runtime.interpreter import FlowInterpreter
from convoflow.runtime.session import SessionStatus

from .output import (
    console,
    print_error,
    print_issues,
    print_json,
    print_message,
    print_success,
    print_warning,
    print_yaml,
)


@click.group()
@click.version_option(version=__version__, prog_name="convoflow")
@click.option("--log-level", envvar="CONVOFLOW_LOG_LEVEL", default="warning",
              type=click.Choice(["debug", "info", "warning", "error"]),
              help="Engine log level")
@click.option("--log-format", type=click.Choice(["json", "pretty"]), default=None,
              help="Engine log format")
@click.pass_context
def cli(ctx: click.Context, log_level: str, log_format: Optional[str]):
    """Convoflow - Run and check conversation flows from the command line.

    \b
    Examples:
      convoflow validate support.yaml
      convoflow run support.yaml --input "I'd like a refund"
      convoflow run menu.json --input 1 --no-delay -o json
    """
    ctx.ensure_object(dict)
    configure_logging(log_level, log_format)
    ctx.obj["settings"] = get_settings()


def _load(path: str) -> Flow:
    try:
        return load_flow(path)
    except MalformedFlowError as e:
        print_error(f"Could not load flow: {escape(str(e))}")
        sys.exit(1)


@cli.command("validate")
@click.argument("flow_file", type=click.Path(exists=True, dir_okay=False))
def validate(flow_file: str):
    """Check a flow definition for structural problems."""
    flow = _load(flow_file)
    result = FlowValidator().validate(flow)

    print_issues(result.issues, title=f"{flow.name} ({len(flow.nodes)} nodes)")

    if result.valid:
        print_success(f"{flow.name} is valid")
    else:
        print_error(f"{flow.name} has {len(result.errors)} error(s)")
        sys.exit(1)


@cli.command("run")
@click.argument("flow_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--input", "-i", "inputs", multiple=True,
              help="Answer for the next condition or DTMF prompt (repeatable)")
@click.option("--interactive", is_flag=True,
              help="Prompt for answers once --input values run out")
@click.option("--no-delay", is_flag=True, help="Skip the simulated pacing delays")
@click.option("--output", "-o", type=click.Choice(["table", "json", "yaml"]), default="table",
              help="Output format")
@click.pass_context
def run(
    ctx: click.Context,
    flow_file: str,
    inputs: Tuple[str, ...],
    interactive: bool,
    no_delay: bool,
    output: str,
):
    """Run a flow and print its transcript.

    \b
    Examples:
      convoflow run refund.yaml -i "I'd like a refund please"
      convoflow run menu.yaml --interactive
    """
    flow = _load(flow_file)
    pacing = PacingConfig.instant() if no_delay else ctx.obj["settings"].pacing

    interpreter = FlowInterpreter(
        dispatcher=SimulatedActionDispatcher(pacing=pacing),
        execution=ctx.obj["settings"].execution,
        session_id="cli",
    )

    try:
        asyncio.run(_drive(interpreter, flow, list(inputs), interactive, live=output == "table"))
    except MalformedFlowError as e:
        print_error(f"Cannot run flow: {escape(str(e))}")
        sys.exit(1)

    session = interpreter.session
    if output == "json":
        print_json(session.to_dict())
    elif output == "yaml":
        print_yaml(session.to_dict())
    elif session.status == SessionStatus.COMPLETED:
        print_success(f"Flow completed ({len(session.visited_nodes)} nodes visited)")
    else:
        print_warning(f"Flow stopped while {session.status.value} at node {session.current_node_id}")


async def _drive(
    interpreter: FlowInterpreter,
    flow: Flow,
    inputs: List[str],
    interactive: bool,
    live: bool,
) -> None:
    """Start the flow and feed queued answers until it completes or runs dry."""
    if live:
        console.print(f"[bold]{escape(flow.name)}[/bold]")
        interpreter.subscribe(print_message)

    await interpreter.start(flow)

    while interpreter.status == SessionStatus.WAITING_FOR_INPUT:
        node = interpreter.current_node

        if inputs:
            answer = inputs.pop(0)
        elif interactive:
            prompt = "Digits" if node.type == NodeType.DTMF else "You"
            answer = click.prompt(prompt, default="", show_default=False)
        else:
            break

        if node.type == NodeType.DTMF:
            accepted = await interpreter.submit_dtmf(answer)
        else:
            accepted = await interpreter.submit_input(answer)

        if not accepted and live:
            print_warning(escape(f"Input {answer!r} was not accepted at node {node.id}"))


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
