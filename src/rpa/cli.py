"""CLI commands for running read-plan-act tasks and inspecting their audits."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import yaml

from .memory.todo import EMPTY_TODOS_TEXT
from .models import CommandClient, GuardedClient, LLMClient, LLMClientError, ResponsesClient
from .models.command import DEFAULT_COMMAND
from .models.responses import DEFAULT_WRITE_TOOLS
from .phases import PhaseName
from .planning.keywords import KeywordTables
from .planning.schemas import PlanStep
from .progress import ProgressEvent
from .prompts import detect_phase
from .runner import Runner, RunnerError, RunnerOptions, RunResult
from .tools.audit import DEFAULT_AUDIT_DIR, list_audit_files, load_audit, summarize_audit

APP_HELP = "Read-plan-act task agent."
DEFAULT_CONFIG_NAME = "config.yaml"
DEFAULT_TIMEOUT = 300.0
BACKENDS = ("command", "responses", "offline")

app = typer.Typer(help=APP_HELP)


def load_config(config_path: Path, *, required: bool = True) -> Dict[str, Any]:
    """Load YAML configuration from disk and return it as a dictionary."""
    if not config_path.exists():
        if required:
            raise typer.BadParameter(f"Config file not found: {config_path}")
        return {}

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        typer.echo(f"Failed to parse config: {error}")
        raise typer.Exit(code=1) from error

    if not isinstance(data, dict):
        typer.echo("Configuration must be a mapping at the top level.")
        raise typer.Exit(code=1)

    return data


def _resolve_config(config: Optional[str]) -> Dict[str, Any]:
    """Load an explicit config path, or ``config.yaml`` when it happens to exist."""
    if config:
        return load_config(Path(config))
    return load_config(Path(DEFAULT_CONFIG_NAME), required=False)


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = config.get(name)
    return value if isinstance(value, dict) else {}


def _resolve_timeout(config: Dict[str, Any], override: Optional[float]) -> float:
    if override is not None:
        return override
    value = _section(config, "models").get("timeout")
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
        return float(value)
    return DEFAULT_TIMEOUT


def _resolve_audit_dir(config: Dict[str, Any], override: Optional[Path]) -> Path:
    if override is not None:
        return override
    value = _section(config, "agent").get("audit_dir")
    if isinstance(value, str) and value.strip():
        return Path(value.strip())
    return DEFAULT_AUDIT_DIR


def _resolve_backend(config: Dict[str, Any], override: Optional[str]) -> str:
    backend = (override or _section(config, "models").get("backend") or "command").strip().lower()
    if backend not in BACKENDS:
        raise typer.BadParameter(f"Unknown backend '{backend}'. Expected one of: {', '.join(BACKENDS)}")
    return backend


def _build_client(
    config: Dict[str, Any],
    *,
    backend: str,
    cwd: Path,
    command: Optional[str] = None,
) -> LLMClient:
    """Select the configured backend client."""
    models_cfg = _section(config, "models")

    if backend == "offline":
        typer.echo("Using offline stub client.")
        return _OfflineLLMClient()

    if backend == "responses":
        client_kwargs: Dict[str, Any] = {}
        for key in ("model", "base_url", "api_key"):
            value = models_cfg.get(key)
            if isinstance(value, str) and value.strip():
                client_kwargs[key] = value.strip()
        write_tools = models_cfg.get("write_tools")
        if isinstance(write_tools, list) and write_tools:
            client_kwargs["write_tools"] = [str(item) for item in write_tools]
        else:
            client_kwargs["write_tools"] = DEFAULT_WRITE_TOOLS
        tools = models_cfg.get("tools")
        if isinstance(tools, list):
            client_kwargs["tools"] = [dict(item) for item in tools if isinstance(item, dict)]
        try:
            client = ResponsesClient(**client_kwargs)
        except ValueError as error:
            message = str(error)
            if "api key" in message.lower():
                typer.echo("No API key given. Set OPENAI_API_KEY or RPA_API_KEY, or use --backend offline.")
            else:
                typer.echo(f"Failed to initialise Responses client: {error}")
            raise typer.Exit(code=1)
        typer.echo(f"Using Responses client ({client.model}, {len(client.tools)} tool definition(s)).")
        return client

    configured = command or models_cfg.get("command") or DEFAULT_COMMAND
    try:
        client = CommandClient(configured, cwd=cwd)
    except ValueError as error:
        typer.echo(f"Failed to initialise command client: {error}")
        raise typer.Exit(code=1)
    typer.echo(f"Using command client ({' '.join(client.command)}).")
    return client


def _configure_logging(level: str) -> None:
    numeric = logging.getLevelName(level.strip().upper())
    if not isinstance(numeric, int):
        raise typer.BadParameter(f"Unknown log level: {level}")
    logging.basicConfig(level=numeric, format="%(levelname)s %(name)s: %(message)s")


def _print_progress(event: ProgressEvent) -> None:
    phase = event.phase.value.upper()
    message = event.message.strip()
    if event.total > 0:
        typer.echo(f"\n[{phase}] {message} ({event.completed}/{event.total})")
    else:
        typer.echo(f"\n[{phase}] {message}")
    if event.todo_text.strip() and event.todo_text != EMPTY_TODOS_TEXT:
        typer.echo(event.todo_text)


def _prompt_approval(step: PlanStep) -> bool:
    typer.echo(f"\n[APPROVAL] step={step.id} risk={step.risk}\n{step.title}")
    try:
        return typer.confirm("批准执行?", default=False)
    except typer.Abort as error:
        raise RunnerError(f"approval for step {step.id} aborted") from error


def _render_run_result(result: RunResult) -> None:
    """Display the sections of a completed run."""
    typer.echo("\n[READ]")
    typer.echo(result.read_summary)
    typer.echo("\n[PLAN]")
    typer.echo(f"Goal: {result.plan.goal}")
    for index, step in enumerate(result.plan.steps, start=1):
        approval = "true" if step.requires_approval else "false"
        typer.echo(f"{index}. ({step.id}) {step.title} [risk={step.risk} approval={approval}]")
    typer.echo("\n[TODOS]")
    typer.echo(result.todos_text)
    typer.echo("\n[ACTION]")
    for log in result.action_logs:
        typer.echo(f"- [{log.status.value}] {log.title} (attempts={log.attempts})")
        if log.output.strip():
            typer.echo(f"  output: {log.output}")
        if log.error_text.strip():
            typer.echo(f"  error: {log.error_text}")
    typer.echo("\n[FINAL]")
    typer.echo(result.final)
    if result.audit_path.strip():
        typer.echo(f"\n[AUDIT]\n{result.audit_path}")


class _OfflineLLMClient(LLMClient):
    """Local stub that synthesizes deterministic replies for demos/tests."""

    def ask(self, prompt: str, *, timeout: Optional[float] = None) -> str:
        phase = detect_phase(prompt)
        if phase is PhaseName.READ:
            request = self._extract(prompt, "用户请求：")
            return f"用户希望：{request}"
        if phase in {PhaseName.PLAN, PhaseName.PLAN_REPAIR}:
            summary = self._extract(prompt, "read摘要：") or "处理用户请求"
            return json.dumps(
                {
                    "goal": summary,
                    "steps": [
                        {
                            "id": "s1",
                            "title": "确认用户需求",
                            "reason": "明确目标与约束",
                            "risk": "low",
                            "requires_approval": False,
                        },
                        {
                            "id": "s2",
                            "title": "整理处理思路",
                            "reason": "给出可执行的处理方式",
                            "risk": "low",
                            "requires_approval": False,
                        },
                        {
                            "id": "s3",
                            "title": "汇总结果",
                            "reason": "输出结论",
                            "risk": "low",
                            "requires_approval": False,
                        },
                    ],
                },
                ensure_ascii=False,
            )
        if phase is PhaseName.ACT:
            step = self._extract(prompt, "当前步骤：")
            return f"已完成：{step}"
        if phase is PhaseName.FINAL:
            goal = self._extract(prompt, "计划目标：")
            return f"离线模式已完成计划：{goal}"
        return "离线模式无法识别该请求。"

    @staticmethod
    def _extract(prompt: str, label: str) -> str:
        for line in prompt.splitlines():
            if line.startswith(label):
                return line[len(label) :].strip()
        return ""


@app.command()
def run(
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the agent configuration file (defaults to ./config.yaml when present).",
    ),
    cwd: Optional[Path] = typer.Option(None, "--cwd", help="Working directory for the task."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Timeout in seconds for each backend call."),
    auto_approve: bool = typer.Option(False, "--auto-approve", help="Approve high-risk steps automatically."),
    max_retries: Optional[int] = typer.Option(None, "--max-retries", help="Attempts per action step."),
    audit_dir: Optional[Path] = typer.Option(None, "--audit-dir", help="Directory for run audit JSON files."),
    backend: Optional[str] = typer.Option(
        None,
        "--backend",
        help=(
            "Backend: command, responses or offline. The responses backend only counts the tool calls "
            "reported for tools declared under models.tools; it does not execute them."
        ),
    ),
    command: Optional[str] = typer.Option(None, "--command", help="Executable used by the command backend."),
    progress: bool = typer.Option(True, "--progress/--no-progress", help="Print progress at phase boundaries."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Python logging level."),
) -> None:
    """Read one task per line from stdin and run each through read, plan, act and final."""
    _configure_logging(log_level)
    config_data = _resolve_config(config)
    agent_cfg = _section(config_data, "agent")

    workdir = (cwd or Path(str(agent_cfg.get("working_dir") or "."))).resolve()
    approve_all = auto_approve or agent_cfg.get("auto_approve") is True
    client = _build_client(
        config_data,
        backend=_resolve_backend(config_data, backend),
        cwd=workdir,
        command=command,
    )
    guarded = GuardedClient(client, timeout=_resolve_timeout(config_data, timeout))
    options = RunnerOptions.from_config(
        config_data,
        max_act_retries=max_retries,
        audit_dir=audit_dir,
        working_dir=workdir,
        approver=(lambda _step: True) if approve_all else _prompt_approval,
        on_progress=_print_progress if progress else None,
    )
    runner = Runner(guarded, options)

    typer.echo("rpa (read-plan-act) ready. 输入你的任务，Ctrl+D 退出。")
    try:
        while True:
            typer.echo("\n> ", nl=False)
            line = sys.stdin.readline()
            if not line:
                typer.echo("\nbye")
                return
            text = line.strip()
            if not text:
                continue
            try:
                result = runner.run(text)
            except (LLMClientError, RunnerError) as error:
                typer.echo(f"error: {error}", err=True)
                continue
            _render_run_result(result)
    finally:
        guarded.close()


@app.command()
def audit(
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the agent configuration file (defaults to ./config.yaml when present).",
    ),
    audit_dir: Optional[Path] = typer.Option(
        None, "--audit-dir", help="Directory holding run audits (defaults to agent.audit_dir)."
    ),
    index: int = typer.Option(1, "--index", "-n", help="Which audit to show, 1 means most recent."),
    full: bool = typer.Option(False, "--full", help="Print the raw audit JSON."),
    list_all: bool = typer.Option(False, "--list", help="List every audit, most recent first."),
) -> None:
    """Show a stored run audit."""
    audit_dir = _resolve_audit_dir(_resolve_config(config), audit_dir)
    try:
        files = list_audit_files(audit_dir)
    except FileNotFoundError:
        typer.echo(f"[LATEST AUDIT]\n(no audit directory) {audit_dir}")
        return
    if not files:
        typer.echo(f"[LATEST AUDIT]\n(no audit files) {audit_dir}")
        return

    if list_all:
        typer.echo("[AUDITS]")
        for position, item in enumerate(files, start=1):
            typer.echo(f"{position}. {item.path}")
        return

    position = index if index > 0 else 1
    if position > len(files):
        typer.echo(f"--index={position} out of range, available={len(files)}", err=True)
        raise typer.Exit(code=1)
    target = files[position - 1]

    try:
        entry = load_audit(target.path)
    except (OSError, ValueError) as error:
        typer.echo(f"show audit failed: {error}", err=True)
        raise typer.Exit(code=1)

    if full:
        typer.echo("[LATEST AUDIT FULL]")
        typer.echo(str(entry.path))
        typer.echo(entry.raw)
        return

    typer.echo("[LATEST AUDIT]")
    typer.echo(str(entry.path))
    for line in summarize_audit(entry):
        typer.echo(line)


@app.command()
def status(
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the agent configuration file (defaults to ./config.yaml when present).",
    ),
) -> None:
    """Validate configuration and report the resolved runner settings."""
    config_data = _resolve_config(config)
    options = RunnerOptions.from_config(config_data)
    keywords = options.keywords or KeywordTables()
    models_cfg = _section(config_data, "models")

    typer.echo(f"Backend: {_resolve_backend(config_data, None)}")
    command_value = models_cfg.get("command") or list(DEFAULT_COMMAND)
    if isinstance(command_value, list):
        command_value = " ".join(str(part) for part in command_value)
    typer.echo(f"Command: {command_value}")
    typer.echo(f"Timeout: {_resolve_timeout(config_data, None):.0f}s")
    typer.echo(f"Working dir: {Path(str(options.working_dir or '.')).resolve()}")
    typer.echo(f"Audit dir: {_resolve_audit_dir(config_data, None)}")
    typer.echo(f"Max act retries: {options.max_act_retries}")
    typer.echo(
        "Classifier phrases: "
        f"intent={len(keywords.intent_phrases)} "
        f"probe={len(keywords.probe_phrases)} "
        f"persist={len(keywords.persist_phrases)}"
    )


if __name__ == "__main__":
    app()
