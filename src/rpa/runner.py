"""Phase state machine that drives one request through read, plan, act and final."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from .memory.schema import (
    ActionStepLog,
    AuditPlan,
    AuditPlanStep,
    RunAudit,
    TodoItem,
    TodoStatus,
    local_now,
)
from .memory.todo import TodoStore
from .models.llm_client import AskResult, LLMClient, LLMClientError, supports_tool_stats
from .phases import PhaseName
from .planning.classifier import StepClassifier, StepKind, detect_file_paths
from .planning.keywords import KeywordTables
from .planning.normalizer import normalize_plan
from .planning.parser import parse_plan
from .planning.schemas import RISK_HIGH, Plan, PlanStep
from .progress import ProgressEvent, ProgressSink, emit_progress
from .prompts import (
    render_act_prompt,
    render_final_prompt,
    render_plan_prompt,
    render_plan_repair_prompt,
    render_read_prompt,
)
from .tools.audit import AuditWriter
from .tools.write_verifier import existence_summary, missing_files, write_failure_reason

__all__ = [
    "Approver",
    "InvalidPlanError",
    "Runner",
    "RunnerError",
    "RunnerOptions",
    "RunResult",
    "render_action_logs",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_ACT_RETRIES = 2
EMPTY_ACTION_LOGS_TEXT = "(no action logs)"

Approver = Callable[[PlanStep], bool]


class RunnerError(RuntimeError):
    """Base error for run-level failures raised by :class:`Runner`."""


class InvalidPlanError(RunnerError):
    """Raised when neither the plan reply nor its repair yields a usable plan."""


@dataclass(slots=True)
class RunnerOptions:
    """Tunable behaviour for :class:`Runner`."""

    max_act_retries: int = DEFAULT_MAX_ACT_RETRIES
    approver: Optional[Approver] = None
    audit_dir: Optional[Path | str] = None
    working_dir: Optional[Path | str] = None
    on_progress: Optional[ProgressSink] = None
    keywords: Optional[KeywordTables] = None

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None, **overrides: Any) -> "RunnerOptions":
        """Build options from the ``agent`` config section; ``None`` overrides are ignored."""
        section = (config or {}).get("agent") or {}
        if not isinstance(section, Mapping):
            section = {}
        options = cls(keywords=KeywordTables.from_config(config))
        retries = section.get("max_act_retries")
        if isinstance(retries, int) and not isinstance(retries, bool):
            options.max_act_retries = retries
        for key in ("audit_dir", "working_dir"):
            value = section.get(key)
            if isinstance(value, str) and value.strip():
                setattr(options, key, value.strip())
        for key, value in overrides.items():
            if value is not None:
                setattr(options, key, value)
        return options


@dataclass(slots=True)
class RunResult:
    """Everything a completed run produced."""

    read_summary: str
    plan: Plan
    action_logs: list[ActionStepLog]
    final: str
    audit_path: str = ""
    todos: list[TodoItem] = field(default_factory=list)
    todos_text: str = ""


@dataclass(slots=True)
class _RunState:
    """Mutable state owned by exactly one :meth:`Runner.run` call."""

    user_input: str
    read_summary: str
    plan: Plan
    todos: TodoStore
    requested_files: list[str]
    action_logs: list[ActionStepLog] = field(default_factory=list)


class Runner:
    """Drive READ → PLAN → (PLAN_REPAIR) → TODO_INIT → ACT* → FINAL → AUDIT."""

    def __init__(
        self,
        client: LLMClient,
        options: RunnerOptions | None = None,
        *,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._client = client
        self._options = options or RunnerOptions()
        retries = self._options.max_act_retries
        self._max_act_retries = retries if retries and retries > 0 else DEFAULT_MAX_ACT_RETRIES
        self._working_dir = Path(self._options.working_dir or Path.cwd()).resolve()
        self._classifier = StepClassifier(self._options.keywords)
        self._audit_writer = AuditWriter(self._options.audit_dir)
        self._clock = clock

    @property
    def max_act_retries(self) -> int:
        return self._max_act_retries

    @property
    def working_dir(self) -> Path:
        return self._working_dir

    @property
    def audit_dir(self) -> Path:
        return self._audit_writer.audit_dir

    # ------------------------------------------------------------------ public
    def run(self, user_input: str) -> RunResult:
        """Execute one request end to end.

        Capability failures during read, plan and final propagate as
        :class:`~rpa.models.llm_client.LLMClientError`; an unusable plan raises
        :class:`InvalidPlanError`. Neither writes an audit record.
        """
        started_at = self._clock()
        started_tick = time.monotonic()

        self._emit(PhaseName.READ, "提炼用户请求")
        read_summary = self._ask(render_read_prompt(user_input)).text.strip()

        self._emit(PhaseName.PLAN, "生成执行计划")
        plan = self._build_plan(read_summary)

        todos = TodoStore()
        for step in plan.steps:
            todos.upsert(step.title, TodoStatus.TODO)
        state = _RunState(
            user_input=user_input,
            read_summary=read_summary,
            plan=plan,
            todos=todos,
            requested_files=detect_file_paths(user_input),
        )
        self._emit(PhaseName.TODO_INIT, f"计划包含 {len(plan.steps)} 个步骤", state)

        self._act(state)

        self._emit(PhaseName.FINAL, "生成最终答复", state)
        final = self._finalize(state)

        finished_at = self._clock()
        audit = RunAudit(
            started_at=started_at,
            finished_at=finished_at,
            duration_ms=int((time.monotonic() - started_tick) * 1000),
            user_input=user_input,
            read_summary=read_summary,
            plan=AuditPlan(
                goal=plan.goal,
                steps=[AuditPlanStep(**step.to_dict()) for step in plan.steps],
            ),
            action_logs=list(state.action_logs),
            final=final,
            todos=todos.all(),
        )
        counts = todos.counts()
        LOGGER.info(
            "Run finished: done=%d blocked=%d skipped=%d",
            counts[TodoStatus.DONE],
            counts[TodoStatus.BLOCKED],
            counts[TodoStatus.SKIPPED],
        )
        audit_path = self._audit_writer.try_write(audit)
        self._emit(PhaseName.AUDIT, audit_path or "审计记录未保存", state)

        return RunResult(
            read_summary=read_summary,
            plan=plan,
            action_logs=list(state.action_logs),
            final=final,
            audit_path=audit_path,
            todos=todos.all(),
            todos_text=todos.render(),
        )

    # ------------------------------------------------------------------ phases
    def _build_plan(self, read_summary: str) -> Plan:
        raw = self._ask(render_plan_prompt(read_summary)).text
        plan, ok = normalize_plan(parse_plan(raw))
        if ok:
            return plan

        LOGGER.info("Plan reply could not be normalised; requesting one repair")
        self._emit(PhaseName.PLAN_REPAIR, "修复计划格式")
        try:
            repaired_raw = self._ask(render_plan_repair_prompt(raw)).text
        except LLMClientError as error:
            raise InvalidPlanError(f"invalid plan: repair request failed: {error}") from error
        plan, ok = normalize_plan(parse_plan(repaired_raw))
        if not ok:
            raise InvalidPlanError("invalid plan: unable to normalize plan output")
        return plan

    def _act(self, state: _RunState) -> None:
        steps = state.plan.steps
        total = len(steps)
        for index, step in enumerate(steps):
            self._emit(PhaseName.ACT, f"步骤 {index + 1}/{total}: {step.title}", state)
            kind = self._classifier.classify(step, state.requested_files)

            if kind is StepKind.INTENT_CONFIRMATION:
                state.todos.upsert(step.title, TodoStatus.DONE)
                state.action_logs.append(
                    ActionStepLog(
                        step_id=step.id,
                        title=step.title,
                        status=TodoStatus.DONE,
                        output=f"已根据read摘要确认用户意图：{state.read_summary}",
                    )
                )
                continue

            if kind is StepKind.LOCAL_PROBE:
                paths = detect_file_paths(step.text) or list(state.requested_files)
                state.todos.upsert(step.title, TodoStatus.DONE)
                state.action_logs.append(
                    ActionStepLog(
                        step_id=step.id,
                        title=step.title,
                        status=TodoStatus.DONE,
                        output=existence_summary(paths, self._working_dir),
                    )
                )
                continue

            if self._needs_approval(step) and not self._approve(step):
                state.todos.upsert(step.title, TodoStatus.SKIPPED)
                state.action_logs.append(
                    ActionStepLog(
                        step_id=step.id,
                        title=step.title,
                        status=TodoStatus.SKIPPED,
                        output="未获批准，已跳过",
                    )
                )
                continue

            strict_write = kind is StepKind.STRICT_WRITE
            expected = self._classifier.expected_files(step, state.requested_files) if strict_write else []
            log = self._execute_step(step, state, strict_write=strict_write, expected=expected)
            state.action_logs.append(log)
            if log.status is TodoStatus.BLOCKED:
                self._cascade_skip(step, steps[index + 1 :], state)
                break

    def _execute_step(
        self,
        step: PlanStep,
        state: _RunState,
        *,
        strict_write: bool,
        expected: Sequence[str],
    ) -> ActionStepLog:
        """Run the retry loop for one step; returns a ``done`` or ``blocked`` log."""
        state.todos.upsert(step.title, TodoStatus.IN_PROGRESS)
        last_failure = ""
        last_result: AskResult | None = None

        for attempt in range(1, self._max_act_retries + 1):
            prompt = render_act_prompt(
                title=step.title,
                reason=step.reason,
                risk=step.risk,
                todos=state.todos.render(),
                strict_write=strict_write,
                expected_files=list(expected),
                previous_failure=last_failure if attempt > 1 else "",
            )
            try:
                result = self._ask(prompt)
            except LLMClientError as error:
                last_failure = str(error).strip() or error.__class__.__name__
                LOGGER.warning("Step %s attempt %d failed: %s", step.id, attempt, last_failure)
                continue
            last_result = result

            if strict_write and expected:
                missing = missing_files(expected, self._working_dir)
                if missing:
                    last_failure = write_failure_reason(missing, result.tool_calls, result.write_tool_calls)
                    LOGGER.warning("Step %s attempt %d not verified: %s", step.id, attempt, last_failure)
                    continue

            state.todos.upsert(step.title, TodoStatus.DONE)
            return ActionStepLog(
                step_id=step.id,
                title=step.title,
                status=TodoStatus.DONE,
                attempts=attempt,
                output=result.text.strip(),
                tool_calls=result.tool_calls or 0,
                write_tool_calls=result.write_tool_calls or 0,
            )

        state.todos.upsert(step.title, TodoStatus.BLOCKED)
        return ActionStepLog(
            step_id=step.id,
            title=step.title,
            status=TodoStatus.BLOCKED,
            attempts=self._max_act_retries,
            output=last_result.text.strip() if last_result else "",
            error_text=last_failure or "act failed",
            tool_calls=(last_result.tool_calls or 0) if last_result else 0,
            write_tool_calls=(last_result.write_tool_calls or 0) if last_result else 0,
        )

    def _cascade_skip(self, blocker: PlanStep, remaining: Sequence[PlanStep], state: _RunState) -> None:
        blocker_key = blocker.title.casefold()
        reason = f"前置步骤 {blocker.id}（{blocker.title}）已阻塞，跳过执行"
        for step in remaining:
            if step.title.casefold() != blocker_key:
                state.todos.upsert(step.title, TodoStatus.SKIPPED)
            state.action_logs.append(
                ActionStepLog(
                    step_id=step.id,
                    title=step.title,
                    status=TodoStatus.SKIPPED,
                    error_text=reason,
                )
            )
        LOGGER.info("Step %s blocked; skipped %d remaining step(s)", blocker.id, len(remaining))

    def _finalize(self, state: _RunState) -> str:
        blocked = next((log for log in state.action_logs if log.status is TodoStatus.BLOCKED), None)
        if blocked is not None:
            return (
                f"任务未完成：步骤 {blocked.step_id}（{blocked.title}）执行受阻，"
                f"原因：{blocked.error_text}。后续步骤已跳过，请处理后重试。"
            )
        prompt = render_final_prompt(state.plan.goal, render_action_logs(state.action_logs))
        return self._ask(prompt).text.strip()

    # ----------------------------------------------------------------- helpers
    def _ask(self, prompt: str) -> AskResult:
        if supports_tool_stats(self._client):
            return self._client.ask_with_stats(prompt)  # type: ignore[attr-defined]
        return AskResult(text=self._client.ask(prompt))

    @staticmethod
    def _needs_approval(step: PlanStep) -> bool:
        return step.risk == RISK_HIGH or step.requires_approval

    def _approve(self, step: PlanStep) -> bool:
        approver = self._options.approver
        if approver is None:
            return True
        return bool(approver(step))

    def _emit(self, phase: PhaseName, message: str, state: _RunState | None = None) -> None:
        LOGGER.debug("[%s] %s", phase.value, message)
        if self._options.on_progress is None:
            return
        if state is None:
            event = ProgressEvent(phase=phase, message=message)
        else:
            event = ProgressEvent(
                phase=phase,
                message=message,
                total=len(state.plan.steps),
                completed=state.todos.terminal_count(),
                todo_text=state.todos.render(),
            )
        emit_progress(self._options.on_progress, event)


def render_action_logs(logs: Sequence[ActionStepLog]) -> str:
    """Render action logs as the bullet list embedded in the final prompt."""
    if not logs:
        return EMPTY_ACTION_LOGS_TEXT
    lines: list[str] = []
    for log in logs:
        lines.append(f"- [{log.status.value}] {log.title} (attempts={log.attempts})")
        if log.output.strip():
            lines.append(f"  output: {log.output.strip()}")
        if log.error_text.strip():
            lines.append(f"  error: {log.error_text.strip()}")
    return "\n".join(lines)
