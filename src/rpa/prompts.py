"""Prompt templates for each runner phase."""

from __future__ import annotations

from .phases import PhaseName

PLAN_SCHEMA = """{
  "goal": "string",
  "steps": [
    {
      "id": "s1",
      "title": "string",
      "reason": "string",
      "risk": "low|medium|high",
      "requires_approval": true|false
    }
  ]
}"""

PLAN_SCHEMA_COMPACT = (
    '{"goal":"string","steps":[{"id":"s1","title":"string","reason":"string",'
    '"risk":"low|medium|high","requires_approval":true}]}'
)

PHASE_MARKERS: dict[PhaseName, str] = {
    PhaseName.READ: "你是read阶段",
    PhaseName.PLAN: "你是plan阶段",
    PhaseName.PLAN_REPAIR: "你是plan修复阶段",
    PhaseName.ACT: "你是act阶段",
    PhaseName.FINAL: "你是final阶段",
}


def render_read_prompt(user_input: str) -> str:
    return (
        f"{PHASE_MARKERS[PhaseName.READ]}。提炼用户请求要点，不执行任何操作，不修改任何文件。\n"
        f"用户请求：{user_input}"
    )


def render_plan_prompt(read_summary: str) -> str:
    return (
        f"{PHASE_MARKERS[PhaseName.PLAN]}。基于read摘要输出严格JSON，不要输出其它文字。\n"
        f"JSON Schema:\n{PLAN_SCHEMA}\n"
        "要求：steps 3-7条，按执行顺序。\n"
        f"read摘要：{read_summary}"
    )


def render_plan_repair_prompt(raw_plan: str) -> str:
    return (
        f"{PHASE_MARKERS[PhaseName.PLAN_REPAIR]}。将下面内容修复为严格JSON，不要输出其它文字。\n"
        f"Schema:\n{PLAN_SCHEMA_COMPACT}\n"
        f"原始内容：\n{raw_plan}"
    )


def render_act_prompt(
    *,
    title: str,
    reason: str,
    risk: str,
    todos: str,
    strict_write: bool = False,
    expected_files: list[str] | None = None,
    previous_failure: str = "",
) -> str:
    """Render the act instruction, adding write directives for strict-write steps."""
    lines = [
        f"{PHASE_MARKERS[PhaseName.ACT]}。只执行当前一步并简洁汇报结果。",
        f"当前步骤：{title}",
        f"步骤原因：{reason}",
        f"步骤风险：{risk}",
        f"完整todo：\n{todos}",
    ]
    if strict_write:
        targets = "、".join(expected_files or []) or "步骤中提到的文件"
        lines.append(
            f"强制要求：本步骤必须调用写文件工具真实写入磁盘（目标：{targets}），"
            "不能只在回复中声称已完成；如果无法写入，请明确说明失败原因。"
        )
        if previous_failure:
            lines.append(f"上一次尝试失败原因：{previous_failure}")
    return "\n".join(lines)


def render_final_prompt(goal: str, action_logs: str) -> str:
    return (
        f"{PHASE_MARKERS[PhaseName.FINAL]}。基于以下执行记录，输出最终答复（先结论后细节，中文，简洁）。\n\n"
        f"计划目标：{goal}\n\n{action_logs}"
    )


def detect_phase(prompt: str) -> PhaseName | None:
    """Return the phase a rendered prompt belongs to, if recognisable."""
    text = prompt or ""
    for phase, marker in PHASE_MARKERS.items():
        if text.startswith(marker):
            return phase
    return None


__all__ = [
    "PHASE_MARKERS",
    "PLAN_SCHEMA",
    "PLAN_SCHEMA_COMPACT",
    "detect_phase",
    "render_act_prompt",
    "render_final_prompt",
    "render_plan_prompt",
    "render_plan_repair_prompt",
    "render_read_prompt",
]
