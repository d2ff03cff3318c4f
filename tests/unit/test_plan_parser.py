from __future__ import annotations

import textwrap

from rpa.planning.parser import parse_bullets, parse_plan, strip_code_fence
from rpa.planning.schemas import BULLET_FALLBACK_REASON, DEFAULT_GOAL


def test_parse_plan_reads_strict_json() -> None:
    raw = (
        '{"goal":"g","steps":[{"id":"a","title":"Do X","reason":"r",'
        '"risk":"high","requires_approval":true}]}'
    )

    plan = parse_plan(raw)

    assert plan.goal == "g"
    assert len(plan.steps) == 1
    step = plan.steps[0]
    assert (step.id, step.title, step.reason, step.risk, step.requires_approval) == (
        "a",
        "Do X",
        "r",
        "high",
        True,
    )


def test_parse_plan_strips_markdown_fence() -> None:
    raw = textwrap.dedent(
        """
        ```json
        {"goal": "fenced", "steps": [{"id": "s1", "title": "Only step"}]}
        ```
        """
    )

    plan = parse_plan(raw)

    assert plan.goal == "fenced"
    assert [step.title for step in plan.steps] == ["Only step"]


def test_parse_plan_falls_back_to_bullets() -> None:
    plan = parse_plan("- step one\n- step two")

    assert plan.goal == DEFAULT_GOAL
    assert [step.id for step in plan.steps] == ["s1", "s2"]
    assert [step.title for step in plan.steps] == ["step one", "step two"]
    assert all(step.reason == BULLET_FALLBACK_REASON for step in plan.steps)
    assert all(step.risk == "medium" and not step.requires_approval for step in plan.steps)


def test_parse_plan_uses_bullets_when_json_has_no_steps() -> None:
    plan = parse_plan('{"goal": "g", "steps": []}')

    assert plan.goal == DEFAULT_GOAL
    assert len(plan.steps) == 1
    assert plan.steps[0].title == '{"goal": "g", "steps": []}'


def test_parse_plan_treats_plain_text_as_single_step() -> None:
    plan = parse_plan("just do the thing")

    assert [step.title for step in plan.steps] == ["just do the thing"]


def test_parse_plan_of_blank_reply_has_no_steps() -> None:
    plan = parse_plan("   ")

    assert plan.steps == ()


def test_parse_bullets_accepts_numbered_and_star_markers() -> None:
    text = "Intro line\n1. first\n* third\n10.fourth"

    assert parse_bullets(text) == ["first", "third", "fourth"]


def test_strip_code_fence_requires_closing_fence() -> None:
    assert strip_code_fence("```json\n{}") == "```json\n{}"
    assert strip_code_fence("```\n{}\n```") == "{}"
    assert strip_code_fence("plain") == "plain"


def test_parse_plan_single_step_json_keeps_goal() -> None:
    raw = (
        '{"goal":"完成任务","steps":[{"id":"s1","title":"读取文件","reason":"...",'
        '"risk":"low","requires_approval":false}]}'
    )

    plan = parse_plan(raw)

    assert plan.goal == "完成任务"
    assert [step.title for step in plan.steps] == ["读取文件"]


def test_parse_plan_mixed_bullets_keep_order() -> None:
    plan = parse_plan("- step a\n- step b\n3. step c")

    assert [step.title for step in plan.steps] == ["step a", "step b", "step c"]


def test_parse_bullets_skips_horizontal_rules() -> None:
    plan = parse_plan("Plan:\n---\n- a\n- b\n***")

    assert [step.title for step in plan.steps] == ["a", "b"]
