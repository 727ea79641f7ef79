from __future__ import annotations

import re
from dataclasses import dataclass

from agents.prompt_loader import load_prompt
from models.template import InterviewTemplate
from models.voice import InstructionSet, PacingCheckpoint


DEFAULT_DEPTH_LEVEL = "moderate"

DEPTH_INSTRUCTIONS = {
    "light": "Ask 1-2 follow-up questions per topic. Keep the interview conversational and brief.",
    "moderate": "Ask 2-3 follow-up questions per topic. Probe for specific examples when answers are vague.",
    "deep": "Ask 3-4 follow-up questions per topic. Thoroughly explore each competency with detailed probing.",
}


@dataclass(frozen=True)
class PacingRule:
    label: str
    heading: str
    directive: str
    fraction: float | None = None
    minutes_before_end: float | None = None

    def trigger_minute(self, duration: float) -> float:
        if self.fraction is not None:
            minute = duration * self.fraction
        else:
            minute = duration - (self.minutes_before_end or 0.0)
        return max(0.0, minute)


PACING_RULES = (
    PacingRule(
        label="probe_narrowing",
        heading="50% of the time used",
        fraction=0.5,
        directive=(
            "After the candidate finishes their current response, check how many competencies you "
            "have covered. If you are still on the first topic, say: \"That's great context. In the "
            "interest of time, let me shift to another area...\" and move to the next competency."
        ),
    ),
    PacingRule(
        label="wrap_up_warning",
        heading="75% of the time used",
        fraction=0.75,
        directive=(
            "After the candidate finishes their current response, begin wrapping up the competency "
            "questions: \"Excellent. We're making good progress. Let me ask one final question "
            "before we wrap up...\""
        ),
    ),
    PacingRule(
        label="qa_window",
        heading="2 minutes remaining",
        minutes_before_end=2.0,
        directive=(
            "After the candidate finishes speaking, say: \"We have about 2 minutes left. What "
            "questions do you have about the role or {company_name}?\" Answer 1-2 candidate "
            "questions briefly."
        ),
    ),
    PacingRule(
        label="final_transition",
        heading="1 minute remaining",
        minutes_before_end=1.0,
        directive=(
            "Politely wrap up any current discussion: \"That's a great question. Let me give you a "
            "brief answer...\" Then transition to closing."
        ),
    ),
    PacingRule(
        label="closing_statement",
        heading="30 seconds remaining",
        minutes_before_end=0.5,
        directive=(
            "Deliver your closing statement regardless of what's happening: \"Thank you so much for "
            "your time today{address}. The hiring team will review our conversation and be in touch "
            "about next steps.\""
        ),
    ),
)

_RULES_BY_LABEL = {rule.label: rule for rule in PACING_RULES}


_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")


def render_placeholders(text: str, values: dict[str, str]) -> str:
    """Fill ``{name}`` slots in one pass; substituted values are never re-scanned."""
    return _PLACEHOLDER_RE.sub(lambda match: values.get(match.group(1), match.group(0)), text)


def format_minutes(value: float) -> str:
    return f"{value:g}"


def resolve_depth_level(depth_level: str | None) -> str:
    value = (depth_level or "").strip().lower()
    return value if value in DEPTH_INSTRUCTIONS else DEFAULT_DEPTH_LEVEL


def _numbered(items: list[str]) -> str:
    return "\n".join(f"{idx}. {item}" for idx, item in enumerate(items, start=1))


def _first_name(candidate_name: str) -> str:
    parts = candidate_name.split()
    return parts[0] if parts else ""


class InstructionSynthesizer:
    """Builds the voice agent's system prompt and pacing schedule from a template.

    ``synthesize`` does no I/O: the base prompt is read once at construction.
    """

    def __init__(self, prompt_file: str = "interviewer_system.txt") -> None:
        self.base_prompt = load_prompt(prompt_file)

    def synthesize(self, template: InterviewTemplate, candidate_name: str) -> InstructionSet:
        candidate_name = " ".join(candidate_name.split())
        schedule = self.build_pacing_schedule(template, candidate_name)
        return InstructionSet(
            prompt=self.build_prompt(template, candidate_name, schedule),
            pacing_schedule=schedule,
        )

    def build_pacing_schedule(
        self, template: InterviewTemplate, candidate_name: str
    ) -> list[PacingCheckpoint]:
        duration = float(template.config.max_duration_minutes)
        first_name = _first_name(candidate_name)
        address = f", {first_name}" if first_name else ""

        checkpoints = [
            PacingCheckpoint(
                trigger_minute=rule.trigger_minute(duration),
                label=rule.label,
                directive=render_placeholders(
                    rule.directive, {"company_name": template.company_name, "address": address}
                ),
            )
            for rule in PACING_RULES
        ]
        # stable sort: short interviews can collapse checkpoints onto minute 0
        return sorted(checkpoints, key=lambda checkpoint: checkpoint.trigger_minute)

    def build_prompt(
        self,
        template: InterviewTemplate,
        candidate_name: str,
        schedule: list[PacingCheckpoint],
    ) -> str:
        depth_level = resolve_depth_level(template.config.depth_level)
        must_ask = [q for q in template.must_ask_questions if q.strip()]
        must_ask_section = f"MUST ASK QUESTIONS:\n{_numbered(must_ask)}" if must_ask else ""
        competencies = _numbered(template.competencies) or "- Assess general fit for the role"
        pacing_section = "\n".join(
            f"- At ~{format_minutes(checkpoint.trigger_minute)} minutes "
            f"({_RULES_BY_LABEL[checkpoint.label].heading}): {checkpoint.directive}"
            for checkpoint in schedule
        )

        values = {
            "job_title": template.job_title,
            "company_name": template.company_name,
            "competencies": competencies,
            "must_ask_section": must_ask_section,
            "depth_level": depth_level,
            "depth_instruction": DEPTH_INSTRUCTIONS[depth_level],
            "max_probes": str(template.config.max_probes_per_competency),
            "max_duration": format_minutes(float(template.config.max_duration_minutes)),
            "pacing_section": pacing_section,
            "candidate_first_name": _first_name(candidate_name) or "the candidate",
            "candidate_name": candidate_name or "Unknown",
        }
        return re.sub(r"\n{3,}", "\n\n", render_placeholders(self.base_prompt, values))

    @staticmethod
    def build_greeting(template: InterviewTemplate, candidate_name: str) -> str:
        first_name = _first_name(candidate_name)
        hello = f"Hi {first_name}, welcome!" if first_name else "Hi, welcome!"
        return (
            f"{hello} I'm AIR and I'll be conducting your interview for the {template.job_title} "
            f"role at {template.company_name}. It will take up to "
            f"{format_minutes(float(template.config.max_duration_minutes))} minutes. "
            "Are you ready to get started?"
        )
