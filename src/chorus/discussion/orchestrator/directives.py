"""
Directive Classifier.

Maps user text to a Directive using an ordered rule table. A rule matches
when the lowered text starts with `/<kind>` or contains `<kind>:`. The
first matching rule wins; no match yields a normal directive.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from ..domain.entities import Directive, DirectiveKind, DirectivePriority


@dataclass(frozen=True)
class DirectiveRule:
    """One row of the classification table."""

    kind: DirectiveKind
    instruction: str
    priority: DirectivePriority = DirectivePriority.HIGH

    @property
    def command(self) -> str:
        return f"/{self.kind.value}"

    @property
    def label(self) -> str:
        return f"{self.kind.value}:"

    def matches(self, lowered: str) -> bool:
        return lowered.startswith(self.command) or self.label in lowered


DEFAULT_RULES: tuple[DirectiveRule, ...] = (
    DirectiveRule(
        kind=DirectiveKind.PROJECT,
        priority=DirectivePriority.CRITICAL,
        instruction=(
            "PRIORITY PROJECT DIRECTIVE: Collaborate systematically to execute this "
            "request. Break down into specific tasks, assign AI responsibilities based "
            "on expertise. CodeLlama handles implementation, Mistral does architecture, "
            "Llama 3.2 3B manages coordination, others provide specialized support. "
            "Work toward concrete deliverables with clear action items."
        ),
    ),
    DirectiveRule(
        kind=DirectiveKind.CODE,
        instruction=(
            "CODE COLLABORATION REQUEST: Work together to write, review, and improve "
            "code. CodeLlama should lead implementation, Mistral provides architecture "
            "guidance, others contribute testing, documentation, and optimization "
            "suggestions. Focus on clean, working code with explanations."
        ),
    ),
    DirectiveRule(
        kind=DirectiveKind.DEBUG,
        instruction=(
            "DEBUG COLLABORATION: Analyze the provided code/error systematically. "
            "CodeLlama identifies syntax issues, Mistral examines logic flow, Llama "
            "models suggest testing approaches. Provide specific fixes and explanations."
        ),
    ),
    DirectiveRule(
        kind=DirectiveKind.REVIEW,
        instruction=(
            "CODE REVIEW SESSION: Examine the provided code for quality, security, "
            "performance, and best practices. Each AI should focus on their expertise "
            "area and provide constructive feedback with specific improvement suggestions."
        ),
    ),
    DirectiveRule(
        kind=DirectiveKind.ANALYZE,
        instruction=(
            "DOCUMENT ANALYSIS: Analyze the provided documents/files systematically. "
            "Extract key information, identify patterns, suggest improvements or "
            "implementations. Focus on actionable insights based on file content."
        ),
    ),
)

NORMAL_DIRECTIVE = Directive(
    kind=DirectiveKind.NORMAL,
    instruction=None,
    priority=DirectivePriority.NORMAL,
)


class DirectiveClassifier:
    """Classifies user text against an ordered rule table.

    Usage:
        classifier = DirectiveClassifier()
        directive = classifier.classify("/code write a parser")
        # Directive(kind=CODE, instruction="CODE COLLABORATION REQUEST: ...", priority=HIGH)
    """

    def __init__(self, rules: Optional[Iterable[DirectiveRule]] = None):
        self.rules = tuple(rules) if rules is not None else DEFAULT_RULES

    def classify(self, text: Optional[str]) -> Directive:
        if not text:
            return NORMAL_DIRECTIVE

        lowered = text.lower()
        for rule in self.rules:
            if rule.matches(lowered):
                return Directive(
                    kind=rule.kind,
                    instruction=rule.instruction,
                    priority=rule.priority,
                )

        return NORMAL_DIRECTIVE
