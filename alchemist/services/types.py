"""
Value types shared by the dispatch layer.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class GenerationRequest:
    """One logical generation: a prompt plus candidate models in priority order."""

    prompt: str
    models: tuple[str, ...] = field(default_factory=tuple)
    temperature: float = 0.7
    max_output_tokens: int = 64


@dataclass(frozen=True)
class MergeOutcome:
    """Normalized result of a merge.

    ``text`` is None when the backend answered that no sensible combination
    exists. That is a real, cacheable answer and not a failure.
    """

    text: str | None

    @property
    def is_no_result(self) -> bool:
        return self.text is None

    @classmethod
    def no_result(cls) -> "MergeOutcome":
        return cls(text=None)
