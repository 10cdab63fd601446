"""Token usage and cost accounting from vendor event streams."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from agent_cli_sdk.models import ModelUsage, TokenUsage

_TOKENS_USED = re.compile(r"tokens used\s*[:\r\n ]+\s*([\d,]+)", re.IGNORECASE)
_INPUT_TOKENS = re.compile(r"input[_ ]tokens?\s*[:=]\s*([\d,]+)", re.IGNORECASE)
_OUTPUT_TOKENS = re.compile(r"(?:output|completion)[_ ]tokens?\s*[:=]\s*([\d,]+)", re.IGNORECASE)


class UsageAccumulator:
    """Collects usage while events stream in.

    Per-message usage is summed as it arrives; a vendor-reported turn summary
    (``report_totals``) replaces the running sums for that turn.
    """

    def __init__(self) -> None:
        self._input_tokens = 0
        self._output_tokens = 0
        self._models: dict[str, ModelUsage] = {}
        self._seen = False
        self._reported: TokenUsage | None = None
        self.total_cost_usd: float | None = None

    def add(self, usage: Mapping[str, Any], *, model: str | None = None) -> None:
        """Add one message-level usage mapping (snake_case vendor keys)."""

        input_tokens = _as_int(usage.get("input_tokens"))
        output_tokens = _as_int(usage.get("output_tokens"))
        self._seen = True
        self._input_tokens += input_tokens
        self._output_tokens += output_tokens
        if model:
            entry = self._models.setdefault(model, ModelUsage(model=model))
            entry.input_tokens += input_tokens
            entry.output_tokens += output_tokens
            entry.total_tokens += input_tokens + output_tokens

    def report_totals(self, usage: Mapping[str, Any]) -> None:
        """Record a turn-level summary; summaries of several turns add up."""

        input_tokens = _as_int(usage.get("input_tokens"))
        output_tokens = _as_int(usage.get("output_tokens"))
        total_tokens = _as_int(usage.get("total_tokens")) or input_tokens + output_tokens
        self._seen = True
        if self._reported is None:
            self._reported = TokenUsage()
        self._reported.input_tokens += input_tokens
        self._reported.output_tokens += output_tokens
        self._reported.total_tokens += total_tokens

    def report_model_usage(self, model_usage: Mapping[str, Any]) -> None:
        """Replace per-model figures with a vendor summary (camelCase keys)."""

        for model, raw in model_usage.items():
            if not isinstance(raw, Mapping):
                continue
            input_tokens = _as_int(raw.get("inputTokens"))
            output_tokens = _as_int(raw.get("outputTokens"))
            cost = raw.get("costUSD")
            self._models[model] = ModelUsage(
                model=model,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
                cost_usd=float(cost) if isinstance(cost, int | float) else None,
            )

    def report_cost(self, cost: Any) -> None:
        if isinstance(cost, int | float) and not isinstance(cost, bool):
            self.total_cost_usd = float(cost)

    def usage(self) -> TokenUsage | None:
        if self._reported is not None:
            return TokenUsage(
                input_tokens=self._reported.input_tokens,
                output_tokens=self._reported.output_tokens,
                total_tokens=self._reported.total_tokens,
            )
        if not self._seen or (self._input_tokens == 0 and self._output_tokens == 0):
            return None
        return TokenUsage(
            input_tokens=self._input_tokens,
            output_tokens=self._output_tokens,
            total_tokens=self._input_tokens + self._output_tokens,
        )

    def model_usage(self) -> dict[str, ModelUsage] | None:
        return dict(self._models) if self._models else None


def extract_textual_usage(text: str) -> TokenUsage | None:
    """Best-effort usage from human-readable CLI output (e.g. ``tokens used 1,234``)."""

    input_tokens = _extract_int(_INPUT_TOKENS, text)
    output_tokens = _extract_int(_OUTPUT_TOKENS, text)
    total_tokens = _extract_int(_TOKENS_USED, text)
    if input_tokens is None and output_tokens is None and total_tokens is None:
        return None
    if total_tokens is None:
        total_tokens = (input_tokens or 0) + (output_tokens or 0)
    return TokenUsage(
        input_tokens=input_tokens or 0,
        output_tokens=output_tokens or 0,
        total_tokens=total_tokens,
    )


def _extract_int(pattern: re.Pattern[str], text: str) -> int | None:
    match = pattern.search(text)
    if match is None:
        return None
    raw = match.group(1).replace(",", "").strip()
    if not raw.isdigit():
        return None
    return int(raw)


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return 0
