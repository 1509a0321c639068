"""Anthropic-backed synthesis engine returning a structured payload via instructor."""

from __future__ import annotations

import instructor
import structlog
from anthropic import APIConnectionError, APIStatusError, APITimeoutError, AsyncAnthropic
from instructor.exceptions import InstructorRetryException

from market_intel_agents.observability.cost_tracker import extract_token_usage
from market_intel_agents.tools.retry import RetryPolicy
from market_intel_core.exceptions import SynthesisEngineError
from market_intel_core.interfaces.synthesis import SynthesisPrompt, SynthesisResult
from market_intel_core.models.analysis import SynthesisPayload

logger = structlog.get_logger()

# Connection-level failures only: the payload itself is never re-requested
TRANSPORT_RETRY = RetryPolicy(
    max_attempts=2,
    base_delay=2.0,
    max_delay=10.0,
    retry_on=(APIConnectionError, APITimeoutError),
)


class AnthropicSynthesisEngine:
    """Single-shot completion parsed into a lenient SynthesisPayload."""

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = 4096,
        retry_policy: RetryPolicy = TRANSPORT_RETRY,
    ) -> None:
        """Initialize the Anthropic client wrapped by instructor."""
        self._client = AsyncAnthropic(api_key=api_key)
        self._instructor = instructor.from_anthropic(self._client)
        self._model = model
        self._max_tokens = max_tokens
        self._retry = retry_policy

    @property
    def model(self) -> str:
        return self._model

    async def complete(self, prompt: SynthesisPrompt) -> SynthesisResult:
        """Run one completion; transport errors surface as SynthesisEngineError."""

        async def _do_call() -> SynthesisPayload:
            payload: SynthesisPayload = await self._instructor.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                system=prompt.system,
                messages=[{"role": "user", "content": prompt.user}],
                response_model=SynthesisPayload,
                max_retries=1,
            )
            return payload

        try:
            payload = await self._retry.call(_do_call)
        except (APIConnectionError, APITimeoutError, APIStatusError) as e:
            raise SynthesisEngineError(f"synthesis call failed: {e}") from e
        except InstructorRetryException as e:
            raise SynthesisEngineError(f"synthesis payload could not be parsed: {e}") from e

        input_tokens, output_tokens = extract_token_usage(payload)
        logger.debug(
            "synthesis_call_complete",
            model=self._model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        return SynthesisResult(
            payload=payload,
            model=self._model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
