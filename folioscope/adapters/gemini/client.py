"""
Gemini Client - Unified Google Gemini API client.

This is the SINGLE source of truth for all Gemini API interactions.

Authentication:
- Uses an API key when one is configured (GOOGLE_API_KEY)
- Otherwise Application Default Credentials
  (`gcloud auth application-default login`)

Features:
- Async operations (SDK calls run in worker threads)
- Rate limiting (60 RPM default)
- Automatic retries with exponential backoff
- Structured output validated against Pydantic models
- LLM-as-judge evaluation and iterative refinement
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Mapping
from typing import Any, TypeVar

import google.generativeai as genai
from pydantic import BaseModel, ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from folioscope.config.errors import ErrorCode, LLMError

from .models import (
    EvaluationResult,
    GeminiConfig,
    GeminiResponse,
    RefineResult,
    ThinkingLevel,
)

logger = logging.getLogger(__name__)

__all__ = ["GeminiClient", "RateLimitError", "GeminiAPIError", "DEFAULT_EVAL_CRITERIA"]

SchemaT = TypeVar("SchemaT", bound=BaseModel)

DEFAULT_EVAL_CRITERIA: dict[str, str] = {
    "accuracy": "Is the output factually correct and faithful to the input?",
    "completeness": "Does the output address everything the task asks for?",
}

EVALUATION_OBJECTIVE = """You are a rigorous evaluator assessing AI outputs for quality and correctness.

Carefully analyze the ORIGINAL TASK and the OUTPUT TO EVALUATE.
Be skeptical - do not assume correctness without verification.

Evaluate the output against EACH of these criteria (0.0 to 1.0):
{criteria}

Scoring guidelines:
- 0.9-1.0: Excellent - no issues, fully meets criterion
- 0.7-0.9: Good - minor issues
- 0.5-0.7: Acceptable - some issues
- 0.3-0.5: Poor - significant issues
- 0.0-0.3: Failing - does not meet criterion

Output requirements:
- Include one entry in "criteria" for EACH criterion listed above
- "overall_score" is the weighted average of the criteria scores
- "correct" is false if ANY high-severity issue exists
- List issues from most to least severe (empty list if none)"""

REFINEMENT_OBJECTIVE = """You are an expert editor who improves outputs based on evaluation feedback.

Original objective:
{objective}

This is refinement iteration {iteration}.
Address ALL reported issues, keep everything that is already correct,
and do not introduce new errors. Be conservative - only change what needs to change."""

REFINEMENT_PROMPT = """<original_task>
{task}
</original_task>

<current_output>
{output}
</current_output>

<evaluation_issues>
{issues}
</evaluation_issues>

Generate a refined version of the output that resolves the evaluation issues
while keeping correct content."""


class GeminiAPIError(LLMError):
    """
    Gemini API error.

    Carries the HTTP status and response body when the SDK exposes them,
    plus a sanitized description of the request (no image bytes).
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        request: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.LLM_UNAVAILABLE,
    ) -> None:
        self.status_code = status_code
        self.response_body = response_body
        self.request = request or {}
        details: dict[str, Any] = {"request": self.request}
        if status_code is not None:
            details["status_code"] = status_code
        if response_body is not None:
            details["response_body"] = response_body
        super().__init__(message, details, code=code)


class RateLimitError(GeminiAPIError):
    """Rate limit exceeded."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, code=ErrorCode.LLM_RATE_LIMITED, **kwargs)


def _error_context(error: Exception) -> tuple[int | None, str | None]:
    """Pull HTTP status and response body from a google-api-core error."""
    status = getattr(error, "code", None)
    if not isinstance(status, int):
        status = None
    body = None
    response = getattr(error, "response", None)
    if response is not None:
        body = getattr(response, "text", None)
    if body is None and getattr(error, "errors", None):
        body = str(error.errors)
    return status, body


def _parse_json(text: str) -> Any:
    """Parse JSON, falling back to the outermost object embedded in prose."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}") + 1
        if start >= 0 and end > start:
            return json.loads(text[start:end])
        raise


class GeminiClient:
    """
    Unified Gemini API client.

    Example:
        >>> client = GeminiClient()
        >>> response = await client.generate("Summarise this page")
        >>> print(response.text)

        >>> # Structured output
        >>> title = await client.ask_structured(TitleResponse, "Infer the title ...")
    """

    def __init__(
        self,
        config: GeminiConfig | None = None,
    ) -> None:
        """
        Initialize Gemini client.

        Args:
            config: Client configuration. Uses defaults if None.
        """
        self.config = config or GeminiConfig()

        if self.config.api_key:
            genai.configure(api_key=self.config.api_key)

        # Rate limiting state
        self._request_times: list[float] = []
        self._rate_lock = asyncio.Lock()

        # Model instances keyed by (model name, response mime type)
        self._models: dict[tuple[str, str], genai.GenerativeModel] = {}

        logger.info(
            "GeminiClient initialized: model=%s, thinking=%s",
            self.config.model,
            self.config.thinking_level.value,
        )

    def _get_model(
        self,
        model_name: str | None = None,
        response_mime_type: str = "text/plain",
    ) -> genai.GenerativeModel:
        """Get or create model instance."""
        name = model_name or self.config.model
        key = (name, response_mime_type)
        if key not in self._models:
            generation_config: dict[str, Any] = {
                "temperature": self.config.temperature,
                "max_output_tokens": self.config.max_output_tokens,
                "response_mime_type": response_mime_type,
            }

            if self.config.thinking_level != ThinkingLevel.NONE:
                generation_config["thinking_config"] = {
                    "thinking_budget": self._thinking_budget()
                }

            self._models[key] = genai.GenerativeModel(
                model_name=name,
                generation_config=generation_config,
            )
        return self._models[key]

    def _thinking_budget(self) -> int:
        """Get thinking token budget based on level."""
        budgets = {
            ThinkingLevel.NONE: 0,
            ThinkingLevel.LOW: 1024,
            ThinkingLevel.MEDIUM: 4096,
            ThinkingLevel.HIGH: 16384,
        }
        return budgets.get(self.config.thinking_level, 8192)

    async def _check_rate_limit(self) -> None:
        """Enforce rate limiting."""
        async with self._rate_lock:
            now = time.time()
            # Remove requests older than 1 minute
            self._request_times = [t for t in self._request_times if now - t < 60]

            if len(self._request_times) >= self.config.rate_limit_rpm:
                wait_time = 60 - (now - self._request_times[0])
                if wait_time > 0:
                    logger.warning("Rate limit reached, waiting %.1fs", wait_time)
                    await asyncio.sleep(wait_time)

            self._request_times.append(now)

    async def generate(
        self,
        prompt: str,
        system_instruction: str | None = None,
        response_mime_type: str = "text/plain",
        image: bytes | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
    ) -> GeminiResponse:
        """
        Generate text from prompt, retrying rate limits and dropped connections.

        Args:
            prompt: User prompt
            system_instruction: Optional system instruction
            response_mime_type: Response format ("text/plain" or "application/json")
            image: Optional PNG bytes sent alongside the prompt
            model: Model override (defaults to config.model)
            timeout_seconds: Per-call timeout override

        Returns:
            GeminiResponse with generated text

        Raises:
            GeminiAPIError: API call failed
            RateLimitError: Rate limit still exceeded after retries
        """
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type((RateLimitError, ConnectionError)),
            stop=stop_after_attempt(self.config.max_retries),
            wait=wait_exponential(
                multiplier=1,
                min=self.config.retry_min_wait_seconds,
                max=self.config.retry_max_wait_seconds,
            ),
            reraise=True,
        ):
            with attempt:
                return await self._generate_once(
                    prompt,
                    system_instruction=system_instruction,
                    response_mime_type=response_mime_type,
                    image=image,
                    model=model,
                    timeout_seconds=timeout_seconds,
                )
        raise AssertionError("unreachable")  # pragma: no cover

    async def _generate_once(
        self,
        prompt: str,
        system_instruction: str | None,
        response_mime_type: str,
        image: bytes | None,
        model: str | None,
        timeout_seconds: float | None,
    ) -> GeminiResponse:
        await self._check_rate_limit()

        model_name = model or self.config.model
        timeout = timeout_seconds or self.config.timeout_seconds
        request_info = {
            "model": model_name,
            "timeout_seconds": timeout,
            "response_mime_type": response_mime_type,
            "system_instruction_chars": len(system_instruction or ""),
            "prompt_chars": len(prompt),
            "image_bytes": len(image) if image is not None else None,
        }

        try:
            generative_model = self._get_model(model_name, response_mime_type)

            # Build content
            contents: list[dict[str, Any]] = []
            if system_instruction:
                contents.append({"role": "user", "parts": [system_instruction]})
                contents.append({"role": "model", "parts": ["Understood."]})
            parts: list[Any] = [prompt]
            if image is not None:
                parts.append({"mime_type": "image/png", "data": image})
            contents.append({"role": "user", "parts": parts})

            response = await asyncio.to_thread(
                generative_model.generate_content,
                contents,
                request_options={"timeout": timeout},
            )

            text = response.text if hasattr(response, "text") else str(response)

            # Get usage stats
            usage = getattr(response, "usage_metadata", None)
            prompt_tokens = getattr(usage, "prompt_token_count", 0) if usage else 0
            completion_tokens = (
                getattr(usage, "candidates_token_count", 0) if usage else 0
            )

            return GeminiResponse(
                text=text,
                model=model_name,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            )

        except ConnectionError:
            raise
        except Exception as e:
            status, body = _error_context(e)
            error_msg = str(e).lower()
            if status == 429 or "429" in error_msg or "rate" in error_msg:
                raise RateLimitError(
                    f"Rate limit exceeded: {e}",
                    status_code=status,
                    response_body=body,
                    request=request_info,
                ) from e
            raise GeminiAPIError(
                f"Gemini API error: {e}",
                status_code=status,
                response_body=body,
                request=request_info,
            ) from e

    async def generate_json(
        self,
        prompt: str,
        system_instruction: str | None = None,
        image: bytes | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
    ) -> Any:
        """
        Generate JSON response.

        Returns:
            Parsed JSON value

        Raises:
            LLMError: Response was not valid JSON
        """
        response = await self.generate(
            prompt=prompt,
            system_instruction=system_instruction,
            response_mime_type="application/json",
            image=image,
            model=model,
            timeout_seconds=timeout_seconds,
        )

        try:
            return _parse_json(response.text)
        except json.JSONDecodeError as e:
            raise LLMError(
                f"Model returned invalid JSON: {e}",
                details={"model": response.model, "response_body": response.text[:2000]},
                code=ErrorCode.LLM_INVALID_RESPONSE,
            ) from e

    async def ask_structured(
        self,
        schema: type[SchemaT],
        prompt: str,
        system_instruction: str | None = None,
        image: bytes | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
    ) -> SchemaT:
        """
        Generate a response validated against a Pydantic model.

        The model's JSON schema is appended to the prompt.

        Args:
            schema: Pydantic model the response must conform to
            prompt: User prompt
            system_instruction: Optional system instruction
            image: Optional PNG bytes
            model: Model override
            timeout_seconds: Per-call timeout override

        Returns:
            Validated instance of ``schema``

        Raises:
            LLMError: Response did not match the schema
        """
        full_prompt = (
            f"{prompt}\n\nRespond with a single JSON object matching this JSON schema:\n"
            f"{json.dumps(schema.model_json_schema())}"
        )
        data = await self.generate_json(
            full_prompt,
            system_instruction=system_instruction,
            image=image,
            model=model,
            timeout_seconds=timeout_seconds,
        )

        try:
            return schema.model_validate(data)
        except ValidationError as e:
            raise LLMError(
                f"Response does not match {schema.__name__}: {e.error_count()} validation errors",
                details={"model": model or self.config.model, "errors": str(e)},
                code=ErrorCode.LLM_INVALID_RESPONSE,
            ) from e

    async def evaluate(
        self,
        task: str,
        output: str,
        criteria: Mapping[str, str] | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
    ) -> EvaluationResult:
        """
        Score an output with LLM-as-judge.

        Args:
            task: Description of what the output was supposed to achieve
            output: The output to evaluate, rendered as text
            criteria: Criterion name -> question the critic answers
            model: Critic model override

        Returns:
            EvaluationResult with overall score, correctness flag, summary and issues
        """
        criteria = criteria or DEFAULT_EVAL_CRITERIA
        criteria_list = "\n".join(f"- {name}: {question}" for name, question in criteria.items())

        result = await self.ask_structured(
            EvaluationResult,
            f"<original_task>\n{task}\n</original_task>\n\n"
            f"<output_to_evaluate>\n{output}\n</output_to_evaluate>",
            system_instruction=EVALUATION_OBJECTIVE.format(criteria=criteria_list),
            model=model,
            timeout_seconds=timeout_seconds,
        )

        logger.debug(
            "Evaluation: overall=%.2f, correct=%s, issues=%d",
            result.overall_score,
            result.correct,
            len(result.issues),
        )
        return result

    async def refine(
        self,
        schema: type[SchemaT],
        prompt: str,
        system_instruction: str | None = None,
        image: bytes | None = None,
        model: str | None = None,
        iterations: int = 1,
        threshold: float = 0.8,
        criteria: Mapping[str, str] | None = None,
        timeout_seconds: float | None = None,
    ) -> RefineResult[SchemaT]:
        """
        Generate a structured output, then evaluate and improve it.

        Stops as soon as the evaluation score reaches ``threshold`` or after
        ``iterations`` improvement rounds.

        Returns:
            RefineResult with the final output and convergence metadata
        """
        current = await self.ask_structured(
            schema,
            prompt,
            system_instruction=system_instruction,
            image=image,
            model=model,
            timeout_seconds=timeout_seconds,
        )
        rounds = 0
        converged = False
        final_score: float | None = None

        while True:
            rendered = current.model_dump_json(exclude_none=True)
            evaluation = await self.evaluate(
                task=prompt,
                output=rendered,
                criteria=criteria,
                model=model,
                timeout_seconds=timeout_seconds,
            )
            final_score = evaluation.overall_score
            if final_score >= threshold:
                converged = True
                break
            if rounds >= iterations:
                break

            rounds += 1
            logger.info(
                "Refinement round %d/%d (score=%.2f < %.2f)",
                rounds,
                iterations,
                final_score,
                threshold,
            )
            issues = "\n".join(
                f"- [{issue.severity}] {issue.issue}"
                + (f" (fix: {issue.mitigation})" if issue.mitigation else "")
                for issue in evaluation.issues
            ) or f"- {evaluation.summary or 'Quality below threshold'}"
            current = await self.ask_structured(
                schema,
                REFINEMENT_PROMPT.format(task=prompt, output=rendered, issues=issues),
                system_instruction=REFINEMENT_OBJECTIVE.format(
                    objective=system_instruction or "", iteration=rounds
                ),
                image=image,
                model=model,
                timeout_seconds=timeout_seconds,
            )

        return RefineResult(
            result=current,
            final_score=final_score,
            iterations_count=rounds,
            converged=converged,
        )
