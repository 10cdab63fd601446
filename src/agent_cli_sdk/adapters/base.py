"""Shared execute pipeline for vendor CLI adapters."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from agent_cli_sdk.adapters.detection import detect_cli
from agent_cli_sdk.adapters.stream import EventTranslator, JsonlStreamParser
from agent_cli_sdk.audit import write_execution_log
from agent_cli_sdk.errors import (
    AuthenticationError,
    CliNotFoundError,
    ParseError,
    ValidationError,
)
from agent_cli_sdk.extraction import safe_parse
from agent_cli_sdk.failure_classifier import classify_failure
from agent_cli_sdk.models import (
    AdapterCapabilities,
    ExecutionMetadata,
    ExecutionOptions,
    ExecutionResponse,
    ExecutionStatus,
    RawOutput,
    ResponseError,
    SpawnResult,
)
from agent_cli_sdk.process import DEFAULT_GRACE_SECONDS, ProcessRunner
from agent_cli_sdk.usage import extract_textual_usage

if TYPE_CHECKING:
    from agent_cli_sdk.adapters.session import AdapterSession

logger = logging.getLogger(__name__)

SUPPORTED_IMAGE_EXTENSIONS: frozenset[str] = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})
_SECRET_MARKERS = ("KEY", "TOKEN", "SECRET", "PASSWORD")


class BaseAdapter:
    """Template for one vendor CLI.

    Subclasses set the class attributes and implement :meth:`build_args`,
    :meth:`create_translator` and :meth:`final_text`; everything else
    (validation, spawning, streaming, error mapping, audit) is shared.
    """

    name: str = ""
    cli_name: str = ""
    cli_path_env_vars: tuple[str, ...] = ()
    capabilities = AdapterCapabilities(
        streaming=True,
        session_management=True,
        tool_calling=True,
        multi_modal=False,
    )
    default_options = ExecutionOptions()

    def __init__(
        self,
        *,
        cli_path: str | None = None,
        env: Mapping[str, str] | None = None,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        runner: ProcessRunner | None = None,
    ) -> None:
        resolved = cli_path or detect_cli(self.cli_name, env_vars=self.cli_path_env_vars)
        if resolved is None:
            raise CliNotFoundError(self.cli_name)
        self.cli_path = resolved
        self._env_overrides: dict[str, str] = dict(env or {})
        self._runner = runner or ProcessRunner(grace_seconds=grace_seconds)

    def get_capabilities(self) -> AdapterCapabilities:
        return self.capabilities

    def create_session(
        self,
        options: ExecutionOptions | None = None,
        *,
        queue_size: int = 256,
    ) -> AdapterSession:
        from agent_cli_sdk.adapters.session import AdapterSession  # noqa: PLC0415

        return AdapterSession(self, options, queue_size=queue_size)

    def execute(self, prompt: str, options: ExecutionOptions | None = None) -> ExecutionResponse:
        """Run one prompt to completion and return the normalized response."""

        resolved = self.default_options.merged_with(options)
        self.validate(prompt, resolved)
        args = self.build_args(prompt, resolved)
        env = self.build_env()

        input_payload: dict[str, Any] = {
            "timestamp": time.time(),
            "adapter": self.name,
            "prompt": prompt,
            "options": resolved.to_log_dict(),
            "args": args,
        }
        translator = self.create_translator()
        parser = JsonlStreamParser(
            translator,
            on_output=resolved.on_output,
            on_event=resolved.on_event,
        )
        logger.debug(
            "Executing %s (model=%s, session=%s, env overrides=%s)",
            self.name,
            resolved.model,
            resolved.session_id,
            redact_env(self._env_overrides),
        )
        try:
            spawn = self._runner.spawn(
                self.cli_path,
                args=args,
                cwd=resolved.working_dir,
                env=env,
                timeout_seconds=resolved.timeout_seconds,
                on_stdout=parser.feed,
            )
            parser.flush()
            response = self._finalize(resolved, spawn, parser)
        except Exception as error:
            if resolved.log_path is not None:
                write_execution_log(resolved.log_path, input_payload=input_payload, error=error)
            raise

        if resolved.log_path is not None:
            write_execution_log(
                resolved.log_path,
                input_payload=input_payload,
                output_payload=response.to_log_dict(),
            )
        return response

    def validate(self, prompt: str, options: ExecutionOptions) -> None:
        """Reject invalid prompt/option combinations before anything is spawned."""

        if not isinstance(prompt, str) or not prompt.strip():
            raise ValidationError("Prompt must be a non-empty string.")
        if options.resume and options.continue_session:
            raise ValidationError("Options 'resume' and 'continue_session' are mutually exclusive.")
        if options.resume and not options.session_id:
            raise ValidationError("Option 'resume' requires 'session_id'.")
        if options.timeout_seconds is not None and options.timeout_seconds <= 0:
            raise ValidationError("Option 'timeout_seconds' must be > 0.")
        schema = options.response_schema
        if schema is not None and schema is not False and schema is not True:
            if not callable(getattr(schema, "safe_parse", None)):
                raise ValidationError(
                    "Option 'response_schema' must be True or an object with a safe_parse method.",
                )
        if options.images:
            self._validate_images(options.images)

    def build_args(self, prompt: str, options: ExecutionOptions) -> list[str]:
        raise NotImplementedError

    def create_translator(self) -> EventTranslator:
        raise NotImplementedError

    def final_text(
        self,
        translator: EventTranslator,
        parser: JsonlStreamParser,
        stdout: str,
    ) -> str:
        """Answer text; raw stdout counts only when no JSON event was parsed."""

        raise NotImplementedError

    def build_env(self) -> dict[str, str]:
        env = os.environ.copy()
        env.update(self._env_overrides)
        return env

    def _validate_images(self, images: tuple[str, ...]) -> None:
        if not self.capabilities.multi_modal:
            raise ValidationError(f"The {self.name} adapter does not accept images.")
        for image in images:
            if Path(image).suffix.lower() not in SUPPORTED_IMAGE_EXTENSIONS:
                supported = ", ".join(sorted(SUPPORTED_IMAGE_EXTENSIONS))
                raise ValidationError(
                    f"Unsupported image format: {image}. Supported: {supported}",
                )

    def _finalize(
        self,
        options: ExecutionOptions,
        spawn: SpawnResult,
        parser: JsonlStreamParser,
    ) -> ExecutionResponse:
        translator = parser.translator
        text = self.final_text(translator, parser, spawn.stdout)
        failed = spawn.exit_code != 0 or translator.vendor_error
        status = ExecutionStatus.ERROR if failed else ExecutionStatus.SUCCESS

        error: ResponseError | None = None
        if failed:
            error = self._response_error(translator, spawn)

        output: Any = text
        schema = options.response_schema
        if not failed and schema is not None and schema is not False:
            if not text.strip():
                raise ParseError(
                    f"{self.name} produced no output to parse as structured JSON",
                    raw=text,
                )
            output = safe_parse(text, None if schema is True else schema)

        return ExecutionResponse(
            output=output,
            session_id=translator.session_id or options.session_id,
            status=status,
            exit_code=spawn.exit_code,
            duration_ms=spawn.duration_ms,
            usage=translator.usage.usage() or extract_textual_usage(spawn.stderr),
            model_usage=translator.usage.model_usage(),
            total_cost_usd=translator.usage.total_cost_usd,
            raw=RawOutput(stdout=spawn.stdout, stderr=spawn.stderr),
            error=error,
            metadata=ExecutionMetadata(
                model=translator.model or options.model,
                tools_used=list(translator.tools_used),
                files_modified=list(translator.files_modified),
            ),
        )

    def _response_error(self, translator: EventTranslator, spawn: SpawnResult) -> ResponseError:
        error_text = "\n".join(translator.error_messages)
        classification = classify_failure(
            agent=self.name,
            error_text=error_text,
            stderr=spawn.stderr,
        )
        message = (
            error_text
            or spawn.stderr.strip()
            or f"{self.cli_name} exited with code {spawn.exit_code}"
        )
        if classification.is_authentication_failure:
            raise AuthenticationError(
                self.cli_name,
                f"Authentication failed for {self.cli_name}: {message}",
            )
        logger.info(
            "%s run failed (exit=%s, class=%s)",
            self.name,
            spawn.exit_code,
            classification.failure_class.value,
        )
        return ResponseError(
            code=classification.error_code,
            message=message,
            details=classification.to_details(agent=self.name, exit_code=spawn.exit_code),
        )


def redact_env(env: Mapping[str, str]) -> dict[str, str]:
    """Copy of ``env`` with secret-looking values masked."""

    return {
        key: "***" if any(marker in key.upper() for marker in _SECRET_MARKERS) else value
        for key, value in env.items()
    }
