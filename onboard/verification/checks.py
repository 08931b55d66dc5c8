"""Typed verification checks and the registry mapping type tags to them.

Each check type validates its own fields and performs one assertion
against the live system. A check never raises for an assertion that
does not hold; it returns a failed ``CheckOutcome``. Problems with the
definition itself are reported by ``validate`` so the engine can mark
the check ``errored`` without running it.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar

import requests

from onboard.errors import (
    CheckTimeoutError,
    ConfigError,
    ManifestError,
    format_field_error,
)
from onboard.execution import run_command
from onboard.paths import expand_user_path

from .models import (
    DEFAULT_CHECK_TIMEOUT,
    Backoff,
    CheckOutcome,
    Priority,
    RetryPolicy,
)

_logging = logging.getLogger(__name__)

HTTP_METHODS = {"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"}
_MAX_BODY_PREVIEW = 200


@dataclass(kw_only=True)
class Check:
    type_name: ClassVar[str] = ""

    name: str
    priority: Priority = Priority.NORMAL
    tags: frozenset[str] = frozenset()
    description: str = ""
    timeout: float = DEFAULT_CHECK_TIMEOUT
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def validate(self) -> list[str]:
        errors = []
        if self.timeout <= 0:
            errors.append(self._field_error("timeout", "must be positive"))
        return errors

    async def run(self) -> CheckOutcome:
        raise NotImplementedError

    def _field_error(self, field_name: str, issue: str) -> str:
        return format_field_error(f"Check '{self.name}'", field_name, issue)


@dataclass(kw_only=True)
class CommandCheck(Check):
    """Passes when the command exits as expected and prints the expected text."""

    type_name: ClassVar[str] = "command"

    command: str | None = None
    expected_exit_code: int = 0
    expected_output: str | None = None
    env: dict[str, str] = field(default_factory=dict)
    cwd: str | None = None

    def validate(self) -> list[str]:
        errors = super().validate()
        if not self.command or not isinstance(self.command, str):
            errors.append(self._field_error("command", "is required"))
        if not isinstance(self.expected_exit_code, int):
            errors.append(self._field_error("expected_exit_code", "must be an integer"))
        return errors

    async def run(self) -> CheckOutcome:
        outcome = await run_command(
            self.command,
            timeout=self.timeout,
            env={k: str(v) for k, v in self.env.items()} or None,
            cwd=str(expand_user_path(self.cwd)) if self.cwd else None,
        )
        if outcome.timed_out:
            raise CheckTimeoutError(self.name, self.timeout)
        if outcome.returncode != self.expected_exit_code:
            return CheckOutcome(
                False,
                f"Exit code {outcome.returncode}, expected {self.expected_exit_code}"
                + (f": {outcome.output}" if outcome.output else ""),
            )
        if self.expected_output and self.expected_output not in outcome.output:
            return CheckOutcome(
                False, f"Output does not contain '{self.expected_output}'"
            )
        return CheckOutcome(True)


@dataclass(kw_only=True)
class HttpCheck(Check):
    """Passes when the URL answers with the expected status (and body text)."""

    type_name: ClassVar[str] = "http"

    url: str | None = None
    method: str = "GET"
    expected_status: int = 200
    expected_body: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    def validate(self) -> list[str]:
        errors = super().validate()
        if not self.url or not isinstance(self.url, str):
            errors.append(self._field_error("url", "is required"))
        elif not self.url.startswith(("http://", "https://")):
            errors.append(self._field_error("url", "must start with http:// or https://"))
        if str(self.method).upper() not in HTTP_METHODS:
            errors.append(self._field_error("method", f"must be one of {', '.join(sorted(HTTP_METHODS))}"))
        if not isinstance(self.expected_status, int) or not 100 <= self.expected_status <= 599:
            errors.append(self._field_error("expected_status", "must be an HTTP status code"))
        return errors

    async def run(self) -> CheckOutcome:
        try:
            response = await asyncio.to_thread(
                requests.request,
                self.method.upper(),
                self.url,
                headers=self.headers or None,
                timeout=self.timeout,
            )
        except requests.Timeout:
            raise CheckTimeoutError(self.name, self.timeout) from None
        except requests.RequestException as e:
            return CheckOutcome(False, f"Request failed: {e}")

        if response.status_code != self.expected_status:
            return CheckOutcome(
                False,
                f"Status {response.status_code}, expected {self.expected_status}",
            )
        if self.expected_body and self.expected_body not in response.text:
            preview = response.text[:_MAX_BODY_PREVIEW]
            return CheckOutcome(
                False, f"Body does not contain '{self.expected_body}' (got: {preview!r})"
            )
        return CheckOutcome(True)


@dataclass(kw_only=True)
class PortCheck(Check):
    """Passes when a TCP connection to host:port can be opened."""

    type_name: ClassVar[str] = "port"

    port: int | None = None
    host: str = "localhost"

    def validate(self) -> list[str]:
        errors = super().validate()
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            errors.append(self._field_error("port", "is required and must be an integer"))
        elif not 1 <= self.port <= 65535:
            errors.append(self._field_error("port", "must be between 1 and 65535"))
        if not self.host:
            errors.append(self._field_error("host", "must not be empty"))
        return errors

    async def run(self) -> CheckOutcome:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            raise CheckTimeoutError(self.name, self.timeout) from None
        except OSError as e:
            return CheckOutcome(False, f"Cannot connect to {self.host}:{self.port}: {e}")
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return CheckOutcome(True)


@dataclass(kw_only=True)
class FileCheck(Check):
    """Passes when the path's existence and content match expectations."""

    type_name: ClassVar[str] = "file"

    path: str | None = None
    should_exist: bool = True
    contains: tuple[str, ...] = ()
    not_contains: tuple[str, ...] = ()

    def validate(self) -> list[str]:
        errors = super().validate()
        if not self.path or not isinstance(self.path, str):
            errors.append(self._field_error("path", "is required"))
        if not self.should_exist and (self.contains or self.not_contains):
            errors.append(
                self._field_error("contains", "cannot be combined with should_exist: false")
            )
        return errors

    async def run(self) -> CheckOutcome:
        target = expand_user_path(self.path)
        exists = target.exists()
        if exists != self.should_exist:
            if self.should_exist:
                return CheckOutcome(False, f"File not found: {target}")
            return CheckOutcome(False, f"File should not exist: {target}")
        if not exists or not (self.contains or self.not_contains):
            return CheckOutcome(True)

        try:
            content = target.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            return CheckOutcome(False, f"Cannot read {target}: {e}")
        missing = [s for s in self.contains if s not in content]
        if missing:
            return CheckOutcome(False, f"File does not contain: {', '.join(missing)}")
        present = [s for s in self.not_contains if s in content]
        if present:
            return CheckOutcome(False, f"File contains forbidden text: {', '.join(present)}")
        return CheckOutcome(True)


CHECK_TYPES: dict[str, type[Check]] = {
    CommandCheck.type_name: CommandCheck,
    HttpCheck.type_name: HttpCheck,
    PortCheck.type_name: PortCheck,
    FileCheck.type_name: FileCheck,
}

_SHARED_KEYS = {"type", "name", "priority", "tags", "description", "timeout", "retry"}
_TYPE_KEYS = {
    "command": {"command", "expected_exit_code", "expected_output", "env", "cwd"},
    "http": {"url", "method", "expected_status", "expected_body", "headers"},
    "port": {"port", "host"},
    "file": {"path", "should_exist", "exists", "contains", "not_contains"},
}


def _as_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def _parse_retry(raw: Any, entity: str) -> RetryPolicy:
    if raw is None:
        return RetryPolicy()
    if isinstance(raw, int) and not isinstance(raw, bool):
        return RetryPolicy(attempts=raw)
    if not isinstance(raw, dict):
        raise ManifestError(format_field_error(entity, "retry", "must be a mapping"))
    try:
        backoff = Backoff(str(raw.get("backoff", "linear")).lower())
    except ValueError:
        raise ManifestError(
            format_field_error(entity, "retry.backoff", "must be fixed, linear or exponential")
        ) from None
    return RetryPolicy(
        attempts=int(raw.get("attempts", 1)),
        delay=float(raw.get("delay", 1.0)),
        backoff=backoff,
    )


def _default_name(check_type: str, raw: dict[str, Any], index: int) -> str:
    target = raw.get("command") or raw.get("url") or raw.get("path")
    if check_type == "port" and raw.get("port") is not None:
        target = f"{raw.get('host', 'localhost')}:{raw.get('port')}"
    if target:
        return f"{check_type}: {target}"
    return f"{check_type} check #{index + 1}"


def build_check(raw: dict[str, Any], index: int = 0) -> Check:
    """Build a typed check from its manifest mapping.

    Raises:
        ManifestError: If the type tag is unknown or shared fields are malformed
    """
    entity = f"Check #{index + 1}"
    if not isinstance(raw, dict):
        raise ManifestError(f"{entity} must be a mapping")
    check_type = raw.get("type")
    check_cls = CHECK_TYPES.get(check_type) if isinstance(check_type, str) else None
    if check_cls is None:
        allowed = ", ".join(sorted(CHECK_TYPES))
        raise ManifestError(
            format_field_error(entity, "type", f"must be one of: {allowed} (got {check_type!r})")
        )

    unknown = set(raw) - _SHARED_KEYS - _TYPE_KEYS[check_type]
    if unknown:
        _logging.debug(f"{entity} ignoring unknown keys: {', '.join(sorted(unknown))}")

    tags = raw.get("tags") or ()
    if isinstance(tags, str):
        tags = (tags,)
    try:
        kwargs: dict[str, Any] = {
            "name": str(raw.get("name") or _default_name(check_type, raw, index)),
            "priority": Priority.parse(raw.get("priority")),
            "tags": frozenset(str(t) for t in tags),
            "description": str(raw.get("description", "")),
            "timeout": float(raw.get("timeout", DEFAULT_CHECK_TIMEOUT)),
            "retry": _parse_retry(raw.get("retry"), entity),
        }
    except (TypeError, ValueError, ConfigError) as e:
        raise ManifestError(f"{entity} is malformed: {e}") from None

    for key in _TYPE_KEYS[check_type]:
        if key not in raw:
            continue
        value = raw[key]
        if key in ("contains", "not_contains"):
            value = _as_tuple(value)
        elif key == "exists":
            key = "should_exist"
        kwargs[key] = value
    return check_cls(**kwargs)


def build_checks(raw_checks: list[dict[str, Any]]) -> list[Check]:
    return [build_check(raw, i) for i, raw in enumerate(raw_checks or [])]


__all__ = [
    "Check",
    "CommandCheck",
    "HttpCheck",
    "PortCheck",
    "FileCheck",
    "CHECK_TYPES",
    "build_check",
    "build_checks",
]
