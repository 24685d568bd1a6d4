"""
REQUEST PIPELINE
================
Ordered security stages run in front of every route.

FLOW:
- SecurityPipelineMiddleware builds a RequestContext from the request.
- SecurityPipeline runs the named stages in list order; the first stage that
  raises an ApiError ends the request with that error; any other failure
  becomes a 500 that still carries the collected headers.
- Sanitized body/query/params are published on request.state for handlers.
- Collected response headers (hardening, quotas) go on every response.

WHY:
- Stage order is data: it can be inspected and tested as a list, and each
  stage can be tested on its own with a bare context.

HOW:
- Stages are plain callables (sync or async) taking the context.
- Stages that return new structures replace ctx.body/query/params; the
  request's own objects are never mutated in place.
"""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Sequence

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

from Security.error_handling import ApiError, ValidationFailure, error_response, internal_failure_for
from Security.headers_hardening import apply_response_headers, harden_headers
from Security.input_length_limits import check_body_length, make_size_guard
from Security.nosql_security import sanitize_keys
from Security.parameter_pollution import normalize_parameters
from Security.rate_limiting import client_key, is_api_request, is_sensitive_request, make_limiter_stage
from Security.sql_injection import detect_injection
from Security.xss_protection import sanitize_content

logger = logging.getLogger("security.pipeline")

EXEMPT_PATHS = frozenset({"/health"})
BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


@dataclass
class RequestContext:
    method: str
    path: str
    client_key: str
    headers: dict[str, str] = field(default_factory=dict)
    query_pairs: list[tuple[str, str]] = field(default_factory=list)
    params: dict[str, Any] = field(default_factory=dict)
    body_reader: Callable[[], Awaitable[bytes]] | None = None
    form_reader: Callable[[], Awaitable[Any]] | None = None
    body: Any = None
    body_is_form: bool = False
    query: dict[str, Any] = field(default_factory=dict)
    response_headers: dict[str, str] = field(default_factory=dict)

    @property
    def exempt(self) -> bool:
        return self.path in EXEMPT_PATHS


@dataclass(frozen=True)
class PipelineStage:
    name: str
    handler: Callable[[RequestContext], Any]
    skip_exempt: bool = True


class SecurityPipeline:
    def __init__(self, stages: Sequence[PipelineStage]):
        self.stages = list(stages)

    @property
    def names(self) -> list[str]:
        return [stage.name for stage in self.stages]

    async def run(self, ctx: RequestContext) -> None:
        for stage in self.stages:
            if stage.skip_exempt and ctx.exempt:
                continue
            result = stage.handler(ctx)
            if inspect.isawaitable(result):
                await result


def _json_object_pairs(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    # Repeated JSON keys collapse to the last occurrence.
    return dict(pairs)


def make_body_parser(max_json_bytes: int):
    async def parse_body(ctx: RequestContext) -> None:
        if ctx.method not in BODY_METHODS or ctx.body_reader is None:
            ctx.body = {}
            return
        raw = await ctx.body_reader()
        check_body_length(raw, max_json_bytes)
        content_type = ctx.headers.get("content-type", "").split(";")[0].strip().lower()
        if not raw.strip():
            ctx.body = {}
        elif content_type == "application/x-www-form-urlencoded" and ctx.form_reader is not None:
            # Starlette parses from the body already read above.
            form_data = await ctx.form_reader()
            form: dict[str, Any] = {}
            for key, value in form_data.multi_items():
                form.setdefault(key, []).append(value)
            ctx.body = {key: values[0] if len(values) == 1 else values for key, values in form.items()}
            ctx.body_is_form = True
        else:
            try:
                ctx.body = json.loads(raw, object_pairs_hook=_json_object_pairs)
            except (ValueError, UnicodeDecodeError, RecursionError):
                raise ValidationFailure(error="Malformed JSON body", message="Request body is not valid JSON")

    return parse_body


def build_default_pipeline(limiters: dict, settings: dict) -> SecurityPipeline:
    return SecurityPipeline([
        PipelineStage("header-hardener", harden_headers, skip_exempt=False),
        PipelineStage("size-guard", make_size_guard(settings["MAX_BODY_BYTES"]), skip_exempt=False),
        PipelineStage("body-parser", make_body_parser(settings["MAX_JSON_BYTES"])),
        PipelineStage("parameter-normalizer", normalize_parameters),
        PipelineStage("key-sanitizer", sanitize_keys),
        PipelineStage("content-sanitizer", sanitize_content),
        PipelineStage("injection-detector", detect_injection),
        PipelineStage("general-limiter", make_limiter_stage(limiters["general"])),
        PipelineStage("api-limiter", make_limiter_stage(limiters["api"], is_api_request)),
        PipelineStage("sensitive-limiter", make_limiter_stage(limiters["sensitive"], is_sensitive_request)),
    ])


def match_path_params(request) -> dict[str, Any]:
    app = request.scope.get("app")
    router = getattr(app, "router", None)
    for route in getattr(router, "routes", []):
        match, child_scope = route.matches(request.scope)
        if match == Match.FULL:
            return dict(child_scope.get("path_params", {}))
    return {}


class SecurityPipelineMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, pipeline: SecurityPipeline, trust_proxy: bool = False):
        super().__init__(app)
        self.pipeline = pipeline
        self.trust_proxy = trust_proxy

    def build_context(self, request) -> RequestContext:
        return RequestContext(
            method=request.method,
            path=request.url.path,
            client_key=client_key(
                request.client.host if request.client else None,
                request.headers.get("x-forwarded-for"),
                self.trust_proxy,
            ),
            headers={k.lower(): v for k, v in request.headers.items()},
            query_pairs=list(request.query_params.multi_items()),
            params=match_path_params(request),
            body_reader=request.body,
            form_reader=request.form,
        )

    async def dispatch(self, request, call_next):
        ctx = self.build_context(request)
        try:
            await self.pipeline.run(ctx)
        except ApiError as exc:
            logger.info(
                "Request rejected: method=%s path=%s status=%s error=%s ip=%s",
                ctx.method, ctx.path, exc.status_code, exc.error, ctx.client_key,
            )
            return error_response(exc, ctx.response_headers)
        except Exception as exc:
            logger.exception("Pipeline stage failed: method=%s path=%s ip=%s", ctx.method, ctx.path, ctx.client_key)
            return error_response(internal_failure_for(exc), ctx.response_headers)

        request.state.body = ctx.body
        request.state.query = ctx.query
        request.state.params = ctx.params
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception("Unhandled error: method=%s path=%s ip=%s", ctx.method, ctx.path, ctx.client_key)
            return error_response(internal_failure_for(exc), ctx.response_headers)
        apply_response_headers(response, ctx.response_headers)
        return response
