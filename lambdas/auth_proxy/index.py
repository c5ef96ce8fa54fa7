"""Auth proxy Lambda behind the public ALB listener.

The public listener routes the chat frontend's bootstrap API calls here
without authentication. Browsers that carry a Cognito session cookie get
their request replayed against the internal HTTPS listener, which
re-authenticates the session and forwards to the real backend. Everyone else
receives a canned payload that prompts them to sign in.

Instrumentation
---------------
* **aws_lambda_powertools.Logger**  – structured JSON logging.
* **aws_lambda_powertools.Tracer**  – X‑Ray tracing for the handler and the
  forwarded call.
* **aws_lambda_powertools.Metrics** – counts mock and forwarded requests,
  forwarding failures and other handler errors.

Environment
-----------
ALB_FQDN                 Public host name of the load balancer.
INTERNAL_LISTENER_TOKEN  Shared secret checked by the internal listener.
UNAUTHORIZED_MESSAGE     Sign-in prompt shown in the mocked chat.
UNAUTHORIZED_TITLE       Site title shown in the mocked chat.
FORWARD_TIMEOUT_SECONDS  Optional timeout for the forwarded call.
"""

from __future__ import annotations

import base64
import json
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Mapping
from urllib.parse import unquote_plus

import requests
from aws_lambda_powertools import Logger, Metrics, Tracer
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.typing import LambdaContext

from mock_responses import build_mock_body

tracer = Tracer(service="auth-proxy")
logger = Logger(service="auth-proxy")
metrics = Metrics(namespace="ChatAuthGateway", service="auth-proxy")

SESSION_COOKIE_NAME = "AWSELBAuthSessionCookie-0"
TRUST_HEADER_NAME = "X-Internal-Auth"
INTERNAL_LISTENER_PORT = 8443
JSON_CONTENT_TYPE = "application/json"

_REQUIRED_ENV = (
    "ALB_FQDN",
    "INTERNAL_LISTENER_TOKEN",
    "UNAUTHORIZED_MESSAGE",
    "UNAUTHORIZED_TITLE",
)


class ProxyConfigError(ValueError):
    """Raised when the proxy environment is incomplete or invalid."""


@dataclass(frozen=True)
class ProxyConfig:
    """Settings the proxy needs, resolved once per container.

    Attributes:
        internal_fqdn: Host name served by the internal listener certificate.
        internal_listener_token: Value of the trust header.
        unauthorized_message: Sign-in prompt for the mocked chat.
        unauthorized_title: Site title for the mocked chat.
        internal_port: Port of the internal HTTPS listener.
        session_cookie_name: Cookie whose presence triggers forwarding.
        trust_header_name: Header carrying the shared secret.
        timeout: Seconds to wait on the forwarded call, ``None`` to wait
            until the Lambda itself times out.
    """

    internal_fqdn: str
    internal_listener_token: str = field(repr=False)
    unauthorized_message: str
    unauthorized_title: str
    internal_port: int = INTERNAL_LISTENER_PORT
    session_cookie_name: str = SESSION_COOKIE_NAME
    trust_header_name: str = TRUST_HEADER_NAME
    timeout: float | None = None

    @property
    def internal_origin(self) -> str:
        return f"https://{self.internal_fqdn}:{self.internal_port}"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ProxyConfig:
        """Build the configuration from Lambda environment variables.

        Raises:
            ProxyConfigError: If a required variable is missing or the
                timeout is not a positive number.
        """
        env = os.environ if environ is None else environ
        missing = [name for name in _REQUIRED_ENV if not env.get(name)]
        if missing:
            msg = f"Missing required environment variables: {', '.join(missing)}"
            raise ProxyConfigError(msg)

        timeout = None
        raw_timeout = env.get("FORWARD_TIMEOUT_SECONDS")
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError as exc:
                msg = f"FORWARD_TIMEOUT_SECONDS must be a number, got {raw_timeout!r}"
                raise ProxyConfigError(msg) from exc
            if timeout <= 0:
                msg = "FORWARD_TIMEOUT_SECONDS must be greater than zero"
                raise ProxyConfigError(msg)

        return cls(
            internal_fqdn=env["ALB_FQDN"],
            internal_listener_token=env["INTERNAL_LISTENER_TOKEN"],
            unauthorized_message=env["UNAUTHORIZED_MESSAGE"],
            unauthorized_title=env["UNAUTHORIZED_TITLE"],
            timeout=timeout,
        )


@dataclass(frozen=True)
class ProxyRequest:
    """Request fields extracted from an ALB Lambda event."""

    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    query: dict[str, Any] = field(default_factory=dict)
    body: bytes | None = None
    multi_value: bool = False

    @classmethod
    def from_alb_event(cls, event: Mapping[str, Any]) -> ProxyRequest:
        """Normalise single-value and multi-value ALB events."""
        multi_value = "multiValueHeaders" in event
        if multi_value:
            headers = {
                name: ("; " if name.lower() == "cookie" else ", ").join(values)
                for name, values in (event.get("multiValueHeaders") or {}).items()
                if values
            }
            query = {
                unquote_plus(name): [unquote_plus(value) for value in values]
                for name, values in (
                    event.get("multiValueQueryStringParameters") or {}
                ).items()
            }
        else:
            headers = dict(event.get("headers") or {})
            query = {
                unquote_plus(name): unquote_plus(value)
                for name, value in (event.get("queryStringParameters") or {}).items()
            }

        body = event.get("body")
        if body:
            raw_body = (
                base64.b64decode(body)
                if event.get("isBase64Encoded")
                else body.encode("utf-8")
            )
        else:
            raw_body = None

        return cls(
            method=(event.get("httpMethod") or "GET").upper(),
            path=event.get("path") or "/",
            headers=headers,
            query=query,
            body=raw_body,
            multi_value=multi_value,
        )

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


def parse_cookies(cookie_header: str) -> dict[str, str]:
    """Split a ``Cookie`` header into a name → value mapping.

    Pairs are separated by ``;`` and split on their first ``=``. Names are
    stripped of surrounding whitespace; values are kept verbatim. Pairs
    without ``=`` or with an empty name are dropped.
    """
    jar: dict[str, str] = {}
    for pair in cookie_header.split(";"):
        name, separator, value = pair.partition("=")
        name = name.strip()
        if not separator or not name:
            continue
        jar[name] = value
    return jar


def build_response(
    status_code: int,
    body: str,
    *,
    multi_value: bool = False,
) -> dict[str, Any]:
    """Wrap *body* in the ALB Lambda response envelope."""
    response: dict[str, Any] = {
        "statusCode": status_code,
        "body": body,
        "isBase64Encoded": False,
    }
    if multi_value:
        response["multiValueHeaders"] = {"Content-Type": [JSON_CONTENT_TYPE]}
    else:
        response["headers"] = {"Content-Type": JSON_CONTENT_TYPE}
    return response


def error_response(exc: BaseException, *, multi_value: bool = False) -> dict[str, Any]:
    return build_response(
        500,
        json.dumps({"error": f"{type(exc).__name__}: {exc}"}),
        multi_value=multi_value,
    )


class AuthProxy:
    """Decides between mocking and forwarding a single request."""

    def __init__(
        self,
        config: ProxyConfig,
        session_factory: Callable[[], requests.Session] | None = None,
    ) -> None:
        self.config = config
        self._session_factory = session_factory or requests.Session

    def handle(self, request: ProxyRequest) -> dict[str, Any]:
        cookie_header = request.header("cookie")
        if not cookie_header:
            logger.info("No cookie header, serving mock", extra={"path": request.path})
            return self.mock_response(request)

        cookies = parse_cookies(cookie_header)
        logger.debug("Parsed cookies", extra={"cookie_names": sorted(cookies)})
        if self.config.session_cookie_name not in cookies:
            logger.info(
                "Session cookie missing, serving mock",
                extra={"path": request.path},
            )
            return self.mock_response(request)

        try:
            upstream = self.forward(request)
        except requests.RequestException as exc:
            logger.exception("Forwarded call to internal listener failed")
            metrics.add_metric(name="ForwardFailures", unit=MetricUnit.Count, value=1)
            return error_response(exc, multi_value=request.multi_value)

        metrics.add_metric(name="ForwardedRequests", unit=MetricUnit.Count, value=1)
        logger.info(
            "Internal listener responded",
            extra={"path": request.path, "status_code": upstream.status_code},
        )
        return build_response(
            upstream.status_code,
            upstream.text,
            multi_value=request.multi_value,
        )

    def mock_response(self, request: ProxyRequest) -> dict[str, Any]:
        body = build_mock_body(
            request.path,
            fqdn=self.config.internal_fqdn,
            unauthorized_message=self.config.unauthorized_message,
            unauthorized_title=self.config.unauthorized_title,
        )
        metrics.add_metric(name="MockResponses", unit=MetricUnit.Count, value=1)
        return build_response(200, json.dumps(body), multi_value=request.multi_value)

    @tracer.capture_method
    def forward(self, request: ProxyRequest) -> requests.Response:
        """Replay *request* against the internal listener.

        Raises:
            requests.RequestException: On any transport-level failure.
                Non-2xx answers are returned, not raised.
        """
        trust_header = self.config.trust_header_name.lower()
        headers = {
            name: value
            for name, value in request.headers.items()
            if name.lower() != trust_header
        }
        headers[self.config.trust_header_name] = self.config.internal_listener_token

        url = f"{self.config.internal_origin}{request.path}"
        logger.info(
            "Forwarding to internal listener",
            extra={"method": request.method, "url": url},
        )
        with self._session_factory() as session:
            return session.request(
                request.method,
                url,
                headers=headers,
                params=request.query or None,
                data=request.body,
                timeout=self.config.timeout,
                allow_redirects=False,
            )


@lru_cache(maxsize=1)
def get_proxy() -> AuthProxy:
    return AuthProxy(ProxyConfig.from_env())


@logger.inject_lambda_context(log_event=False)
@tracer.capture_lambda_handler
@metrics.log_metrics
def handler(event: dict[str, Any], context: LambdaContext) -> dict[str, Any]:
    """Lambda entry point for the ALB Lambda target group.

    Every outcome, including unexpected failures, is returned as a response
    envelope; nothing is raised to the load balancer.
    """
    multi_value = "multiValueHeaders" in event
    logger.info(
        "Received request",
        extra={"method": event.get("httpMethod"), "path": event.get("path")},
    )
    try:
        return get_proxy().handle(ProxyRequest.from_alb_event(event))
    except Exception as exc:
        logger.exception("Unhandled error in auth proxy")
        metrics.add_metric(name="HandlerErrors", unit=MetricUnit.Count, value=1)
        return error_response(exc, multi_value=multi_value)
