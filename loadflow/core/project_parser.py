"""Parser for loadflow project YAML files.

This module reads a project file (base URL, load profile, auth strategy,
endpoints, reports) and converts it into a ProjectConfig. Strings may
reference the request context with ``${key}`` templates, which turns the
field into a Derived value resolved per request.
"""

import re
from pathlib import Path
from typing import Any, Optional

import yaml

from loadflow.core.data_structures import (
    HTTP_METHODS,
    ApiKeyAuth,
    AuthConfig,
    AuthStep,
    BasicAuth,
    EndpointDescriptor,
    FlowStepOptions,
    JwtAuth,
    LoadProfile,
    MultiStepJwtAuth,
    NoneAuth,
    ProjectConfig,
    ReportOutput,
)
from loadflow.core.dynamic_value import Context, Derived, DynamicValue, Literal
from loadflow.exceptions import (
    ProjectConfigParseException,
    ProjectConfigValidationException,
)

# Context reference pattern: ${key}
TEMPLATE_PATTERN = re.compile(r"\$\{([a-zA-Z_][a-zA-Z0-9_]*)\}")

# Duration units: 1h30m, 45s, 2m
DURATION_PATTERN = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}

SCENARIOS = ("simple", "flow")
REPORT_TYPES = ("console", "json", "html")


def parse_duration(duration: Any) -> float:
    """Convert a duration such as "30s", "1m30s" or 45 to seconds.

    Raises:
        ProjectConfigValidationException: Duration is malformed
    """
    if isinstance(duration, bool):
        raise ProjectConfigValidationException(f"Invalid duration: {duration!r}")
    if isinstance(duration, (int, float)):
        return float(duration)

    text = str(duration).strip()
    if not text:
        raise ProjectConfigValidationException("Invalid duration: empty string")

    if DURATION_PATTERN.sub("", text):
        try:
            return float(text)
        except ValueError:
            raise ProjectConfigValidationException(
                f"Invalid duration '{duration}': expected e.g. '30s', '5m', '1m30s'"
            )

    return sum(
        float(amount) * DURATION_UNITS[unit] for amount, unit in DURATION_PATTERN.findall(text)
    )


def has_template(value: Any) -> bool:
    """Check whether a value contains any ``${key}`` reference."""
    if isinstance(value, str):
        return TEMPLATE_PATTERN.search(value) is not None
    if isinstance(value, dict):
        return any(has_template(v) for v in value.values())
    if isinstance(value, list):
        return any(has_template(v) for v in value)
    return False


def render_template(value: Any, context: Context) -> Any:
    """Substitute ``${key}`` references from the context.

    A string consisting of exactly one reference yields the raw context
    value (keeping numbers as numbers), or None when the key is absent.
    Embedded references to absent keys are left as literal text.
    """
    if isinstance(value, str):
        whole = TEMPLATE_PATTERN.fullmatch(value)
        if whole:
            return context.get(whole.group(1))

        def replace(match: re.Match) -> str:
            key = match.group(1)
            return str(context[key]) if key in context else match.group(0)

        return TEMPLATE_PATTERN.sub(replace, value)
    if isinstance(value, dict):
        return {k: render_template(v, context) for k, v in value.items()}
    if isinstance(value, list):
        return [render_template(v, context) for v in value]
    return value


def templated(value: Any) -> DynamicValue:
    """Wrap a YAML value: Derived when it references the context, else Literal."""
    if has_template(value):
        return Derived(lambda ctx, template=value: render_template(template, ctx))
    return Literal(value)


class ProjectConfigParser:
    """Parse and validate loadflow project files.

    Example:
        >>> parser = ProjectConfigParser()
        >>> project = parser.parse("crud-flow.yaml")
        >>> print(project.name, len(project.endpoints))
        'crud-flow-example' 5
    """

    def parse(self, project_path: str) -> ProjectConfig:
        """Parse a project YAML file.

        Args:
            project_path: Path to the project file

        Returns:
            ProjectConfig instance

        Raises:
            FileNotFoundError: Project file doesn't exist
            ProjectConfigParseException: YAML parsing fails or required fields missing
            ProjectConfigValidationException: A field has an invalid value
        """
        path = Path(project_path)

        if not path.exists():
            raise FileNotFoundError(f"Project file not found: {project_path}")

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ProjectConfigParseException(f"Invalid YAML syntax in {project_path}: {e}")

        return self.parse_dict(data, str(project_path))

    def parse_dict(self, data: Any, source: str = "<project>") -> ProjectConfig:
        """Build a ProjectConfig from already-loaded data."""
        if not isinstance(data, dict):
            raise ProjectConfigParseException(
                f"Invalid project format in {source}: expected dictionary"
            )

        for required in ("name", "base_url"):
            if required not in data:
                raise ProjectConfigParseException(
                    f"Missing required field '{required}' in {source}"
                )

        scenario = data.get("scenario", "simple")
        if scenario not in SCENARIOS:
            raise ProjectConfigValidationException(
                f"Invalid 'scenario' in {source}: expected one of {', '.join(SCENARIOS)}"
            )

        endpoints_data = data.get("endpoints", [])
        if not isinstance(endpoints_data, list):
            raise ProjectConfigValidationException(
                f"Invalid 'endpoints' in {source}: expected list"
            )

        endpoints = []
        flow_options: dict[str, FlowStepOptions] = {}
        for i, endpoint_data in enumerate(endpoints_data, start=1):
            endpoint = self._parse_endpoint(endpoint_data, i, source)
            endpoints.append(endpoint)
            options = self._parse_flow_options(endpoint_data, i, source)
            if options is not None:
                flow_options[endpoint.name] = options

        headers = data.get("headers")
        if headers is not None and not isinstance(headers, dict):
            raise ProjectConfigValidationException(
                f"Invalid 'headers' in {source}: expected dictionary"
            )

        return ProjectConfig(
            name=str(data["name"]),
            base_url=str(data["base_url"]).rstrip("/"),
            load=self._parse_load(data.get("load") or {}, source),
            auth=self._parse_auth(data.get("auth"), source),
            endpoints=endpoints,
            report_outputs=self._parse_report(data.get("report") or {}, source),
            scenario=scenario,
            think_time=self._parse_seconds(data.get("think_time", 1), "think_time", source),
            default_headers={str(k): str(v) for k, v in headers.items()} if headers else None,
            flow_options=flow_options,
        )

    def _parse_seconds(self, value: Any, field_name: str, source: str) -> float:
        """Parse a non-negative number of seconds."""
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise ProjectConfigValidationException(
                f"Invalid '{field_name}' in {source}: must be a non-negative number of seconds"
            )
        return float(value)

    def _parse_load(self, load_data: Any, source: str) -> LoadProfile:
        """Parse load section."""
        if not isinstance(load_data, dict):
            raise ProjectConfigValidationException(
                f"Invalid 'load' in {source}: expected dictionary"
            )

        vus = load_data.get("vus", 1)
        if isinstance(vus, bool) or not isinstance(vus, int) or vus < 1:
            raise ProjectConfigValidationException(
                f"Invalid 'load.vus' in {source}: must be a positive integer"
            )

        duration = str(load_data.get("duration", "30s"))
        parse_duration(duration)

        return LoadProfile(vus=vus, duration=duration)

    def _parse_auth(self, auth_data: Any, source: str) -> AuthConfig:
        """Parse auth section into one of the AuthConfig variants."""
        if not auth_data:
            return NoneAuth()

        if not isinstance(auth_data, dict):
            raise ProjectConfigValidationException(
                f"Invalid 'auth' in {source}: expected dictionary"
            )

        auth_type = str(auth_data.get("type", "none")).lower()

        if auth_type == "none":
            return NoneAuth()

        if auth_type == "basic":
            self._require(auth_data, ("username", "password"), "auth", source)
            return BasicAuth(
                username=str(auth_data["username"]), password=str(auth_data["password"])
            )

        if auth_type in ("api_key", "apikey"):
            self._require(auth_data, ("key", "value"), "auth", source)
            location = auth_data.get("in", "header")
            if location not in ("header", "query"):
                raise ProjectConfigValidationException(
                    f"Invalid 'auth.in' in {source}: expected 'header' or 'query'"
                )
            return ApiKeyAuth(
                key=str(auth_data["key"]), value=str(auth_data["value"]), location=location
            )

        if auth_type == "jwt":
            self._require(auth_data, ("token_path",), "auth", source)
            if "steps" in auth_data:
                return MultiStepJwtAuth(
                    steps=self._parse_auth_steps(auth_data["steps"], source),
                    token_path=str(auth_data["token_path"]),
                )
            self._require(auth_data, ("login_path",), "auth", source)
            payload = auth_data.get("payload", {})
            if not isinstance(payload, dict):
                raise ProjectConfigValidationException(
                    f"Invalid 'auth.payload' in {source}: expected dictionary"
                )
            return JwtAuth(
                login_path=str(auth_data["login_path"]),
                payload=payload,
                token_path=str(auth_data["token_path"]),
            )

        raise ProjectConfigValidationException(
            f"Invalid 'auth.type' in {source}: '{auth_type}' "
            "(expected none, basic, api_key or jwt)"
        )

    def _parse_auth_steps(self, steps_data: Any, source: str) -> list[AuthStep]:
        """Parse multi-step auth steps."""
        if not isinstance(steps_data, list) or not steps_data:
            raise ProjectConfigValidationException(
                f"Invalid 'auth.steps' in {source}: expected non-empty list"
            )

        steps = []
        for i, step_data in enumerate(steps_data, start=1):
            if not isinstance(step_data, dict):
                raise ProjectConfigValidationException(
                    f"Invalid auth step {i} in {source}: expected dictionary"
                )
            self._require(step_data, ("name", "endpoint"), f"auth step {i}", source)
            steps.append(
                AuthStep(
                    name=str(step_data["name"]),
                    endpoint=str(step_data["endpoint"]),
                    payload=templated(step_data.get("payload", {})),
                    extract=self._parse_extract(step_data.get("extract"), f"auth step {i}", source),
                )
            )
        return steps

    def _parse_endpoint(self, endpoint_data: Any, index: int, source: str) -> EndpointDescriptor:
        """Parse a single endpoint."""
        if not isinstance(endpoint_data, dict):
            raise ProjectConfigValidationException(
                f"Invalid endpoint {index} in {source}: expected dictionary"
            )

        label = f"endpoint {index}"
        self._require(endpoint_data, ("name", "method", "url"), label, source)

        method = str(endpoint_data["method"]).upper()
        if method not in HTTP_METHODS:
            raise ProjectConfigValidationException(
                f"Invalid method '{method}' in {label} of {source}. "
                f"Expected one of: {', '.join(HTTP_METHODS)}"
            )

        for mapping_field in ("path_params", "query_params", "headers"):
            value = endpoint_data.get(mapping_field, {})
            if not isinstance(value, dict):
                raise ProjectConfigValidationException(
                    f"Invalid '{mapping_field}' in {label} of {source}: expected dictionary"
                )

        body = endpoint_data.get("body")

        return EndpointDescriptor(
            name=str(endpoint_data["name"]),
            method=method,
            url=templated(str(endpoint_data["url"])),
            path_params={
                k: templated(v) for k, v in endpoint_data.get("path_params", {}).items()
            },
            query_params={
                k: templated(v) for k, v in endpoint_data.get("query_params", {}).items()
            },
            body=templated(body) if body is not None else None,
            headers={str(k): str(v) for k, v in endpoint_data.get("headers", {}).items()},
            extract=self._parse_extract(endpoint_data.get("extract"), label, source),
        )

    def _parse_flow_options(
        self, endpoint_data: dict, index: int, source: str
    ) -> Optional[FlowStepOptions]:
        """Parse flow-only options (continue_if, think_time) of an endpoint."""
        continue_if = endpoint_data.get("continue_if")
        think_time = endpoint_data.get("think_time")
        if continue_if is None and think_time is None:
            return None

        if continue_if is not None and not isinstance(continue_if, str):
            raise ProjectConfigValidationException(
                f"Invalid 'continue_if' in endpoint {index} of {source}: expected path string"
            )
        if think_time is not None:
            think_time = self._parse_seconds(think_time, f"endpoint {index} think_time", source)

        return FlowStepOptions(continue_if=continue_if, think_time=think_time)

    def _parse_extract(self, extract_data: Any, label: str, source: str) -> dict[str, str]:
        """Parse an extract mapping (context key -> path)."""
        if not extract_data:
            return {}
        if not isinstance(extract_data, dict):
            raise ProjectConfigValidationException(
                f"Invalid 'extract' in {label} of {source}: expected dictionary"
            )
        return {str(k): str(v) for k, v in extract_data.items()}

    def _parse_report(self, report_data: Any, source: str) -> list[ReportOutput]:
        """Parse report outputs."""
        if not isinstance(report_data, dict):
            raise ProjectConfigValidationException(
                f"Invalid 'report' in {source}: expected dictionary"
            )

        outputs = []
        for output in report_data.get("output", []):
            if not isinstance(output, dict) or output.get("type") not in REPORT_TYPES:
                raise ProjectConfigValidationException(
                    f"Invalid report output in {source}: type must be one of "
                    f"{', '.join(REPORT_TYPES)}"
                )
            outputs.append(ReportOutput(type=output["type"], path=output.get("path")))
        return outputs

    def _require(self, data: dict, fields: tuple[str, ...], label: str, source: str) -> None:
        """Raise if any required field is missing."""
        for name in fields:
            if name not in data:
                raise ProjectConfigParseException(
                    f"Missing required field '{name}' in {label} of {source}"
                )
