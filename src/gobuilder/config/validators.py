"""
Configuration validation utilities.

Each function takes the raw table parsed from TOML and returns the matching
settings dataclass, filling in defaults for missing keys.
"""

import logging
from pathlib import Path
from typing import Any, Dict

from ..models.config import (
    AppConfig,
    BuilderSettings,
    DashboardSettings,
    EnvironmentSettings,
    SubrepoSettings,
)
from ..validation import (
    ValidationError,
    validate_bool,
    validate_non_empty_string,
    validate_positive_float,
    validate_positive_integer,
    validate_regex_pattern,
    validate_string_list,
)

logger = logging.getLogger(__name__)


def validate_builder_config(builder_data: Dict[str, Any]) -> BuilderSettings:
    """
    Validate and create BuilderSettings from the raw ``[builder]`` table.

    Raises:
        ValidationError: If validation fails
    """
    defaults = BuilderSettings()
    timeouts = builder_data.get("timeouts", {})
    polling = builder_data.get("polling", {})
    environment = builder_data.get("environment", {})

    buildroot = builder_data.get("buildroot", str(defaults.buildroot))
    validate_non_empty_string(buildroot, "builder.buildroot")

    log_dir = builder_data.get("log_dir", "")
    if not isinstance(log_dir, str):
        raise ValidationError("builder.log_dir must be a string", field_name="builder.log_dir", value=log_dir)

    settings = BuilderSettings(
        buildroot=Path(buildroot),
        repo_url=validate_non_empty_string(
            builder_data.get("repo_url", defaults.repo_url), "builder.repo_url"
        ),
        workspace_name=validate_non_empty_string(
            builder_data.get("workspace_name", defaults.workspace_name), "builder.workspace_name"
        ),
        project_dir=validate_non_empty_string(
            builder_data.get("project_dir", defaults.project_dir), "builder.project_dir"
        ),
        source_dir=validate_non_empty_string(
            builder_data.get("source_dir", defaults.source_dir), "builder.source_dir"
        ),
        build_cmd=validate_non_empty_string(
            builder_data.get("build_cmd", defaults.build_cmd), "builder.build_cmd"
        ),
        parallel=validate_bool(builder_data.get("parallel", defaults.parallel), "builder.parallel"),
        log_dir=Path(log_dir) if log_dir else None,
        build_timeout=validate_positive_float(
            timeouts.get("build_timeout", defaults.build_timeout),
            min_value=1.0,
            field_name="builder.timeouts.build_timeout",
        ),
        cmd_timeout=validate_positive_float(
            timeouts.get("cmd_timeout", defaults.cmd_timeout),
            min_value=1.0,
            field_name="builder.timeouts.cmd_timeout",
        ),
        commit_interval=validate_positive_float(
            polling.get("commit_interval", defaults.commit_interval),
            min_value=0.0,
            field_name="builder.polling.commit_interval",
        ),
        wait_interval=validate_positive_float(
            polling.get("wait_interval", defaults.wait_interval),
            min_value=0.0,
            field_name="builder.polling.wait_interval",
        ),
        log_limit=validate_positive_integer(
            polling.get("log_limit", defaults.log_limit),
            min_value=1,
            max_value=10000,
            field_name="builder.polling.log_limit",
        ),
        environment=validate_environment_config(environment),
    )
    return settings


def validate_environment_config(env_data: Dict[str, Any]) -> EnvironmentSettings:
    """Validate the ``[builder.environment]`` table."""
    defaults = EnvironmentSettings()
    final_install_path = env_data.get("final_install_path", defaults.final_install_path)
    validate_non_empty_string(final_install_path, "builder.environment.final_install_path")
    extra_vars = validate_string_list(
        env_data.get("extra_vars", defaults.extra_vars),
        field_name="builder.environment.extra_vars",
    )
    return EnvironmentSettings(final_install_path=final_install_path, extra_vars=extra_vars)


def validate_subrepo_config(subrepo_data: Dict[str, Any]) -> SubrepoSettings:
    """Validate the ``[subrepos]`` table."""
    defaults = SubrepoSettings()
    fetch_command = validate_string_list(
        subrepo_data.get("fetch_command", defaults.fetch_command),
        field_name="subrepos.fetch_command",
        allow_empty=False,
    )
    test_command = validate_string_list(
        subrepo_data.get("test_command", defaults.test_command),
        field_name="subrepos.test_command",
        allow_empty=False,
    )
    return SubrepoSettings(
        kind=validate_non_empty_string(subrepo_data.get("kind", defaults.kind), "subrepos.kind"),
        url_pattern=validate_regex_pattern(
            subrepo_data.get("url_pattern", defaults.url_pattern), "subrepos.url_pattern"
        ),
        url_template=validate_non_empty_string(
            subrepo_data.get("url_template", defaults.url_template), "subrepos.url_template"
        ),
        fetch_command=fetch_command,
        test_command=test_command,
    )


def validate_dashboard_config(dashboard_data: Dict[str, Any]) -> DashboardSettings:
    """Validate the ``[dashboard]`` table."""
    defaults = DashboardSettings()
    request_timeout = dashboard_data.get("request_timeout")
    if request_timeout is not None:
        request_timeout = validate_positive_float(
            request_timeout, min_value=0.1, field_name="dashboard.request_timeout"
        )
    return DashboardSettings(
        host=validate_non_empty_string(dashboard_data.get("host", defaults.host), "dashboard.host"),
        retries=validate_positive_integer(
            dashboard_data.get("retries", defaults.retries),
            min_value=1,
            max_value=20,
            field_name="dashboard.retries",
        ),
        retry_delay=validate_positive_float(
            dashboard_data.get("retry_delay", defaults.retry_delay),
            min_value=0.0,
            max_value=300.0,
            field_name="dashboard.retry_delay",
        ),
        request_timeout=request_timeout,
    )


def validate_app_config(data: Dict[str, Any]) -> AppConfig:
    """Validate a whole parsed configuration file."""
    return AppConfig(
        builder=validate_builder_config(data.get("builder", {})),
        subrepos=validate_subrepo_config(data.get("subrepos", {})),
        dashboard=validate_dashboard_config(data.get("dashboard", {})),
    )
