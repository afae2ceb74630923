"""Deploy library: parameters, settings sources, manifest rendering, orchestration."""

from autohy2.deploy.params import DeploymentParameters
from autohy2.deploy.settings import (
    fetch_remote_settings,
    load_settings_file,
    params_from_properties,
)
from autohy2.deploy.manifest import (
    ConfigDocument,
    dump_config,
    render_config,
    render_startup_script,
)
from autohy2.deploy.orchestrate import (
    Criticality,
    DeployOutcome,
    DeployState,
    Deployment,
    PipelineStep,
    deploy,
    run_stop,
    format_summary,
)

__all__ = [
    "DeploymentParameters",
    "fetch_remote_settings",
    "load_settings_file",
    "params_from_properties",
    "ConfigDocument",
    "dump_config",
    "render_config",
    "render_startup_script",
    "Criticality",
    "DeployOutcome",
    "DeployState",
    "Deployment",
    "PipelineStep",
    "deploy",
    "run_stop",
    "format_summary",
]
