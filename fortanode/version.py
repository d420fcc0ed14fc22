"""Version information of the command line tool and the running node."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

log = logging.getLogger(__name__)

DEFAULT_SCANNER_CONTAINER_NAME = "forta-scanner"
ENV_RELEASE_INFO = "FORTA_RELEASE_INFO"
CUSTOM_VERSION = "custom"


@dataclass(frozen=True)
class ReleaseSummary:
    """The identifying parts of a release."""

    commit: str = ""
    ipfs: str = ""
    version: str = ""

    def to_dict(self) -> Dict[str, str]:
        """The non-empty fields as a mapping."""
        fields = {"commit": self.commit, "ipfs": self.ipfs, "version": self.version}
        return {key: value for key, value in fields.items() if value}


def summary_from_release_info(
    release_info: Union[str, Mapping[str, Any], None],
) -> Optional[ReleaseSummary]:
    """Summarize release info given as JSON text or a mapping; None if unusable."""
    if isinstance(release_info, str):
        try:
            release_info = json.loads(release_info)
        except ValueError as err:
            log.error("failed to decode release info: %s", err)
            return None
    if not isinstance(release_info, Mapping):
        return None
    manifest = release_info.get("manifest") or {}
    release = manifest.get("release") or {} if isinstance(manifest, Mapping) else {}
    if not isinstance(release, Mapping):
        release = {}
    return ReleaseSummary(
        commit=str(release.get("commit") or ""),
        ipfs=str(release_info.get("ipfs") or ""),
        version=str(release.get("version") or ""),
    )


def release_info_from_scanner_container(
    docker_client: Any,
    container_name: str = DEFAULT_SCANNER_CONTAINER_NAME,
    env_key: str = ENV_RELEASE_INFO,
) -> Optional[ReleaseSummary]:
    """The release summary found in the scanner container's environment, if any."""
    try:
        container = docker_client.get_container_by_name(container_name)
        details = docker_client.inspect_container(container["Id"])
    except Exception as err:
        log.debug("no scanner container release info: %s", err)
        return None
    env = ((details or {}).get("Config") or {}).get("Env") or []
    for entry in env:
        key, _, value = entry.partition("=")
        if key == env_key:
            return summary_from_release_info(value)
    return None


def make_version_output(
    docker_client: Any,
    build_summary: Optional[ReleaseSummary] = None,
    container_name: str = DEFAULT_SCANNER_CONTAINER_NAME,
    env_key: str = ENV_RELEASE_INFO,
) -> str:
    """Indented JSON with the CLI version and, if found, the containers' version."""
    cli = build_summary if build_summary is not None else ReleaseSummary(version=CUSTOM_VERSION)
    info: Dict[str, Any] = {"cli": cli.to_dict()}
    containers = release_info_from_scanner_container(docker_client, container_name, env_key)
    if containers is not None:
        info["containers"] = containers.to_dict()
    return json.dumps(info, indent=2, ensure_ascii=False)