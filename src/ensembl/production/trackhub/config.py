# See the NOTICE file distributed with this work for additional information
#   regarding copyright ownership.
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#       http://www.apache.org/licenses/LICENSE-2.0
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""
Track hub configuration loading.

Sample config (yaml):

    hub:
      name: pride_hub
      short_label: PRIDE hub
      long_label: PRIDE proteomics track hub
      email: pride-support@ebi.ac.uk
      species_short: human
      species_sci: Homo_sapiens
      assembly: GRCh38
      root: /nfs/trackhubs
    track:
      name: PXD000001
      type: bigBed
      big_data_url: https://ftp.pride.ebi.ac.uk/PXD000001.bb
      short_label: PXD000001
      long_label: PXD000001 peptides
      tissue: liver          # optional metadata fields
    registry:
      server: https://www.trackhubregistry.org
      user: pride
      url: https://ftp.pride.ebi.ac.uk/trackhubs/Homo_sapiens/hub.txt
      type: PROTEOMICS
      public: true
      assemblies:
        GRCh38: GCA_000001405.15

Registry server and credentials can be overridden with the environment
variables TRACKHUB_REGISTRY_URL, TRACKHUB_REGISTRY_USER and
TRACKHUB_REGISTRY_PASSWORD (the password is best kept out of the file).
"""
import logging
import os
from dataclasses import dataclass
from pathlib import Path

import yaml
from typing_extensions import NotRequired, TypedDict

from .models import PostType, SearchType, Track, TrackHub, TrackhubSubmission, parse_track_type
from .registry import DEFAULT_SERVER

logger = logging.getLogger(__name__)

HUB_FIELDS = ["name", "short_label", "long_label", "email", "species_short", "species_sci", "assembly", "root"]
TRACK_FIELDS = ["name", "big_data_url", "short_label", "long_label"]
TRACK_METADATA_FIELDS = [
    "tissue", "cell_type", "disease", "taxonomy_id", "centre", "pub_date",
    "instruments", "keywords", "other_omics", "pub_reference",
]


class TrackhubConfigError(Exception):
    """Raised when the configuration cannot be read or is incomplete."""
    pass


# Datamodel for the registry section of the config file
class RegistryData(TypedDict):
    server: NotRequired[str]
    user: NotRequired[str]
    password: NotRequired[str]
    url: str
    type: NotRequired[str]
    public: NotRequired[bool]
    assemblies: NotRequired[dict[str, str]]


@dataclass
class RegistrySettings:
    server: str
    user: str
    password: str
    submission: TrackhubSubmission


def load_config(path: str | Path) -> dict:
    """
    Read a yaml config file.

    Raises:
        TrackhubConfigError: If the file cannot be read or parsed
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise TrackhubConfigError(f"Config file not found: {path}")
    except yaml.YAMLError as e:
        raise TrackhubConfigError(f"Failed to parse yaml file {path}: {e}")
    if not isinstance(data, dict):
        raise TrackhubConfigError(f"Config file {path} must contain a mapping")
    return data


def get_section(config: dict, name: str) -> dict:
    section = config.get(name)
    if not isinstance(section, dict):
        raise TrackhubConfigError(f"Missing config section: {name}")
    return section


def require(section: dict, section_name: str, fields: list[str]) -> None:
    missing = [f for f in fields if f not in section]
    if missing:
        raise TrackhubConfigError(f"Missing {section_name} fields: {', '.join(missing)}")


def as_text(value) -> str:
    return "" if value is None else str(value)


def hub_from_config(config: dict) -> TrackHub:
    section = get_section(config, "hub")
    require(section, "hub", HUB_FIELDS)
    return TrackHub(**{key: as_text(section[key]) for key in HUB_FIELDS})


def track_from_config(config: dict) -> Track:
    """
    Build a Track from the 'track' section.

    Raises:
        TrackhubConfigError: If a mandatory field is missing
        TrackhubValidationError: If the track type is not an allowable type
    """
    section = get_section(config, "track")
    require(section, "track", TRACK_FIELDS + ["type"])
    values = {key: as_text(section[key]) for key in TRACK_FIELDS}
    values.update({key: as_text(section.get(key)) for key in TRACK_METADATA_FIELDS})
    return Track(track_type=parse_track_type(section["type"]), **values)


def registry_from_config(config: dict) -> RegistrySettings:
    """
    Build the registry settings, applying environment variable overrides.

    Raises:
        TrackhubConfigError: If a mandatory field is missing or invalid
    """
    section: RegistryData = get_section(config, "registry")
    require(section, "registry", ["url"])
    server = os.getenv("TRACKHUB_REGISTRY_URL", section.get("server", DEFAULT_SERVER))
    user = os.getenv("TRACKHUB_REGISTRY_USER", section.get("user", ""))
    password = os.getenv("TRACKHUB_REGISTRY_PASSWORD", section.get("password", ""))
    if not user or not password:
        raise TrackhubConfigError(
            "Registry credentials missing (set registry.user/password or "
            "TRACKHUB_REGISTRY_USER/TRACKHUB_REGISTRY_PASSWORD)"
        )
    try:
        post_type = PostType(section.get("type", PostType.PROTEOMICS.value))
    except ValueError:
        raise TrackhubConfigError(
            f"Invalid registry type: {section.get('type')} (expected: {' | '.join(t.value for t in PostType)})"
        )
    public = section.get("public", True)
    if not isinstance(public, (bool, int)) or public not in (0, 1):
        raise TrackhubConfigError(f"Invalid registry public flag: {public!r} (expected: true | false)")
    search_type = SearchType.PUBLIC if public else SearchType.PRIVATE
    assemblies = {str(k): str(v) for k, v in (section.get("assemblies") or {}).items()}
    logger.debug(f"Registry settings: {server} as {user}, {post_type.value}, {search_type.name}")
    return RegistrySettings(
        server=server,
        user=user,
        password=password,
        submission=TrackhubSubmission(
            url=str(section["url"]),
            post_type=post_type,
            search_type=search_type,
            assemblies=assemblies,
        ),
    )
