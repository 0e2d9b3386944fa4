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
Datamodels for track hub generation and registration.

Hub and track descriptors are immutable; validate_params() checks them
field by field and stops at the first violation.
"""
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)

URL_SCHEMES = ("http://", "https://", "ftp://")
EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)+$")


class TrackhubValidationError(ValueError):
    """Raised when a mandatory hub/track field is missing or malformed."""

    def __init__(self, field_name: str, message: str = ""):
        self.field = field_name
        super().__init__(message or f"Failed parameter violation. Check supplied parameter: {field_name}")


class TrackType(Enum):
    """Allowable track data file types."""
    bigBed = "bigBed"
    bigGenePred = "bigGenePred"
    bigChain = "bigChain"
    bigPsl = "bigPsl"
    bigMaf = "bigMaf"
    bigWig = "bigWig"
    BAM = "BAM"
    CRAM = "CRAM"
    HAL = "HAL"
    VCF = "VCF"


class PostType(Enum):
    GENOMICS = "GENOMICS"
    EPIGENOMICS = "EPIGENOMICS"
    TRANSCRIPTOMICS = "TRANSCRIPTOMICS"
    PROTEOMICS = "PROTEOMICS"


class SearchType(Enum):
    """Registry visibility, sent as the 'public' flag."""
    PUBLIC = 1
    PRIVATE = 0


@dataclass(frozen=True)
class TrackHub:
    """Class for keeping hub-level (species/assembly) info"""
    name: str
    short_label: str
    long_label: str
    email: str
    species_short: str
    species_sci: str
    assembly: str
    root: str | Path | None


@dataclass(frozen=True)
class Track:
    """Class for keeping a single track's info and optional metadata"""
    name: str
    track_type: TrackType | None
    big_data_url: str
    short_label: str
    long_label: str
    tissue: str = ""
    cell_type: str = ""
    disease: str = ""
    taxonomy_id: str = ""
    centre: str = ""
    pub_date: str = ""
    instruments: str = ""
    keywords: str = ""
    other_omics: str = ""
    pub_reference: str = ""


@dataclass(frozen=True)
class TrackhubSubmission:
    """Registry submission payload for a published track hub."""
    url: str
    post_type: PostType = PostType.PROTEOMICS
    search_type: SearchType = SearchType.PUBLIC
    assemblies: dict[str, str] = field(default_factory=dict)


def is_blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def is_valid_email(email: str) -> bool:
    """Check the address is a single syntactically valid addr-spec."""
    if is_blank(email):
        return False
    return EMAIL_PATTERN.match(email.strip()) is not None


def is_valid_url(url: str) -> bool:
    return not is_blank(url) and url.startswith(URL_SCHEMES)


def parse_track_type(value: str | TrackType | None) -> TrackType | None:
    """
    Map a track type name onto TrackType.

    Raises:
        TrackhubValidationError: If the name is not an allowable track type
    """
    if value is None or isinstance(value, TrackType):
        return value
    try:
        return TrackType(value)
    except ValueError:
        raise TrackhubValidationError("track.track_type", f"Invalid track type: {value}")


def validate_params(hub: TrackHub, track: Track) -> None:
    """
    Validate the supplied track hub parameters.

    Checks run in a fixed order and the first failing field is reported.

    Raises:
        TrackhubValidationError: With the name of the offending field
    """
    checks = [
        ("hub.name", not is_blank(hub.name)),
        ("hub.email", is_valid_email(hub.email)),
        ("hub.species_short", not is_blank(hub.species_short)),
        ("hub.species_sci", not is_blank(hub.species_sci)),
        ("hub.assembly", not is_blank(hub.assembly)),
        ("track.track_type", isinstance(track.track_type, TrackType)),
        ("track.big_data_url", is_valid_url(track.big_data_url)),
        ("track.name", not is_blank(track.name)),
        ("track.short_label", not is_blank(track.short_label)),
        ("track.long_label", not is_blank(track.long_label)),
        ("hub.short_label", not is_blank(hub.short_label)),
        ("hub.long_label", not is_blank(hub.long_label)),
        ("hub.root", hub.root is not None and not is_blank(str(hub.root))),
    ]
    for name, valid in checks:
        if not valid:
            error = TrackhubValidationError(name)
            logger.error(str(error))
            raise error
