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
Track hub file generation module.

Creates a new track hub, or updates an existing one with a new track.
If the track already exists in the hub, the old stanza is removed and
the new one appended to the end of trackDb.txt.

Directory structure:
    {ROOT}/{species_sci}/hub.txt
    {ROOT}/{species_sci}/genomes.txt
    {ROOT}/{species_sci}/{assembly}/trackDb.txt

Example:
    ROOT/Homo_sapiens/GRCh38/trackDb.txt

Warning: no locking is done on trackDb.txt, only one writer per hub
directory is supported.
"""
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import NamedTuple

from .models import Track, TrackHub, is_blank, validate_params

logger = logging.getLogger(__name__)

HUB_TXT = "hub.txt"
GENOMES_TXT = "genomes.txt"
TRACKDB_TXT = "trackDb.txt"
TMP_SUFFIX = ".tmp"
LINE_END = "\n"


class HubPaths(NamedTuple):
    hub_txt: Path
    genomes_txt: Path
    trackdb_txt: Path


def get_hub_paths(root: str | Path, species_sci: str, assembly: str) -> HubPaths:
    """
    Construct the paths of the three track hub files.

    Args:
        root: Target directory for all track hubs
        species_sci: Scientific name of the species (hub directory)
        assembly: Assembly version (trackDb subdirectory)

    Returns:
        HubPaths with hub.txt, genomes.txt and trackDb.txt paths
    """
    hub_dir = Path(root) / species_sci
    return HubPaths(
        hub_txt=hub_dir / HUB_TXT,
        genomes_txt=hub_dir / GENOMES_TXT,
        trackdb_txt=hub_dir / assembly / TRACKDB_TXT,
    )


def hub_lines(hub: TrackHub) -> list[str]:
    return [
        f"hub {hub.name}",
        f"shortLabel {hub.short_label}",
        f"longLabel {hub.long_label}",
        f"genomesFile {GENOMES_TXT}",
        f"email {hub.email}",
    ]


def genomes_lines(hub: TrackHub) -> list[str]:
    return [
        f"genome {hub.assembly}",
        f"trackDb {hub.assembly}/{TRACKDB_TXT}",
    ]


def stanza_lines(track: Track) -> list[str]:
    """The trackDb.txt stanza for a track, blank terminator included."""
    return [
        f"track {track.name}",
        f"bigDataUrl {track.big_data_url}",
        f"shortLabel {track.short_label}",
        f"longLabel {track.long_label}",
        f"type {track.track_type.value}",
        "",
    ]


def build_metadata_line(hub: TrackHub, track: Track, added: datetime | None = None) -> str:
    """
    Build the 'metadata' line describing a track.

    Blank optional fields are left out. The line is not part of the
    stanza written to trackDb.txt.
    """
    added = added or datetime.now().astimezone()
    fields = [f'track_added_date="{added.strftime("%a %b %d %H:%M:%S %Y %Z").strip()}"']
    optional = [
        ("tissue_type", track.tissue),
        ("cell_type", track.cell_type),
        ("disease", track.disease),
    ]
    fields += [f'{key}="{value}"' for key, value in optional if not is_blank(value)]
    fields.append(f'description="{track.short_label}"')
    fields.append(f'scientific_name="{hub.species_sci}"')
    if not is_blank(track.taxonomy_id):
        fields.append(f"tax_id={track.taxonomy_id}")
    optional = [
        ("center_name", track.centre),
        ("instruments", track.instruments),
        ("keywords", track.keywords),
        ("other_omics", track.other_omics),
        ("references", track.pub_reference),
        ("first_public", track.pub_date),
    ]
    fields += [f'{key}="{value}"' for key, value in optional if not is_blank(value)]
    return "metadata " + " ".join(fields)


def write_lines(path: Path, lines: list[str], append: bool = False) -> None:
    with open(path, "a" if append else "w", encoding="utf-8") as f:
        for line in lines:
            f.write(line + LINE_END)


def write_if_absent(path: Path, lines: list[str], log: logging.Logger = logger) -> bool:
    """
    Write a file only if it does not exist yet.

    Returns:
        True if the file was created, False if it already existed
    """
    if path.exists():
        log.debug(f"{path.name} exists, leaving it untouched: {path}")
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    write_lines(path, lines)
    log.info(f"Created {path.name} file: {path}")
    return True


def atomic_replace(source: Path, target: Path) -> None:
    """Move source over target in a single rename (same directory)."""
    os.replace(source, target)


def remove_track_stanza(trackdb_txt: Path, track_name: str, log: logging.Logger = logger) -> bool:
    """
    Remove the stanza of a track from an existing trackDb.txt.

    The file is streamed into a sibling temporary file, leaving out the
    stanza starting with 'track <track_name>' (trailing whitespace
    ignored) up to and including the next blank or whitespace-only line.
    The temporary file only replaces the original when a stanza was
    removed, and is deleted if reading or writing fails.

    Args:
        trackdb_txt: Existing trackDb.txt file
        track_name: Name of the track to remove

    Returns:
        True if a stanza was found and removed, False otherwise
    """
    header = f"track {track_name}"
    temp_output = trackdb_txt.with_name(trackdb_txt.name + TMP_SUFFIX)
    found_existing = False
    try:
        with open(trackdb_txt, "r", encoding="utf-8") as reader, open(temp_output, "w", encoding="utf-8") as writer:
            skipping = False
            for line in reader:
                line = line.rstrip("\r\n")
                if skipping:
                    if not line.strip():
                        skipping = False
                    continue
                if line.rstrip() == header:
                    found_existing = True
                    skipping = True
                    log.info(f"Found existing track in {TRACKDB_TXT}: {header}")
                    continue
                writer.write(line + LINE_END)
    except Exception:
        temp_output.unlink(missing_ok=True)
        raise
    if found_existing:
        atomic_replace(temp_output, trackdb_txt)
        log.info("Removed track entry in existing hub.")
    else:
        temp_output.unlink()
    return found_existing


class HubFileWriter:
    """
    Creates or updates the track hub files for one track at a time.

    Args:
        log: Logger receiving progress messages (default: module logger)
    """

    def __init__(self, log: logging.Logger | None = None):
        self.logger = log or logger

    def apply(self, hub: TrackHub, track: Track) -> Path:
        """
        Validate the parameters, then create/update the track hub.

        Returns:
            Path to the updated trackDb.txt

        Raises:
            TrackhubValidationError: If a mandatory field is missing or malformed
            OSError: If any of the hub files cannot be read or written
        """
        validate_params(hub, track)
        self.logger.debug(f"Track hub params: {hub}, {track}")
        paths = get_hub_paths(hub.root, hub.species_sci, hub.assembly)

        write_if_absent(paths.hub_txt, hub_lines(hub), self.logger)
        write_if_absent(paths.genomes_txt, genomes_lines(hub), self.logger)

        paths.trackdb_txt.parent.mkdir(parents=True, exist_ok=True)
        if paths.trackdb_txt.exists():
            remove_track_stanza(paths.trackdb_txt, track.name, self.logger)
            self.write_track(paths.trackdb_txt, hub, track, append=True)
        else:
            self.write_track(paths.trackdb_txt, hub, track, append=False)
        return paths.trackdb_txt

    def write_track(self, trackdb_txt: Path, hub: TrackHub, track: Track, append: bool) -> None:
        # TODO: decide with registry users whether the metadata line belongs in the stanza
        metadata = build_metadata_line(hub, track)
        self.logger.debug(metadata)
        write_lines(trackdb_txt, stanza_lines(track), append=append)
        self.logger.info(f"Finished writing track: track {track.name}_{hub.name} in : {trackdb_txt}")
