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
Console script for creating track hubs and registering them.

Examples:
  - Add (or replace) a track in a hub: trackhub generate hub.yaml
  - Same, into another directory: trackhub generate hub.yaml --root /tmp/hubs
  - Register the hub: TRACKHUB_REGISTRY_PASSWORD=... trackhub register hub.yaml
"""
import argparse
import logging
import sys
from dataclasses import replace

import requests

from .config import TrackhubConfigError, hub_from_config, load_config, registry_from_config, track_from_config
from .hub_files import HubFileWriter
from .models import TrackhubValidationError
from .registry import RegistryError, RegistrySession

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def generate(args) -> int:
    config = load_config(args.config)
    hub = hub_from_config(config)
    if args.root:
        hub = replace(hub, root=args.root)
    track = track_from_config(config)
    try:
        trackdb = HubFileWriter().apply(hub, track)
    except OSError as e:
        logger.error(f"Error while creating/updating track hub: {e}")
        return 1
    print(f"Track {track.name} written to {trackdb}")
    return 0


def register(args) -> int:
    settings = registry_from_config(load_config(args.config))
    session = RegistrySession(settings.server, settings.user, settings.password)
    try:
        session.login()
    except (RegistryError, requests.exceptions.RequestException) as e:
        logger.error(f"Track hub registration failed: {e}")
        return 1
    status = 0
    try:
        session.submit(settings.submission)
    except (RegistryError, requests.exceptions.RequestException) as e:
        logger.error(f"Track hub registration failed: {e}")
        status = 1
    finally:
        try:
            session.logout()
        except (RegistryError, requests.exceptions.RequestException) as e:
            logger.error(f"Logout failed: {e}")
            status = 1
    if status:
        return status
    print(f"Registered {settings.submission.url} at {settings.server}")
    return 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Create/update track hub files and register track hubs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="increase logging verbosity"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    gen_parser = subparsers.add_parser("generate", help="add a track to a track hub")
    gen_parser.add_argument("config", help="yaml file with 'hub' and 'track' sections")
    gen_parser.add_argument(
        "-r", "--root", help="target directory for the track hub (overrides hub.root)"
    )
    gen_parser.set_defaults(func=generate)

    reg_parser = subparsers.add_parser("register", help="register a track hub in the Track Hub Registry")
    reg_parser.add_argument("config", help="yaml file with a 'registry' section")
    reg_parser.set_defaults(func=register)

    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT
    )
    try:
        return args.func(args)
    except (TrackhubConfigError, TrackhubValidationError) as e:
        logger.error(f"Invalid track hub parameters: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
