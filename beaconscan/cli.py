#!/usr/bin/env python3
#
# beaconscan - Bluetooth Low Energy (BLE) beacon advertisement decoder
#
# Decodes raw advertising data into iBeacon, Eddystone-UID, Eddystone-URL
# and legacy Estimote sightings, and estimates how far away each beacon
# is from its calibrated TX power and the received signal strength.
#

"""Decode BLE beacon advertisements given as hex strings."""

import argparse
import csv
import json
import logging
import os
import sys
from typing import Iterable, List, Optional, Tuple

from .beacon import Beacon
from .decoder import decode

_DEFAULT_RSSI = -59
_RSSI_ENV = "BEACONSCAN_RSSI"

_FIELDNAMES = ["uuid", "major", "minor", "tx_power"]

_BANNER = r"""
  _
 | |__   ___  __ _  ___ ___  _ __  ___  ___ __ _ _ __
 | '_ \ / _ \/ _` |/ __/ _ \| '_ \/ __|/ __/ _` | '_ \
 | |_) |  __/ (_| | (_| (_) | | | \__ \ (_| (_| | | | |
 |_.__/ \___|\__,_|\___\___/|_| |_|___/\___\__,_|_| |_|
   BLE Beacon Advertisement Decoder
"""


def parse_payload(payload_string: str) -> bytes:
    """Parse advertising data from a hex string (plain, 0x-prefixed, or
    separated by colons, dashes or spaces).

    Returns the raw bytes or raises ValueError.
    """
    s = payload_string.strip()
    if s.lower().startswith("0x"):
        s = s[2:]
    s = s.replace(":", "").replace("-", "").replace(" ", "")
    if not s:
        raise ValueError("payload is empty")
    if len(s) % 2:
        raise ValueError(
            f"payload must be a whole number of bytes, got {len(s)} hex chars")
    try:
        return bytes.fromhex(s)
    except ValueError:
        raise ValueError(f"payload contains invalid hex characters: {payload_string}")


def _parse_line(line: str, default_rssi: int) -> Tuple[bytes, int]:
    """Parse ``<hex>`` or ``<hex>,<rssi>`` from a payload file line."""
    hex_part, sep, rssi_part = line.partition(",")
    rssi = default_rssi
    if sep:
        try:
            rssi = int(rssi_part.strip())
        except ValueError:
            raise ValueError(f"invalid RSSI '{rssi_part.strip()}'")
    return parse_payload(hex_part), rssi


def _read_payload_lines(lines: Iterable[str],
                        default_rssi: int) -> List[Tuple[bytes, int]]:
    samples = []
    for line_num, raw_line in enumerate(lines, 1):
        stripped = raw_line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        try:
            samples.append(_parse_line(stripped, default_rssi))
        except ValueError as e:
            raise ValueError(f"line {line_num}: {e}")
    return samples


class BeaconDecoder:
    """Decode a batch of ``(payload, rssi)`` samples and report the results."""

    def __init__(self, output_format: str = "text",
                 expand_url: bool = False,
                 verbose: bool = False,
                 quiet: bool = False):
        self.output_format = output_format
        self.expand_url = expand_url
        self.verbose = verbose
        self.quiet = quiet
        self.beacons: List[Beacon] = []
        self.sample_count = 0
        self.unmatched_count = 0

    def process(self, payload: bytes, rssi: int) -> Optional[Beacon]:
        self.sample_count += 1
        beacon = decode(payload, rssi, expand_url=self.expand_url)
        if beacon is None:
            self.unmatched_count += 1
            if self.verbose and not self.quiet:
                print(f"  [-] no beacon frame in {payload.hex()}")
            return None
        self.beacons.append(beacon)
        if self.output_format == "text" and not self.quiet:
            self._print_beacon(beacon)
        return beacon

    def _print_beacon(self, beacon: Beacon):
        print(f"\n{'='*60}")
        print(f"  {beacon.format.value.upper()}  —  sighting #{len(self.beacons)}")
        print(f"{'='*60}")
        print(f"  {beacon}")
        print(f"  RSSI         : {beacon.rssi} dBm")
        if beacon.accuracy >= 0:
            print(f"  Est. Distance: ~{beacon.accuracy:.2f} m")
        else:
            print("  Est. Distance: unknown")
        print(f"  Proximity    : {beacon.proximity.name.lower()}")

    def write_output(self, stream=None):
        """Write the batch output (csv / json / jsonl) to *stream*."""
        stream = stream if stream is not None else sys.stdout
        if self.output_format == "json":
            stream.write(json.dumps([b.as_dict() for b in self.beacons],
                                    indent=2) + "\n")
        elif self.output_format == "jsonl":
            for beacon in self.beacons:
                stream.write(json.dumps(beacon.as_dict()) + "\n")
        elif self.output_format == "csv":
            writer = csv.writer(stream, lineterminator="\n")
            writer.writerow(_FIELDNAMES)
            for beacon in self.beacons:
                try:
                    line = beacon.to_csv()
                except ValueError:
                    if self.verbose:
                        print(f"  [!] skipping {beacon.format.value} "
                              f"beacon in CSV output", file=sys.stderr)
                    continue
                stream.write(line + "\n")

    def print_summary(self):
        """Print decode summary statistics."""
        out = sys.stderr if self.output_format != "text" else sys.stdout
        print(f"\n{'—'*60}", file=out)
        print(f"Decode complete — {self.sample_count} payload(s)", file=out)
        print(f"  Beacons decoded  : {len(self.beacons)}", file=out)
        print(f"  Unique beacons   : {len(set(self.beacons))}", file=out)
        print(f"  No beacon frame  : {self.unmatched_count}", file=out)


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="BLE beacon decoder — decode iBeacon / Eddystone "
                    "advertising data and estimate distance"
    )
    parser.add_argument(
        "payloads", nargs="*", default=[], metavar="HEX",
        help="Raw advertising data as hex (e.g. 4C000215...)"
    )
    parser.add_argument(
        "-f", "--file", type=str, default=None, metavar="PATH",
        help="Read payloads from a file, one per line as <hex> or "
             "<hex>,<rssi> (lines starting with # are ignored; - for stdin)"
    )

    # Signal
    parser.add_argument(
        "--rssi", type=int, default=None, metavar="DBM",
        help=f"RSSI reading to attach to each payload "
             f"(default: ${_RSSI_ENV} or {_DEFAULT_RSSI})"
    )
    parser.add_argument(
        "--expand-url", action="store_true",
        help="Expand Eddystone-URL suffix codes (.com/, .org/, ...) "
             "instead of emitting URL bytes verbatim"
    )

    # Output
    parser.add_argument(
        "--output", choices=["text", "csv", "json", "jsonl"], default="text",
        help="Output format written to stdout (default: text)"
    )

    # Verbosity
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v", "--verbose", action="store_true",
        help="Verbose mode — report payloads without a beacon frame and "
             "enable debug logging"
    )
    verbosity.add_argument(
        "-q", "--quiet", action="store_true",
        help="Quiet mode — suppress per-beacon output, show summary only"
    )

    args = parser.parse_args(argv)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    if not args.payloads and not args.file:
        print(_BANNER)
        parser.print_help()
        sys.exit(0)

    if args.payloads and args.file:
        parser.error("Cannot use positional payloads and --file together")

    if args.rssi is not None:
        rssi = args.rssi
    elif os.environ.get(_RSSI_ENV):
        try:
            rssi = int(os.environ[_RSSI_ENV])
        except ValueError:
            parser.error(f"{_RSSI_ENV} environment variable: "
                         f"invalid RSSI '{os.environ[_RSSI_ENV]}'")
    else:
        rssi = _DEFAULT_RSSI

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    samples: List[Tuple[bytes, int]] = []
    if args.file:
        try:
            if args.file == "-":
                samples = _read_payload_lines(sys.stdin, rssi)
            else:
                with open(args.file) as f:
                    samples = _read_payload_lines(f, rssi)
        except ValueError as e:
            parser.error(f"Payload file {e}")
        except OSError as e:
            parser.error(f"Cannot read payload file: {e}")
    else:
        for raw in args.payloads:
            try:
                samples.append((parse_payload(raw), rssi))
            except ValueError as e:
                parser.error(str(e))

    decoder = BeaconDecoder(
        output_format=args.output,
        expand_url=args.expand_url,
        verbose=args.verbose,
        quiet=args.quiet,
    )
    for payload, sample_rssi in samples:
        decoder.process(payload, sample_rssi)

    decoder.write_output()
    if args.output == "text" or args.verbose:
        decoder.print_summary()


if __name__ == "__main__":
    main()
