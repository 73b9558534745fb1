"""CLI entry point for vialctl."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from . import color
from . import config
from . import device
from .errors import EXIT_UNEXPECTED, VialctlError
from .logging_ import setup_logging

logger = logging.getLogger("vialctl")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vialctl",
        description="Set RGB color on keyboards running Vial firmware with RGB support",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  vialctl ff00ff
  vialctl '#00ff00'
  vialctl ff0000 --brightness 80
  vialctl ffffff --white-point 200,255,230

Config: {config.get_config_path()}
  Example:
    {{"white_point": [200, 255, 230]}}
        """
    )

    parser.add_argument(
        "color",
        metavar="HEX_COLOR",
        help="Color as 6 hex digits, with or without a leading '#' (e.g. ff00ff)"
    )

    parser.add_argument(
        "-b", "--brightness",
        type=int,
        default=None,
        help="Brightness in percent 0..100 (default: 100)"
    )

    parser.add_argument(
        "--white-point",
        dest="white_point",
        metavar="R,G,B",
        default=None,
        help="Per-channel white point 1..255 (default: from config, else 255,255,255)"
    )

    parser.add_argument(
        "--no-save",
        action="store_true",
        dest="no_save",
        help="Do not save the color to EEPROM"
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config file to use instead of the default location"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log debug messages to stderr"
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        dest="log_file",
        help="Also write a debug log to this file"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def run(args: argparse.Namespace) -> color.Color:
    """
    Resolve the color and write it to the keyboard.

    Returns:
        The color that was sent

    Raises:
        VialctlError: On any input, discovery or transport failure
    """
    cli_white_point = None
    if args.white_point is not None:
        cli_white_point = color.parse_white_point(args.white_point)

    settings = config.load_config(args.config)
    white_point, source = config.resolve_white_point(cli_white_point, settings, args.config)
    logger.debug(f"White point {white_point.as_tuple()} from {source}")

    # Resolve before touching any device so bad input never writes
    resolved = color.resolve_color(args.color, args.brightness, white_point)
    hue, saturation, value = color.rgb_to_hsv(resolved)

    target = device.find_target()
    print(f"Found: {target.primary.name}" + (" (split keyboard)" if target.is_split else ""))

    hex_code = color.format_hex_color(resolved)
    r, g, b = resolved.as_tuple()
    print(f"Setting color to #{hex_code} (RGB {r},{g},{b}, HSV {hue},{saturation},{value})")

    device.apply_color(target, resolved, save=not args.no_save)
    return resolved


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.log_file)

    try:
        resolved = run(args)
        saved = "not saved to EEPROM" if args.no_save else "saved to EEPROM"
        print(f"OK: color set to #{color.format_hex_color(resolved)} ({saved})", file=sys.stdout)
        sys.exit(0)

    except VialctlError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(e.exit_code)
    except Exception as e:
        logger.debug("Unexpected failure", exc_info=True)
        print(f"Unexpected error: {e}", file=sys.stderr)
        sys.exit(EXIT_UNEXPECTED)


if __name__ == "__main__":
    main()
