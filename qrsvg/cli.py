"""QR-SVG CLI — render styled QR codes from the command line."""

import argparse
import json
import math
import sys
from pathlib import Path

from qrsvg.constants import CornerDotType, CornerSquareType, DotType, ERROR_CORRECTION_LEVELS
from qrsvg.errors import ConfigurationError, QRSVGError
from qrsvg.logging import audit, get_logger, setup_logging
from qrsvg.options import normalize_keys

log = get_logger("cli")


def _gradient_arg(colors_arg: str | None, rotation_deg: float, radial: bool) -> dict | None:
    """Parse 'COLOR1,COLOR2[,...]' into an evenly spaced gradient dict."""
    if not colors_arg:
        return None
    colors = [c.strip() for c in colors_arg.split(",") if c.strip()]
    if len(colors) == 1:
        stops = [{"offset": 0, "color": colors[0]}]
    else:
        stops = [{"offset": i / (len(colors) - 1), "color": c} for i, c in enumerate(colors)]
    return {
        "type": "radial" if radial else "linear",
        "rotation": math.radians(rotation_deg),
        "color_stops": stops,
    }


def _options_from_args(args) -> dict:
    options = {}
    if args.options:
        try:
            document = json.loads(Path(args.options).read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read options file '{args.options}': {e}") from e
        if not isinstance(document, dict):
            raise ConfigurationError(f"Options file '{args.options}' must hold a JSON object")
        options = normalize_keys(document)

    def put(section, key, value):
        if value is not None:
            options.setdefault(section, {})[key] = value

    options["data"] = args.data
    for key in ("width", "height", "margin", "image"):
        value = getattr(args, key)
        if value is not None:
            options[key] = value
    if args.legacy_rotation:
        options["use_legacy_dot_rotation"] = True

    put("qr_options", "error_correction_level", args.ecc)
    put("qr_options", "type_number", args.qr_version)
    put("qr_options", "mode", args.mode)

    put("dots_options", "type", args.dot_type)
    put("dots_options", "color", args.dot_color)
    put("dots_options", "gradient", _gradient_arg(args.dot_gradient, args.gradient_rotation, args.radial))

    put("corners_square_options", "type", args.corner_square_type)
    put("corners_square_options", "color", args.corner_square_color)
    put("corners_dot_options", "type", args.corner_dot_type)
    put("corners_dot_options", "color", args.corner_dot_color)

    put("background_options", "color", args.background)
    put("background_options", "gradient",
        _gradient_arg(args.background_gradient, args.gradient_rotation, args.radial))

    put("image_options", "image_size", args.image_size)
    put("image_options", "margin", args.image_margin)
    if args.show_background_dots:
        put("image_options", "hide_background_dots", False)
    return options


def cmd_render(args):
    """Render a styled QR code to SVG or PNG."""
    from qrsvg.styled import StyledQRCode

    qr = StyledQRCode(_options_from_args(args))
    path = qr.save(args.output)
    print(f"Rendered: {path} ({qr.options.width}x{qr.options.height}, {qr.matrix.module_count} modules)")


def cmd_logo_size(args):
    """Show how much of the symbol a logo would hide."""
    from qrsvg.image_loader import load_image_sync
    from qrsvg.image_size import calculate_image_size, max_hidden_axis_dots, max_hidden_dots
    from qrsvg.matrix import make_matrix

    matrix = make_matrix(args.data, ecc=args.ecc)
    count = matrix.module_count
    dot_size = math.floor((min(args.width, args.height) - 2 * args.margin) / count)
    image = load_image_sync(args.image)
    budget = max_hidden_dots(args.image_size, args.ecc, count)
    size = calculate_image_size(
        original_width=image.width,
        original_height=image.height,
        max_hidden_dots=budget,
        max_hidden_axis_dots=max_hidden_axis_dots(count),
        dot_size=dot_size,
    )
    print(f"Symbol: {count}x{count} modules, ECC {args.ecc}, module {dot_size}px")
    print(f"Logo:   {image.width}x{image.height} ({image.mime_type})")
    print(f"Budget: {budget} modules, {max_hidden_axis_dots(count)} per axis")
    print(f"Hidden: {size.hidden_columns}x{size.hidden_rows} = {size.hidden_columns * size.hidden_rows} modules")
    print(f"Drawn:  {size.width}x{size.height}px")


def main(argv=None):
    parser = argparse.ArgumentParser(prog="qrsvg", description="QR-SVG: styled vector QR codes")

    # Global logging flags
    parser.add_argument("-V", "--verbose", action="store_true", help="Enable DEBUG-level logging")
    parser.add_argument("--log-file", default=None, help="Write JSON logs to file")
    parser.add_argument("--json-logs", action="store_true", help="JSON log lines on the console")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- render ---
    p_render = subparsers.add_parser("render", help="Render a styled QR code")
    p_render.add_argument("data", help="URL or data to encode")
    p_render.add_argument("-o", "--output", default="output/qr.svg", help="Output file (.svg or .png)")
    p_render.add_argument("--options", default=None, help="JSON options file; flags override it")
    p_render.add_argument("--width", type=int, default=None, help="Canvas width in px")
    p_render.add_argument("--height", type=int, default=None, help="Canvas height in px")
    p_render.add_argument("--margin", type=int, default=None, help="Margin in px")
    p_render.add_argument("-e", "--ecc", default=None, choices=list(ERROR_CORRECTION_LEVELS),
                          help="Error correction level")
    p_render.add_argument("-v", "--qr-version", type=int, default=None, help="QR version 1-40 (auto if omitted)")
    p_render.add_argument("--mode", default=None, choices=["numeric", "alphanumeric", "byte"], help="Symbol mode")
    p_render.add_argument("--dot-type", default=None, choices=[t.value for t in DotType])
    p_render.add_argument("--dot-color", default=None, help="Module colour (e.g. '#000')")
    p_render.add_argument("--dot-gradient", default=None, help="Comma separated gradient colours for modules")
    p_render.add_argument("--corner-square-type", default=None, choices=[t.value for t in CornerSquareType])
    p_render.add_argument("--corner-square-color", default=None)
    p_render.add_argument("--corner-dot-type", default=None, choices=[t.value for t in CornerDotType])
    p_render.add_argument("--corner-dot-color", default=None)
    p_render.add_argument("--background", default=None, help="Background colour")
    p_render.add_argument("--background-gradient", default=None, help="Comma separated background gradient colours")
    p_render.add_argument("--gradient-rotation", type=float, default=0.0, help="Linear gradient rotation (degrees)")
    p_render.add_argument("--radial", action="store_true", help="Use radial gradients")
    p_render.add_argument("--image", default=None, help="Logo path, URL or data URI")
    p_render.add_argument("--image-size", type=float, default=None, help="Logo coverage fraction (0-1)")
    p_render.add_argument("--image-margin", type=int, default=None, help="Logo margin in px")
    p_render.add_argument("--show-background-dots", action="store_true", help="Keep modules under the logo")
    p_render.add_argument("--legacy-rotation", action="store_true", help="Use the legacy dot orientation")

    # --- logo-size ---
    p_logo = subparsers.add_parser("logo-size", help="Compute the logo footprint for a symbol")
    p_logo.add_argument("data", help="URL or data to encode")
    p_logo.add_argument("--image", required=True, help="Logo path, URL or data URI")
    p_logo.add_argument("-e", "--ecc", default="Q", choices=list(ERROR_CORRECTION_LEVELS))
    p_logo.add_argument("--image-size", type=float, default=0.4, help="Logo coverage fraction (0-1)")
    p_logo.add_argument("--width", type=int, default=300)
    p_logo.add_argument("--height", type=int, default=300)
    p_logo.add_argument("--margin", type=int, default=0)

    args = parser.parse_args(argv)

    # Setup logging before any command runs
    level = "DEBUG" if args.verbose else "INFO"
    setup_logging(level=level, log_file=args.log_file, json_format=args.json_logs)
    audit("cli.start", logger=log, command=args.command, verbose=args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    commands = {
        "render": cmd_render,
        "logo-size": cmd_logo_size,
    }
    try:
        commands[args.command](args)
    except QRSVGError as e:
        log.error("%s failed: %s", args.command, e)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    audit("cli.done", logger=log, command=args.command)


if __name__ == "__main__":
    main()
