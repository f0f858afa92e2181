from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

from .config import load_config, resolve_processor
from .content import DEFAULT_TEMPLATE, DEFAULT_TIMEZONE, FrontMatterError
from .pipeline import BuildContext, BuildError, build_site
from .utils import clean_output_dir, parse_bool, parse_int, resolve_workers


def context_from_args(args: argparse.Namespace) -> BuildContext:
    context = BuildContext(
        content_dir=Path(args.content),
        output_dir=Path(args.output),
        templates_dir=Path(args.templates),
        default_template=args.default_template,
        timezone=args.timezone,
        workers=resolve_workers(args.workers),
        progress=args.progress,
        verbose=args.verbose,
        site_url=(args.site_url or "").strip(),
        highlight_class=args.highlight_class,
    )
    processor = resolve_processor(args.processor)
    if processor is not None:
        context.set_processor(processor)
    return context


def run(args: argparse.Namespace) -> int:
    content_dir = Path(args.content)
    templates_dir = Path(args.templates)
    if not content_dir.is_dir():
        print(f"Content directory not found: {content_dir}", file=sys.stderr)
        return 1
    if not templates_dir.is_dir():
        print(f"Templates directory not found: {templates_dir}", file=sys.stderr)
        return 1
    try:
        context = context_from_args(args)
    except (KeyError, ValueError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1
    if args.clean:
        try:
            clean_output_dir(context.output_dir, Path.cwd())
        except ValueError as exc:
            print(f"Invalid configuration: {exc}", file=sys.stderr)
            return 1

    try:
        build_site(context)
    except (BuildError, OSError, FrontMatterError) as exc:
        print(f"Build failed: {exc}", file=sys.stderr)
        return 1
    return 0


def build_parser(argv: list[str] | None = None) -> argparse.ArgumentParser:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument(
        "--config",
        default="site.toml",
        help="Path to site config file (TOML/YAML/JSON).",
    )
    pre_args, _ = pre_parser.parse_known_args(argv)
    config = load_config(Path(pre_args.config))

    def cfg_value(key: str, default: object) -> object:
        value = config.get(key)
        return default if value is None else value

    def cfg_str(key: str, default: str) -> str:
        value = cfg_value(key, default)
        return default if value is None else str(value)

    def cfg_bool(key: str, default: bool) -> bool:
        value = cfg_value(key, default)
        return parse_bool(value) if value is not None else default

    def cfg_int(key: str, default: int) -> int:
        value = cfg_value(key, default)
        return parse_int(value, default)

    parser = argparse.ArgumentParser(description="Render a content tree into a static site.")
    parser.add_argument("--config", default=pre_args.config, help="Path to site config file (TOML/YAML/JSON).")
    parser.add_argument("--content", default=cfg_str("content", "content"), help="Source content directory.")
    parser.add_argument("--output", default=cfg_str("output", "static"), help="Output directory for the site.")
    parser.add_argument("--templates", default=cfg_str("templates", "templates"), help="Directory of named templates.")
    parser.add_argument(
        "--default-template",
        default=cfg_str("default_template", DEFAULT_TEMPLATE),
        help="Template used when a document does not name one.",
    )
    parser.add_argument(
        "--timezone",
        default=cfg_str("timezone", DEFAULT_TIMEZONE),
        help="Time zone front matter dates are interpreted in.",
    )
    parser.add_argument(
        "--workers",
        default=cfg_int("workers", 0),
        type=int,
        help="Number of worker threads for writing output (0 = auto).",
    )
    parser.add_argument(
        "--progress",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("progress", True),
        help="Show a progress bar while writing.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("verbose", False),
        help="Log every crawled and written file.",
    )
    parser.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("clean", False),
        help="Remove the output directory before building.",
    )
    parser.add_argument(
        "--processor",
        default=cfg_str("processor", ""),
        help="Metadata processor as 'module:function'.",
    )
    parser.add_argument(
        "--site-url",
        default=cfg_str("site_url", ""),
        help="Public site URL used by the absolute_url filter.",
    )
    parser.add_argument(
        "--highlight-class",
        default=cfg_str("highlight_class", "highlight"),
        help="CSS class for highlighted code blocks.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser(argv)
    args = parser.parse_args(argv)
    start = time.perf_counter()
    status = run(args)
    if status:
        sys.exit(status)
    elapsed = time.perf_counter() - start
    print(f"Build completed in {elapsed:.2f}s.")
    print(f"Site generated in: {args.output}")
