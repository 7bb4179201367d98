"""Main CLI entry point for the htree command-line tool.

Subcommands dump the intermediate and final products of a parse:

    htree tokens FILE...   scanner tokens with their positions
    htree tree FILE...     the repaired document tree
    htree paths FILE...    every node with its path
    htree info FILE...     title, author, links and content fingerprint
"""

import argparse
import json
import logging
import sys
from concurrent.futures import ProcessPoolExecutor
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from htree import __version__
from htree.api import HTreeParser, examine_page, extract_links, is_markup_content
from htree.shared import ConfigError, ParserConfig
from htree.shared.logging import get_logger
from htree.tokenization import HTMLScanner

logger = get_logger(__name__, None, "cli")

PRESETS: Dict[str, Callable[[], ParserConfig]] = {
    "html": ParserConfig.html,
    "xml": ParserConfig.xml,
}


def create_argument_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog="htree",
        description="Tag-soup HTML/XML parser: inspect tokens, trees and page information"
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Quiet output"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    for name, help_text in (
        ("tokens", "Print scanner tokens"),
        ("tree", "Print the repaired document tree"),
        ("paths", "Print every node with its path"),
        ("info", "Print title, author, links and fingerprint"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument(
            "paths",
            nargs="+",
            type=Path,
            help="Files to read"
        )
        command.add_argument(
            "--content-type",
            help="MIME type of the input, e.g. application/xhtml+xml"
        )
        command.add_argument(
            "--encoding", "-e",
            default="utf-8",
            help="Text encoding of the input files (default: utf-8)"
        )
        command.add_argument(
            "--format", "-f",
            choices=["json", "text"],
            default="text",
            help="Output format (default: text)"
        )
        command.add_argument(
            "--config", "-c",
            type=Path,
            help="ParserConfig JSON file"
        )
        command.add_argument(
            "--preset",
            choices=sorted(PRESETS),
            help="Parser configuration preset"
        )
        if name == "info":
            command.add_argument(
                "--workers", "-w",
                type=int,
                default=1,
                help="Number of parallel worker processes (default: 1)"
            )
            command.add_argument(
                "--base-uri",
                help="Base URI for resolving links"
            )
    return parser


def load_config(args: argparse.Namespace) -> ParserConfig:
    """Build the parser configuration from --config and --preset."""
    if args.config:
        config = ParserConfig.from_json(args.config.read_text(encoding="utf-8"))
    elif args.preset:
        config = PRESETS[args.preset]()
    else:
        config = ParserConfig()
    return config


def _read(path: Path, encoding: str) -> str:
    with path.open(encoding=encoding, errors="replace") as file:
        return file.read()


def dump_tokens(path: Path, args: argparse.Namespace, config: ParserConfig) -> Dict[str, Any]:
    """Scan one file and describe its tokens."""
    scanner = HTMLScanner(config.scanner)
    tokens = scanner.tokenize(_read(path, args.encoding), args.content_type)
    return {
        "file": str(path),
        "is_xml": scanner.is_xml,
        "tokens": [
            {"type": token.type.name, "position": token.position.to_dict(), "raw": token.raw}
            for token in tokens
        ],
    }


def dump_tree(path: Path, args: argparse.Namespace, config: ParserConfig) -> Dict[str, Any]:
    """Parse one file and describe the final tree."""
    result = HTreeParser(config).parse(_read(path, args.encoding), args.content_type)
    return {
        "file": str(path),
        "success": result.success,
        "tree": result.document.to_dict(),
        "diagnostics": [diag.to_dict() for diag in result.diagnostics],
    }


def dump_paths(path: Path, args: argparse.Namespace, config: ParserConfig) -> Dict[str, Any]:
    """Parse one file and list its node paths."""
    result = HTreeParser(config).parse(_read(path, args.encoding), args.content_type)
    return {
        "file": str(path),
        "success": result.success,
        "paths": [node_path for _node, node_path in result.document.traverse_with_path()],
    }


def examine_file(
    path: str,
    encoding: str,
    content_type: Optional[str],
    config_json: str,
    base_uri: Optional[str] = None,
) -> Dict[str, Any]:
    """Examine one file; module-level so worker processes can run it."""
    config = ParserConfig.from_json(config_json)
    text = _read(Path(path), encoding)
    content_type = content_type or "text/html"
    if not is_markup_content(content_type, text):
        return {"file": path, "success": False, "error": "not an HTML or XML document"}
    result = HTreeParser(config).parse(text, content_type)
    info = examine_page(text, content_type, config=config, document=result.document)
    return {
        "file": path,
        "success": True,
        "info": info.to_dict(),
        "links": extract_links(result.document, base_uri or Path(path).resolve().as_uri()),
    }


def format_text(command: str, results: List[Dict[str, Any]]) -> str:
    """Render results as human-readable text."""
    lines: List[str] = []
    for result in results:
        lines.append(f"== {result['file']}")
        if "error" in result:
            lines.append(f"   Error: {result['error']}")
        elif command == "tokens":
            for token in result["tokens"]:
                position = token["position"]
                lines.append(
                    f"{position['line']}:{position['column']}\t{token['type']}\t{token['raw']!r}"
                )
        elif command == "tree":
            lines.extend(_outline(result["tree"]))
        elif command == "paths":
            lines.extend(result["paths"])
        else:
            for key, value in result["info"].items():
                if value:
                    lines.append(f"{key}: {value}")
            lines.extend(f"link: {uri}" for uri in result["links"])
    return "\n".join(lines)


def _outline(tree: Dict[str, Any]) -> List[str]:
    lines: List[str] = []
    stack = [(child, 0) for child in reversed(tree["children"])]
    while stack:
        node, depth = stack.pop()
        indent = "  " * depth
        if node["type"] == "element":
            suffix = "/" if node["void"] else ("" if node["end_tag"] else " (implied end)")
            lines.append(f"{indent}<{node['name']}>{suffix}")
            stack.extend((child, depth + 1) for child in reversed(node["children"]))
        else:
            lines.append(f"{indent}{node['type']} {node['raw']!r}")
    return lines


def run_command(args: argparse.Namespace, config: ParserConfig) -> int:
    """Run a subcommand over every input file."""
    results: List[Dict[str, Any]] = []
    missing = [path for path in args.paths if not path.is_file()]
    for path in missing:
        results.append({"file": str(path), "success": False, "error": "File not found"})
    paths = [path for path in args.paths if path.is_file()]

    if args.command == "info":
        base_uri = getattr(args, "base_uri", None)
        jobs = [
            (str(path), args.encoding, args.content_type, config.to_json(), base_uri)
            for path in paths
        ]
        if args.workers > 1 and len(jobs) > 1:
            with ProcessPoolExecutor(max_workers=args.workers) as executor:
                results.extend(executor.map(examine_file, *zip(*jobs)))
        else:
            results.extend(examine_file(*job) for job in jobs)
    else:
        handler = {"tokens": dump_tokens, "tree": dump_tree, "paths": dump_paths}[args.command]
        for path in paths:
            results.append(handler(path, args, config))

    if args.format == "json":
        print(json.dumps(results, indent=2, ensure_ascii=False))
    else:
        print(format_text(args.command, results))
    return 0 if all(result.get("success", True) for result in results) else 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Set up logging verbosity; without a flag the configuration decides
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    elif args.quiet:
        logging.basicConfig(level=logging.ERROR)

    try:
        config = load_config(args)
        if not (args.verbose or args.quiet):
            logging.basicConfig(level=config.global_.logging_level)
        return run_command(args, config)
    except ConfigError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2
    except OSError as e:
        logger.exception("Failed to read input")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nOperation interrupted by user", file=sys.stderr)
        return 130  # Standard exit code for SIGINT


if __name__ == "__main__":
    sys.exit(main())
