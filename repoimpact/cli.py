"""CLI entrypoints for repoimpact commands."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml

from .config import ConfigError, load_config
from .impact import EffortEstimator
from .logging import configure_logging
from .models import AnalysisContext, ComplexityFactors, ImpactedComponent, Requirement
from .orchestrator import AnalysisRequest, Orchestrator, RunState


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_log_file_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    parser.add_argument(
        "--log-file",
        type=Path,
        default=argparse.SUPPRESS if suppress_default else None,
        help="Also append log records to this file.",
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repoimpact",
        description="Analyze a repository and estimate the impact of a proposed change.",
    )
    _add_verbose_option(parser)
    _add_log_file_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    facts_parser = subparsers.add_parser(
        "facts",
        help="Print the detected technology facts for a repository.",
    )
    _add_verbose_option(facts_parser, suppress_default=True)
    _add_log_file_option(facts_parser, suppress_default=True)
    _add_path_argument(facts_parser)
    facts_parser.add_argument(
        "--bounded",
        action="store_true",
        help="Cap and sample file reads regardless of repository size.",
    )

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Run the full facts, impact and report pipeline for a change.",
    )
    _add_verbose_option(analyze_parser, suppress_default=True)
    _add_log_file_option(analyze_parser, suppress_default=True)
    _add_path_argument(analyze_parser)
    analyze_parser.add_argument(
        "--change",
        default="",
        help="Free-text description of the proposed change.",
    )
    analyze_parser.add_argument(
        "--requirement",
        type=Path,
        help="YAML file with a structured requirement (summary, constraints, non_functional).",
    )
    analyze_parser.add_argument(
        "--components",
        type=Path,
        help="YAML or JSON file listing impacted components instead of deriving them.",
    )
    analyze_parser.add_argument(
        "--compliance",
        nargs="+",
        default=[],
        metavar="TAG",
        help="Compliance regimes that apply to the change (e.g. GDPR HIPAA).",
    )
    analyze_parser.add_argument(
        "--bounded",
        action="store_true",
        help="Cap and sample file reads regardless of repository size.",
    )

    estimate_parser = subparsers.add_parser(
        "estimate",
        help="Score a list of impacted components without scanning a repository.",
    )
    _add_verbose_option(estimate_parser, suppress_default=True)
    _add_log_file_option(estimate_parser, suppress_default=True)
    estimate_parser.add_argument(
        "--components",
        type=Path,
        required=True,
        help="YAML or JSON file with a component list or {components, factors} mapping.",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    _add_log_file_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for repoimpact commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    if args.command == "facts":
        try:
            orchestrator = _orchestrator_for(args.path, bounded=args.bounded)
            facts = asyncio.run(orchestrator.analyze_facts(args.path))
        except (FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")
        except (ConfigError, ValueError) as exc:
            parser.exit(1, f"repoimpact facts failed: {exc}\nRun with --verbose for more details.\n")
        _print_json(facts.to_dict())
    elif args.command == "analyze":
        try:
            request = _analysis_request(args)
            orchestrator = _orchestrator_for(args.path, bounded=args.bounded)
        except (FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")
        except (ConfigError, ValueError, yaml.YAMLError) as exc:
            parser.exit(1, f"repoimpact analyze failed: {exc}\n")
        if not request.text():
            parser.error("analyze requires --change or a --requirement file with a summary")
        record = asyncio.run(orchestrator.run(request))
        status = orchestrator.status(record.run_id)
        _print_json(status)
        if record.state is RunState.ERROR:
            parser.exit(1, f"repoimpact analyze failed: {record.error}\nRun with --verbose for more details.\n")
    elif args.command == "estimate":
        try:
            components, factors = _load_estimate_input(args.components)
        except (FileNotFoundError, ValueError, yaml.YAMLError) as exc:
            parser.exit(1, f"repoimpact estimate failed: {exc}\n")
        estimator = EffortEstimator()
        score = estimator.score(components, factors)
        bucket = estimator.bucket(score)
        _print_json(
            {
                "score": score,
                "effort_bucket": bucket.value,
                "plan": estimator.generate_plan(bucket).to_dict(),
            }
        )
    elif args.command == "serve":  # pragma: no cover - integration path
        from .service.app import run_service

        run_service(host=args.host, port=args.port)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _orchestrator_for(path: str, *, bounded: bool = False) -> Orchestrator:
    root = Path(path).expanduser()
    if not root.exists():
        raise FileNotFoundError(f"Repository root not found: {path}")
    if not root.is_dir():
        raise NotADirectoryError(f"Repository root is not a directory: {path}")
    config = load_config(root)
    if bounded:
        config.analysis.bounded = "always"
    return Orchestrator(config=config)


def _analysis_request(args: argparse.Namespace) -> AnalysisRequest:
    requirement = None
    if args.requirement is not None:
        requirement = Requirement.from_dict(_load_mapping(args.requirement))
    components = None
    if args.components is not None:
        components, _ = _load_estimate_input(args.components)
    return AnalysisRequest(
        root=str(Path(args.path).expanduser().resolve()),
        change_text=args.change,
        requirement=requirement,
        context=AnalysisContext(compliance=list(args.compliance)),
        components=components,
    )


def _read_yaml(path: Path) -> Any:
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    return yaml.safe_load(path.read_text(encoding="utf-8"))


def _load_mapping(path: Path) -> Dict[str, Any]:
    data = _read_yaml(path)
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping")
    return data


def _load_estimate_input(path: Path) -> Tuple[List[ImpactedComponent], ComplexityFactors]:
    data = _read_yaml(path)
    factors: Dict[str, Any] = {}
    if isinstance(data, dict):
        raw_factors = data.get("factors")
        factors = raw_factors if isinstance(raw_factors, dict) else {}
        data = data.get("components")
    if not isinstance(data, list):
        raise ValueError(f"{path} must list components")
    components = [ImpactedComponent.from_dict(item) for item in data if isinstance(item, dict)]
    return components, ComplexityFactors.from_dict(factors)


def _print_json(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2))


if __name__ == "__main__":
    main(sys.argv[1:])
