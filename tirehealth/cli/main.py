"""
Command-line interface for the tire health engine.

Usage:
    python -m tirehealth make-example [--output example_capture.json]
    python -m tirehealth assess --input example_capture.json [--output analysis.json]
    python -m tirehealth generate-model --image tread.jpg [--analysis-id ID]
    python -m tirehealth serve [--port 8000]
"""

import argparse
import asyncio
import json
import sys
from datetime import date
from pathlib import Path
from typing import Optional
from uuid import uuid4

from tirehealth import __version__
from tirehealth.config import OrchestratorSettings, configure_logging
from tirehealth.engine import TireHealthEngine
from tirehealth.jobs import ModelGenerationOrchestrator, SimulatedReconstructionProvider
from tirehealth.models.inputs import RecognitionOutput
from tirehealth.models.jobs import JobStatus, ModelGenerationJob
from tirehealth.notifications import LoggingNotifier


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tirehealth",
        description="Tire Health - composite tire assessment and 3D model job tracking.",
    )
    parser.add_argument("--version", action="version", version=f"tirehealth {__version__}")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: TIREHEALTH_LOG_LEVEL or INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # make-example command
    example_parser = subparsers.add_parser(
        "make-example",
        help="Generate an example recognition output JSON file",
    )
    example_parser.add_argument(
        "--output", "-o",
        type=Path,
        default=Path("example_capture.json"),
        help="Output path for example file (default: example_capture.json)",
    )

    # assess command
    assess_parser = subparsers.add_parser(
        "assess",
        help="Assess tire health from recognition output",
    )
    assess_parser.add_argument(
        "--input", "-i",
        type=Path,
        required=True,
        help="Path to JSON recognition output",
    )
    assess_parser.add_argument(
        "--output", "-o",
        type=Path,
        default=None,
        help="Path to save JSON analysis (prints to stdout if not specified)",
    )
    assess_parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Reference date for tire age, YYYY-MM-DD (default: today)",
    )

    # generate-model command
    model_parser = subparsers.add_parser(
        "generate-model",
        help="Run a 3D model generation job against the simulated provider",
    )
    model_parser.add_argument(
        "--image",
        required=True,
        help="Image reference to reconstruct",
    )
    model_parser.add_argument(
        "--analysis-id",
        default=None,
        help="Owning analysis id (default: a new id)",
    )
    model_parser.add_argument(
        "--running-polls",
        type=int,
        default=2,
        help="Polls the simulated provider reports as running (default: 2)",
    )
    model_parser.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Seconds between polls (default: TIREHEALTH_POLL_INTERVAL_S or 5)",
    )

    # serve command
    serve_parser = subparsers.add_parser(
        "serve",
        help="Start the REST API server",
    )
    serve_parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    serve_parser.add_argument(
        "--port", "-p",
        type=int,
        default=8000,
        help="Port to listen on (default: 8000)",
    )
    serve_parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )

    return parser


def cmd_make_example(args: argparse.Namespace) -> int:
    """Generate an example recognition output file."""
    output_json = RecognitionOutput.example().model_dump_json(indent=2)

    with open(args.output, "w") as f:
        f.write(output_json)

    print(f"Created example capture file: {args.output}")
    print("\nRun an assessment with:")
    print(f"  python -m tirehealth assess --input {args.output}")

    return 0


def cmd_assess(args: argparse.Namespace) -> int:
    """Assess one tire capture."""
    try:
        with open(args.input) as f:
            input_data = json.load(f)

        capture = RecognitionOutput(**input_data)

        engine = TireHealthEngine(notifier=LoggingNotifier())
        analysis = engine.assess_capture(capture, now=args.as_of)

        output_json = analysis.model_dump_json(indent=2)

        if args.output:
            with open(args.output, "w") as f:
                f.write(output_json)
            print(f"\nAnalysis saved to {args.output}", file=sys.stderr)
        else:
            print(output_json)

        # Print summary to stderr
        print(
            f"\nScore: {analysis.overall_health_score}/100 "
            f"({analysis.overall_status.display_name})",
            file=sys.stderr,
        )
        print(f"Action: {analysis.action_required.display_name}", file=sys.stderr)
        if not analysis.tread_depth.is_valid:
            print("  Tread reading unreliable (low confidence)", file=sys.stderr)
        for rec in analysis.recommendations:
            print(f"  [{rec.priority}] {rec.title}", file=sys.stderr)
        if analysis.estimated_cost_range:
            cost = analysis.estimated_cost_range
            print(f"Estimated cost: ${cost.min} - ${cost.max}", file=sys.stderr)

        return 0

    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON in {args.input}: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Validation Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


async def _run_model_job(
    orchestrator: ModelGenerationOrchestrator,
    analysis_id: str,
    image: str,
) -> ModelGenerationJob:
    job = await orchestrator.submit(analysis_id, image)
    if job.is_terminal:
        return job
    return await orchestrator.wait_for(job.id)


def cmd_generate_model(args: argparse.Namespace) -> int:
    """Submit a model generation job and poll it to a terminal state."""
    try:
        settings = OrchestratorSettings.from_env()
        if args.poll_interval is not None:
            settings = settings.model_copy(update={"poll_interval_seconds": args.poll_interval})

        orchestrator = ModelGenerationOrchestrator(
            provider=SimulatedReconstructionProvider(running_polls=args.running_polls),
            notifier=LoggingNotifier(),
            settings=settings,
        )
        analysis_id = args.analysis_id or str(uuid4())

        print(f"Generating 3D model for analysis {analysis_id}...", file=sys.stderr)
        job = asyncio.run(_run_model_job(orchestrator, analysis_id, args.image))

        print(job.model_dump_json(indent=2))

        if job.status == JobStatus.COMPLETED:
            print(f"\nModel ready: {job.model_url}", file=sys.stderr)
            return 0
        print(f"\nModel generation failed: {job.error_message}", file=sys.stderr)
        print("Resubmit to try again.", file=sys.stderr)
        return 1

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the FastAPI web server."""
    try:
        import uvicorn

        print(f"\nStarting Tire Health API", file=sys.stderr)
        print(f"API: http://{args.host}:{args.port}/", file=sys.stderr)
        print(f"Docs: http://{args.host}:{args.port}/docs", file=sys.stderr)
        print("\nPress Ctrl+C to stop\n", file=sys.stderr)

        uvicorn.run(
            "tirehealth.api.server:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
        )
        return 0

    except ImportError as e:
        print(f"Error: Missing dependency: {e}", file=sys.stderr)
        print("Install with: pip install uvicorn fastapi", file=sys.stderr)
        return 1


def cli(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "make-example": cmd_make_example,
        "assess": cmd_assess,
        "generate-model": cmd_generate_model,
        "serve": cmd_serve,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args)
    else:
        parser.print_help()
        return 1


def main():
    """Console script entrypoint wrapper."""
    return cli()


if __name__ == "__main__":
    sys.exit(cli())
