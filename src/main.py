"""Command-line entry point for reelsmith."""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text
from tqdm import tqdm

from api.dependencies import build_services
from models.pipeline import GenerationRequest, ProgressEvent
from models.project import DURATION_OPTIONS, AspectRatio, ProjectStatus, VideoStyle
from utils.config import load_config, validate_config
from utils.errors import PipelineError
from utils.logging import setup_logging

logger = logging.getLogger(__name__)
console = Console()

STATUS_STYLES = {
    ProjectStatus.COMPLETED: "green",
    ProjectStatus.FAILED: "red",
    ProjectStatus.GENERATING: "yellow",
}


class ProgressBarCallback:
    """Progress bar callback for displaying real-time pipeline progress."""

    def __init__(self):
        self.bar: Optional[tqdm] = None

    def __call__(self, event: ProgressEvent) -> None:
        """Update the progress bar from a pipeline progress event."""
        if self.bar is None:
            self.bar = tqdm(
                total=100,
                desc="Generating",
                unit="%",
                leave=True,
                bar_format="{l_bar}{bar}| {n}/{total}% [{elapsed}]",
            )

        self.bar.n = event.percent
        self.bar.set_description(event.stage.value.replace("_", " ").title())
        self.bar.set_postfix_str(event.message[:60])
        self.bar.refresh()

    def close(self) -> None:
        if self.bar:
            self.bar.close()


class ReelsmithApp:
    """Runs pipeline operations against the locally configured services."""

    def __init__(self, config: dict):
        self.config = config
        self.services = build_services(config)

    async def generate(self, user_id: str, request: GenerationRequest) -> int:
        """Run one pipeline to completion and print the video URL.

        Returns:
            Process exit code
        """
        problems = validate_config(self.config)
        if problems:
            for problem in problems:
                print(f"Configuration error: {problem}", file=sys.stderr)
            return 2

        await self.services.startup()
        progress_callback = ProgressBarCallback()
        try:
            result = await self.services.controller.run(user_id, request, on_progress=progress_callback)
        except PipelineError as e:
            print(f"\nGeneration failed: {e.user_message()}", file=sys.stderr)
            return 1
        finally:
            progress_callback.close()
            await self.services.shutdown()

        print(f"\nProject: {result.project.id}")
        print(f"Title:   {result.project.title}")
        print(f"Video:   {result.video_url}")
        if result.failed_scenes:
            print(f"Scenes without media: {', '.join(map(str, result.failed_scenes))}")
        print(f"Credits charged: {result.credits_charged}")
        return 0

    async def set_credits(self, user_id: str, amount: int) -> int:
        """Create or update a local profile with the given balance."""
        await self.services.store.connect()
        try:
            profile = await self.services.store.upsert_profile(user_id, credits=amount)
        finally:
            await self.services.store.close()
        print(f"{profile.user_id}: {profile.credits} credits")
        return 0

    async def list_projects(self, user_id: str, limit: int = 20) -> int:
        """Print a user's most recent projects as a table."""
        await self.services.store.connect()
        try:
            projects = await self.services.store.list_projects(user_id, limit=limit)
        finally:
            await self.services.store.close()

        if not projects:
            console.print(f"[dim]No projects for {user_id}[/dim]")
            return 0

        table = Table(title=f"Projects for {user_id}")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Title")
        table.add_column("Status")
        table.add_column("Format", justify="right")
        table.add_column("Video", overflow="fold")

        for project in projects:
            table.add_row(
                project.id,
                project.title,
                Text(project.status.value, style=STATUS_STYLES.get(project.status, "")),
                f"{project.aspect_ratio.value} {project.duration}s",
                project.video_url or "-",
            )

        console.print(table)
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="reelsmith - prompt to narrated video",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python src/main.py credits alice 100
  python src/main.py projects alice
  python src/main.py generate "How volcanoes form" --user alice --style documentary --duration 60
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate a video from a prompt")
    generate.add_argument("prompt", help="What the video should be about")
    generate.add_argument("--user", required=True, help="User id whose credits are charged")
    generate.add_argument(
        "--style",
        choices=[s.value for s in VideoStyle],
        default=VideoStyle.CINEMATIC.value,
    )
    generate.add_argument(
        "--duration",
        type=int,
        default=30,
        help=f"Target length in seconds (common: {', '.join(map(str, DURATION_OPTIONS))})",
    )
    generate.add_argument(
        "--aspect-ratio",
        choices=[a.value for a in AspectRatio],
        default=AspectRatio.LANDSCAPE.value,
    )

    credits = subparsers.add_parser("credits", help="Set a local user's credits balance")
    credits.add_argument("user", help="User id")
    credits.add_argument("amount", type=int, help="New balance")

    projects = subparsers.add_parser("projects", help="List a local user's projects")
    projects.add_argument("user", help="User id")
    projects.add_argument("--limit", type=int, default=20)

    return parser


def main() -> None:
    """Main entry point."""
    args = build_parser().parse_args()

    config = load_config()
    setup_logging(config.get("log_level", "INFO"), json_output=config.get("log_json", False))
    app = ReelsmithApp(config)

    try:
        if args.command == "generate":
            try:
                request = GenerationRequest(
                    prompt=args.prompt,
                    style=VideoStyle(args.style),
                    duration=args.duration,
                    aspect_ratio=AspectRatio(args.aspect_ratio),
                )
            except ValueError as e:
                print(f"Invalid request: {e}", file=sys.stderr)
                sys.exit(2)
            exit_code = asyncio.run(app.generate(args.user, request))
        elif args.command == "credits":
            exit_code = asyncio.run(app.set_credits(args.user, args.amount))
        else:
            exit_code = asyncio.run(app.list_projects(args.user, limit=args.limit))
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
        sys.exit(130)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
