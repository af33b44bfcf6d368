"""
Analyze the long-term GitHub activity of one or more users.

Usage:
    github-activity-stats --users alice,bob
    github-activity-stats --org my-org --private --output reports --plot

Requires a GITHUB_TOKEN environment variable (or a .env file).
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from github_activity_stats.client import (
    GitHubAPIError,
    GitHubGraphQLClient,
    get_github_token,
)
from github_activity_stats.coordinator import (
    DEFAULT_MAX_WORKERS,
    BatchResult,
    UserResult,
    analyze_users,
)
from github_activity_stats.fetcher import ActivityFetcher
from github_activity_stats.ratelimit import Cancelled, CancelToken, RateLimiter
from github_activity_stats.report import (
    format_all,
    plot_yearly_activity,
    print_summary,
    write_combined_report,
)

console = Console()

DEFAULT_TIMEOUT_MINUTES = 30
DEFAULT_OUTPUT_DIR = "output"


def parse_users(value: str) -> list[str]:
    """Split a comma separated list of logins, dropping blanks and duplicates."""
    users: list[str] = []
    for login in value.split(","):
        login = login.strip()
        if login and login not in users:
            users.append(login)
    return users


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Aggregate long-term GitHub activity statistics for users"
    )
    parser.add_argument(
        "--users", type=str, help="Comma separated GitHub logins (e.g. alice,bob)"
    )
    parser.add_argument(
        "--org", type=str, help="Analyze every member of this organization"
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=DEFAULT_OUTPUT_DIR,
        help=f"Output directory (default {DEFAULT_OUTPUT_DIR})",
    )
    parser.add_argument(
        "--private",
        action="store_true",
        help="Include private repositories in the repository listing",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_MINUTES,
        help=f"Give up after N minutes (default {DEFAULT_TIMEOUT_MINUTES})",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=DEFAULT_MAX_WORKERS,
        help=f"Users analyzed concurrently (default {DEFAULT_MAX_WORKERS})",
    )
    parser.add_argument(
        "--plot", action="store_true", help="Save a yearly activity chart per user"
    )
    return parser


def resolve_users(
    args: argparse.Namespace, fetcher: ActivityFetcher, cancel: CancelToken
) -> list[str]:
    users = parse_users(args.users) if args.users else []
    if args.org:
        console.print(f"Fetching members of organization [bold]{args.org}[/bold]...")
        for login in fetcher.fetch_organization_members(args.org, cancel):
            if login not in users:
                users.append(login)
        console.print(f"[green]Found {len(users)} users to analyze[/green]")
    return users


def run(
    users: list[str],
    fetcher: ActivityFetcher,
    include_private: bool,
    cancel: CancelToken,
    max_workers: int,
) -> BatchResult:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task(f"Analyzing {len(users)} users...", total=None)
        done = 0

        def on_complete(result: UserResult) -> None:
            nonlocal done
            done += 1
            status = "[green]ok[/green]" if result.ok else "[red]failed[/red]"
            progress.console.print(f"  {result.login}: {status}")
            progress.update(
                task, description=f"Analyzed {done}/{len(users)} users..."
            )

        return analyze_users(
            users,
            fetcher,
            include_private=include_private,
            cancel=cancel,
            max_workers=max_workers,
            on_complete=on_complete,
        )


def write_reports(batch: BatchResult, output_dir: Path, plot: bool) -> None:
    for login in sorted(batch.statistics, key=str.lower):
        stats = batch.statistics[login]
        print_summary(stats)
        paths = format_all(stats, output_dir)
        if plot:
            plot_yearly_activity(stats, output_dir)
        console.print(
            f"[green]Saved {len(paths)} reports for {login} to {output_dir}[/green]"
        )

    for login, warnings in sorted(batch.warnings.items()):
        for warning in warnings:
            console.print(f"[yellow]{login}: skipped {warning}[/yellow]")

    for login, error in sorted(batch.failures.items()):
        console.print(f"[red]Error analyzing {login}: {error}[/red]")

    combined = write_combined_report(output_dir, batch.statistics)
    if combined is not None:
        console.print(f"[green]Combined report saved to {combined}[/green]")


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.users and not args.org:
        parser.error("either --users or --org is required")
    if args.timeout <= 0:
        parser.error("--timeout must be positive")
    if args.max_workers < 1:
        parser.error("--max-workers must be at least 1")

    try:
        token = get_github_token()
    except RuntimeError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    client = GitHubGraphQLClient(token, limiter=RateLimiter())
    fetcher = ActivityFetcher(client)
    cancel = CancelToken.with_timeout(args.timeout * 60)

    try:
        users = resolve_users(args, fetcher, cancel)
    except (GitHubAPIError, Cancelled) as e:
        console.print(f"[red]Could not list organization members: {e}[/red]")
        sys.exit(1)
    if not users:
        console.print("[yellow]No users to analyze.[/yellow]")
        return

    batch = run(users, fetcher, args.private, cancel, args.max_workers)

    output_dir = Path(args.output)
    write_reports(batch, output_dir, args.plot)

    console.print(
        f"\nAnalyzed {len(batch.statistics)}/{len(users)} users "
        f"({len(batch.failures)} failed)"
    )
    if not batch.statistics:
        sys.exit(1)


if __name__ == "__main__":
    main()
