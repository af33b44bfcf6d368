"""Render ``UserStatistics`` as JSON, CSV, plain-text summaries and charts."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import matplotlib.pyplot as plt
import polars as pl
from rich.console import Console
from rich.table import Table

from github_activity_stats.models import RepositoryActivity, UserStatistics

console = Console()

MAX_PRESENTATION_BULLETS = 4

YEARLY_SCHEMA = {
    "Year": pl.Int64,
    "Commits": pl.Int64,
    "PR Created": pl.Int64,
    "PR Merged": pl.Int64,
    "Issues": pl.Int64,
    "Reviews": pl.Int64,
    "Additions": pl.Int64,
    "Deletions": pl.Int64,
}


def tenure_days(repo: RepositoryActivity) -> int:
    return repo.tenure.days


def format_timestamp(moment: datetime | None) -> str | None:
    if moment is None:
        return None
    return moment.isoformat()


def active_years(stats: UserStatistics, current_year: int | None = None) -> int:
    """Number of calendar years from the first activity up to *current_year*."""
    if not stats.first_activity_year:
        return 0
    current_year = current_year or datetime.now(timezone.utc).year
    return max(1, current_year - stats.first_activity_year + 1)


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def build_json_data(stats: UserStatistics) -> dict[str, Any]:
    return {
        "user": stats.user.login,
        "name": stats.user.name,
        "total_commits": stats.total_commits,
        "total_pr_created": stats.total_pr_created,
        "total_pr_merged": stats.total_pr_merged,
        "total_issues": stats.total_issues,
        "total_reviews": stats.total_reviews,
        "total_additions": stats.total_additions,
        "total_deletions": stats.total_deletions,
        "first_activity_year": stats.first_activity_year,
        "peak_activity_year": stats.peak_activity_year,
        "peak_activity_commits": stats.peak_activity_commits,
        "pr_to_review_ratio": stats.pr_to_review_ratio,
        "visible_repositories": stats.visible_repositories,
        "yearly_stats": {
            str(year): {
                "year": year_stats.year,
                "commit_count": year_stats.commit_count,
                "pr_created": year_stats.pr_created,
                "pr_merged": year_stats.pr_merged,
                "issue_count": year_stats.issue_count,
                "review_count": year_stats.review_count,
                "additions": year_stats.total_additions,
                "deletions": year_stats.total_deletions,
            }
            for year, year_stats in sorted(stats.yearly_stats.items())
        },
        "top_repositories": [
            {
                "repository": repo.repository,
                "commit_count": repo.commit_count,
                "pr_count": repo.pr_count,
                "issue_count": repo.issue_count,
                "review_count": repo.review_count,
                "additions": repo.total_additions,
                "deletions": repo.total_deletions,
                "first_activity": format_timestamp(repo.first_activity),
                "last_activity": format_timestamp(repo.last_activity),
            }
            for repo in stats.top_repositories
        ],
        "long_term_repositories": [
            {
                "repository": repo.repository,
                "commit_count": repo.commit_count,
                "first_activity": format_timestamp(repo.first_activity),
                "last_activity": format_timestamp(repo.last_activity),
                "duration_days": tenure_days(repo),
            }
            for repo in stats.long_term_repositories
        ],
        "role_transition": [
            {
                "year": point.year,
                "pr_created": point.pr_created,
                "review_count": point.review_count,
                "ratio": point.ratio,
                "description": point.description,
            }
            for point in stats.role_transition
        ],
    }


def write_json(stats: UserStatistics, output_dir: Path) -> Path:
    path = output_dir / f"{stats.user.login}_statistics.json"
    with open(path, "w", encoding="utf-8") as f:
        json.dump(build_json_data(stats), f, indent=2, ensure_ascii=False)
    return path


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------


def build_metrics_frame(stats: UserStatistics) -> pl.DataFrame:
    metrics = [
        ("Total Commits", str(stats.total_commits)),
        ("Total PR Created", str(stats.total_pr_created)),
        ("Total PR Merged", str(stats.total_pr_merged)),
        ("Total Issues", str(stats.total_issues)),
        ("Total Reviews", str(stats.total_reviews)),
        ("Total Additions", str(stats.total_additions)),
        ("Total Deletions", str(stats.total_deletions)),
        ("First Activity Year", str(stats.first_activity_year)),
        ("Peak Activity Year", str(stats.peak_activity_year)),
        ("Peak Activity Commits", str(stats.peak_activity_commits)),
        ("PR to Review Ratio", f"{stats.pr_to_review_ratio:.2f}"),
    ]
    return pl.DataFrame(
        {
            "Metric": [name for name, _ in metrics],
            "Value": [value for _, value in metrics],
        }
    )


def build_yearly_frame(stats: UserStatistics) -> pl.DataFrame:
    years = stats.sorted_years()
    rows = [stats.yearly_stats[year] for year in years]
    return pl.DataFrame(
        {
            "Year": years,
            "Commits": [row.commit_count for row in rows],
            "PR Created": [row.pr_created for row in rows],
            "PR Merged": [row.pr_merged for row in rows],
            "Issues": [row.issue_count for row in rows],
            "Reviews": [row.review_count for row in rows],
            "Additions": [row.total_additions for row in rows],
            "Deletions": [row.total_deletions for row in rows],
        },
        schema=YEARLY_SCHEMA,
    )


def write_csv(stats: UserStatistics, output_dir: Path) -> Path:
    """Write the metric/value table followed by the yearly table."""
    path = output_dir / f"{stats.user.login}_statistics.csv"
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(build_metrics_frame(stats).write_csv())
        f.write("\nYearly Statistics\n")
        f.write(build_yearly_frame(stats).write_csv())
    return path


# ---------------------------------------------------------------------------
# Plain text
# ---------------------------------------------------------------------------


def build_text_summary(stats: UserStatistics, current_year: int | None = None) -> str:
    login = stats.user.login
    lines = [f"=== GitHub activity statistics for {login} ===", ""]

    lines.append("In numbers")
    lines.append(
        f"- {stats.total_commits} commits over "
        f"{active_years(stats, current_year)} years"
    )
    lines.append(
        f"- {stats.total_pr_created} pull requests created, "
        f"{stats.total_pr_merged} merged"
    )
    lines.append(f"- {stats.total_issues} issues opened")
    lines.append(f"- {stats.total_reviews} pull request reviews")
    lines.append(
        f"- {stats.total_additions} lines added, "
        f"{stats.total_deletions} lines deleted (pull requests only)"
    )
    lines.append("")

    lines.append("Characteristics")
    if stats.total_reviews > stats.total_pr_created:
        lines.append("- Very active reviewer, a major contributor to code quality")
    if stats.pr_to_review_ratio > 1.0:
        lines.append("- Reviews more pull requests than they create: a mentoring role")
    if stats.long_term_repositories:
        lines.append(
            f"- Involved in {len(stats.long_term_repositories)} repositories for "
            "more than a year"
        )
    if stats.peak_activity_commits > 0:
        lines.append(
            f"- Most active in {stats.peak_activity_year} with "
            f"{stats.peak_activity_commits} commits"
        )
    lines.append("")

    lines.append("Role transition")
    for point in stats.role_transition:
        if point.pr_created > 0 or point.review_count > 0:
            lines.append(
                f"- {point.year}: {point.description} "
                f"(PRs: {point.pr_created}, reviews: {point.review_count})"
            )
    lines.append("")

    lines.append("Top repositories")
    for i, repo in enumerate(stats.top_repositories, start=1):
        lines.append(f"{i}. {repo.repository}: {repo.commit_count} commits")

    if stats.long_term_repositories:
        lines.append("")
        lines.append("Long-term repositories")
        for repo in stats.long_term_repositories:
            lines.append(
                f"- {repo.repository}: {tenure_days(repo)} days "
                f"(first: {repo.first_activity:%Y-%m-%d}, "
                f"last: {repo.last_activity:%Y-%m-%d})"
            )

    return "\n".join(lines) + "\n"


def build_presentation_summary(
    stats: UserStatistics, current_year: int | None = None
) -> str:
    """A short slide-sized summary: at most four bullets plus key facts."""
    login = stats.user.login
    bullets = [
        f"- {stats.total_commits} commits over "
        f"{active_years(stats, current_year)} years"
    ]
    if stats.total_pr_created > 0:
        bullets.append(
            f"- Created {stats.total_pr_created} pull requests, "
            f"{stats.total_pr_merged} merged"
        )
    if stats.total_reviews > 0:
        bullets.append(
            f"- Reviewed {stats.total_reviews} pull requests, raising team quality"
        )
    if stats.total_additions > 0 or stats.total_deletions > 0:
        bullets.append(
            f"- Evolved the codebase with {stats.total_additions} additions "
            f"and {stats.total_deletions} deletions"
        )
    if stats.long_term_repositories:
        bullets.append(
            f"- Long-term involvement in {len(stats.long_term_repositories)} "
            "repositories"
        )

    lines = [f"=== {login}: presentation notes ===", "", "[Slide]", ""]
    lines.extend(bullets[:MAX_PRESENTATION_BULLETS])
    lines.append("")
    lines.append("[Details]")
    lines.append(
        f"- Most active year: {stats.peak_activity_year} "
        f"({stats.peak_activity_commits} commits)"
    )
    if stats.top_repositories:
        top = stats.top_repositories[0]
        lines.append(
            f"- Top repository: {top.repository} ({top.commit_count} commits)"
        )
    return "\n".join(lines) + "\n"


def write_text_summary(stats: UserStatistics, output_dir: Path) -> Path:
    path = output_dir / f"{stats.user.login}_summary.txt"
    path.write_text(build_text_summary(stats), encoding="utf-8")
    return path


def write_presentation_summary(stats: UserStatistics, output_dir: Path) -> Path:
    path = output_dir / f"{stats.user.login}_presentation.txt"
    path.write_text(build_presentation_summary(stats), encoding="utf-8")
    return path


def format_all(stats: UserStatistics, output_dir: Path) -> list[Path]:
    """Write every per-user report into *output_dir*."""
    output_dir.mkdir(parents=True, exist_ok=True)
    return [
        write_json(stats, output_dir),
        write_csv(stats, output_dir),
        write_text_summary(stats, output_dir),
        write_presentation_summary(stats, output_dir),
    ]


# ---------------------------------------------------------------------------
# Multi-user
# ---------------------------------------------------------------------------


def build_combined_frame(statistics: dict[str, UserStatistics]) -> pl.DataFrame:
    rows = [
        {
            "user": login,
            "total_commits": stats.total_commits,
            "total_pr_created": stats.total_pr_created,
            "total_pr_merged": stats.total_pr_merged,
            "total_issues": stats.total_issues,
            "total_reviews": stats.total_reviews,
            "total_additions": stats.total_additions,
            "total_deletions": stats.total_deletions,
            "first_activity_year": stats.first_activity_year,
            "peak_activity_year": stats.peak_activity_year,
            "pr_to_review_ratio": stats.pr_to_review_ratio,
            "top_repository": (
                stats.top_repositories[0].repository
                if stats.top_repositories
                else None
            ),
        }
        for login, stats in sorted(statistics.items(), key=lambda x: x[0].lower())
    ]
    if not rows:
        return pl.DataFrame()
    return pl.from_dicts(rows)


def write_combined_report(
    output_dir: Path, statistics: dict[str, UserStatistics]
) -> Path | None:
    df = build_combined_frame(statistics)
    if df.is_empty():
        return None
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / "combined_statistics.csv"
    df.write_csv(path)
    return path


# ---------------------------------------------------------------------------
# Terminal and charts
# ---------------------------------------------------------------------------


def print_summary(stats: UserStatistics) -> None:
    """Pretty-print the yearly rollup and role transition with rich."""
    login = stats.user.login
    if not stats.yearly_stats:
        console.print(f"[yellow]No activity found for {login}.[/yellow]")
        return

    table = Table(title=f"GitHub activity for {login}")
    table.add_column("Year", justify="right")
    table.add_column("Commits", justify="right")
    table.add_column("PRs (created/merged)", justify="right")
    table.add_column("Issues", justify="right")
    table.add_column("Reviews", justify="right")
    table.add_column("Role")

    roles = {point.year: point.description for point in stats.role_transition}
    for year in stats.sorted_years():
        row = stats.yearly_stats[year]
        table.add_row(
            str(year),
            str(row.commit_count),
            f"{row.pr_created}/{row.pr_merged}",
            str(row.issue_count),
            str(row.review_count),
            roles.get(year, ""),
        )

    console.print(table)
    if stats.top_repositories:
        top = ", ".join(
            f"{repo.repository} ({repo.commit_count})"
            for repo in stats.top_repositories
        )
        console.print(f"[bold]Top repositories:[/bold] {top}")


def plot_yearly_activity(stats: UserStatistics, output_dir: Path) -> Path | None:
    """Save a bar chart of commits, created PRs and reviews per year."""
    if not stats.yearly_stats:
        console.print(f"[yellow]No data to plot for {stats.user.login}[/yellow]")
        return None

    df = build_yearly_frame(stats)
    years = df["Year"].to_list()
    width = 0.27

    fig, ax = plt.subplots(figsize=(12, 6))
    ax.bar(
        [year - width for year in years],
        df["Commits"].to_list(),
        width=width,
        label="Commits",
        color="tab:blue",
    )
    ax.bar(
        years,
        df["PR Created"].to_list(),
        width=width,
        label="PRs created",
        color="tab:green",
    )
    ax.bar(
        [year + width for year in years],
        df["Reviews"].to_list(),
        width=width,
        label="Reviews",
        color="tab:orange",
    )

    ax.set_title(
        f"Yearly GitHub activity for {stats.user.login}",
        fontsize=16,
        fontweight="bold",
        pad=20,
    )
    ax.set_xlabel("Year", fontsize=12)
    ax.set_ylabel("Count", fontsize=12)
    ax.set_xticks(years)
    ax.legend(fontsize=12)
    ax.grid(True, axis="y", alpha=0.3)
    fig.tight_layout()

    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / f"{stats.user.login}_yearly_activity.png"
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    console.print(f"[green]Plot saved as {output_path}[/green]")
    return output_path
