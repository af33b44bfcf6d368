import random
from datetime import timedelta

import pytest

from helpers import commit, issue, pull_request, review, user_data, utc

from github_activity_stats.models import RepositoryActivity
from github_activity_stats.stats import (
    BALANCED,
    DEVELOPMENT_ONLY,
    DEVELOPMENT_WITH_REVIEWS,
    NO_ACTIVITY,
    REVIEW_FOCUSED,
    REVIEW_ONLY,
    REVIEW_WEIGHTED,
    aggregate_repository_activities,
    calculate_statistics,
    describe_role,
)


def mixed_history():
    """Four repositories with different sizes and tenures."""
    return user_data(
        commits=[
            commit("o/a", utc(2019, 1, 1)),
            commit("o/a", utc(2020, 6, 1)),
            commit("o/b", utc(2021, 3, 1)),
            commit("o/b", utc(2021, 3, 5)),
            commit("o/b", utc(2021, 3, 9)),
            commit("o/c", utc(2018, 2, 1)),
            commit("o/c", utc(2022, 2, 1)),
            commit("o/d", utc(2015, 1, 1)),
        ],
        pull_requests=[
            pull_request("o/a", utc(2020, 5, 1), 10, 5, merged=True),
            pull_request("o/b", utc(2021, 4, 1), 7, 1),
        ],
        issues=[issue("o/c", utc(2022, 3, 1))],
        reviews=[
            review("o/d", utc(2023, 1, 1)),
            review("o/b", utc(2021, 5, 1)),
            review("o/b", utc(2021, 6, 1)),
        ],
    )


def test_commits_and_merged_pull_request_in_one_year():
    data = user_data(
        commits=[commit("o/r", utc(2020, 2, 1)), commit("o/r", utc(2020, 3, 1))],
        pull_requests=[pull_request("o/r", utc(2020, 4, 1), 100, 50, merged=True)],
    )

    stats = calculate_statistics(data)

    assert stats.total_commits == 2
    assert stats.total_pr_created == 1
    assert stats.total_pr_merged == 1
    assert stats.total_additions == 100
    assert stats.total_deletions == 50
    assert stats.first_activity_year == 2020
    assert stats.yearly_stats[2020].commit_count == 2
    assert stats.yearly_stats[2020].pr_merged == 1
    assert stats.peak_activity_year == 2020
    assert stats.peak_activity_commits == 2


def test_empty_activity_yields_zeroed_statistics():
    stats = calculate_statistics(user_data())

    assert stats is not None
    assert stats.user.login == "alice"
    assert stats.total_commits == 0
    assert stats.total_pr_created == 0
    assert stats.total_pr_merged == 0
    assert stats.total_issues == 0
    assert stats.total_reviews == 0
    assert stats.total_additions == 0
    assert stats.total_deletions == 0
    assert stats.first_activity_year == 0
    assert stats.peak_activity_year == 0
    assert stats.pr_to_review_ratio == 0.0
    assert stats.yearly_stats == {}
    assert stats.top_repositories == []
    assert stats.long_term_repositories == []
    assert stats.role_transition == []


def test_ratio_is_zero_without_pull_requests():
    data = user_data(reviews=[review("o/r", utc(2021, 1, 1))] * 5)

    stats = calculate_statistics(data)

    assert stats.pr_to_review_ratio == 0.0
    assert stats.role_transition[0].ratio == 0.0
    assert stats.role_transition[0].description == REVIEW_ONLY


def test_ratio_is_reviews_per_created_pull_request():
    stats = calculate_statistics(mixed_history())
    assert stats.pr_to_review_ratio == pytest.approx(3 / 2)


def test_yearly_commits_sum_to_total():
    stats = calculate_statistics(mixed_history())

    assert sum(y.commit_count for y in stats.yearly_stats.values()) == 8
    assert stats.total_commits == 8
    assert list(stats.yearly_stats) == sorted(stats.yearly_stats)


def test_yearly_stats_include_years_without_commits():
    stats = calculate_statistics(mixed_history())

    assert stats.yearly_stats[2023].commit_count == 0
    assert stats.yearly_stats[2023].review_count == 1
    assert stats.first_activity_year == 2015


def test_top_repositories_are_limited_and_ranked():
    stats = calculate_statistics(mixed_history())

    names = [repo.repository for repo in stats.top_repositories]
    assert names == ["o/b", "o/a", "o/c"]
    counts = [repo.commit_count for repo in stats.top_repositories]
    assert counts == sorted(counts, reverse=True)


def test_top_repository_ties_keep_encounter_order():
    data = user_data(
        commits=[
            commit("o/x", utc(2020, 1, 1)),
            commit("o/y", utc(2020, 1, 2)),
            commit("o/z", utc(2020, 1, 3)),
            commit("o/w", utc(2020, 1, 4)),
        ]
    )

    stats = calculate_statistics(data)

    assert [r.repository for r in stats.top_repositories] == ["o/x", "o/y", "o/z"]


def test_long_term_repositories_come_from_top_repositories():
    stats = calculate_statistics(mixed_history())

    names = [repo.repository for repo in stats.long_term_repositories]
    # o/d spans 8 years but has a single commit, so it is not a top repository
    assert names == ["o/c", "o/a"]
    top = {id(repo) for repo in stats.top_repositories}
    for repo in stats.long_term_repositories:
        assert id(repo) in top
        assert repo.tenure >= timedelta(days=365)
    tenures = [repo.tenure for repo in stats.long_term_repositories]
    assert tenures == sorted(tenures, reverse=True)


def test_peak_year_prefers_earliest_year_on_ties():
    data = user_data(
        commits=[
            commit("o/r", utc(2021, 1, 1)),
            commit("o/r", utc(2021, 2, 1)),
            commit("o/r", utc(2019, 1, 1)),
            commit("o/r", utc(2019, 2, 1)),
        ]
    )

    stats = calculate_statistics(data)

    assert stats.peak_activity_year == 2019
    assert stats.peak_activity_commits == 2


def test_repository_interval_is_order_independent():
    activities = mixed_history().all_activities()
    expected = aggregate_repository_activities(activities)

    rng = random.Random(1234)
    for _ in range(20):
        shuffled = activities[:]
        rng.shuffle(shuffled)
        folded = aggregate_repository_activities(shuffled)
        for name, repo in folded.items():
            assert repo.first_activity <= repo.last_activity
            assert repo.first_activity == expected[name].first_activity
            assert repo.last_activity == expected[name].last_activity
            assert repo.commit_count == expected[name].commit_count


def test_single_activity_sets_both_ends_of_interval():
    repo = RepositoryActivity("o/r")
    repo.add(commit("o/r", utc(2020, 5, 5)))

    assert repo.first_activity == repo.last_activity == utc(2020, 5, 5)
    assert repo.tenure == timedelta(0)


@pytest.mark.parametrize(
    "pr_created, reviews, expected",
    [
        (0, 0, NO_ACTIVITY),
        (0, 3, REVIEW_ONLY),
        (3, 0, DEVELOPMENT_ONLY),
        (4, 1, DEVELOPMENT_WITH_REVIEWS),
        (2, 1, BALANCED),
        (4, 3, BALANCED),
        (1, 1, REVIEW_WEIGHTED),
        (2, 3, REVIEW_WEIGHTED),
        (1, 2, REVIEW_FOCUSED),
        (1, 10, REVIEW_FOCUSED),
    ],
)
def test_describe_role(pr_created, reviews, expected):
    ratio = reviews / pr_created if pr_created else 0.0
    assert describe_role(pr_created, reviews, ratio) == expected


def test_role_transition_covers_every_active_year():
    stats = calculate_statistics(mixed_history())

    years = [point.year for point in stats.role_transition]
    assert years == sorted(stats.yearly_stats)
    point_2021 = next(p for p in stats.role_transition if p.year == 2021)
    assert point_2021.pr_created == 1
    assert point_2021.review_count == 2
    assert point_2021.description == REVIEW_FOCUSED
    point_2018 = next(p for p in stats.role_transition if p.year == 2018)
    assert point_2018.description == NO_ACTIVITY


def test_aggregation_is_deterministic():
    first = calculate_statistics(mixed_history())
    second = calculate_statistics(mixed_history())

    assert first.role_transition == second.role_transition
    assert first.yearly_stats == second.yearly_stats
    assert [r.repository for r in first.top_repositories] == [
        r.repository for r in second.top_repositories
    ]
