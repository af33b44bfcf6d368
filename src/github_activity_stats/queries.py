"""GraphQL documents used to collect a user's activity."""

PAGE_SIZE = 100

USER_INFO_QUERY = """
query($login: String!) {
  user(login: $login) {
    login
    name
    createdAt
  }
}
"""

RATE_LIMIT_QUERY = """
query {
  rateLimit {
    remaining
    resetAt
  }
}
"""

# Repositories owned by the user or reachable through collaboration/membership
REPOSITORIES_QUERY = """
query($login: String!, $first: Int!, $after: String) {
  user(login: $login) {
    repositories(
      first: $first,
      after: $after,
      ownerAffiliations: [OWNER, COLLABORATOR, ORGANIZATION_MEMBER]
    ) {
      pageInfo {
        hasNextPage
        endCursor
      }
      nodes {
        nameWithOwner
        isPrivate
      }
    }
  }
}
"""

PULL_REQUESTS_QUERY = """
query($login: String!, $first: Int!, $after: String) {
  user(login: $login) {
    pullRequests(first: $first, after: $after, states: [OPEN, CLOSED, MERGED]) {
      pageInfo {
        hasNextPage
        endCursor
      }
      nodes {
        createdAt
        mergedAt
        additions
        deletions
        repository {
          nameWithOwner
        }
      }
    }
  }
}
"""

ISSUES_QUERY = """
query($login: String!, $first: Int!, $after: String) {
  user(login: $login) {
    issues(first: $first, after: $after, states: [OPEN, CLOSED]) {
      pageInfo {
        hasNextPage
        endCursor
      }
      nodes {
        createdAt
        repository {
          nameWithOwner
        }
      }
    }
  }
}
"""

# The `after` cursor applies to every repository's contributions connection,
# which is why continuation pages are requested one repository at a time.
COMMIT_CONTRIBUTIONS_QUERY = """
query(
  $login: String!, $from: DateTime!, $to: DateTime!, $first: Int!, $after: String
) {
  user(login: $login) {
    contributionsCollection(from: $from, to: $to) {
      byRepository: commitContributionsByRepository(maxRepositories: 100) {
        repository {
          nameWithOwner
        }
        contributions(first: $first, after: $after) {
          pageInfo {
            hasNextPage
            endCursor
          }
          nodes {
            occurredAt
            commitCount
          }
        }
      }
    }
  }
}
"""

REVIEW_CONTRIBUTIONS_QUERY = """
query(
  $login: String!, $from: DateTime!, $to: DateTime!, $first: Int!, $after: String
) {
  user(login: $login) {
    contributionsCollection(from: $from, to: $to) {
      byRepository: pullRequestReviewContributionsByRepository(
        maxRepositories: 100
      ) {
        repository {
          nameWithOwner
        }
        contributions(first: $first, after: $after) {
          pageInfo {
            hasNextPage
            endCursor
          }
          nodes {
            occurredAt
            pullRequestReview {
              state
            }
          }
        }
      }
    }
  }
}
"""

ORGANIZATION_MEMBERS_QUERY = """
query($login: String!, $first: Int!, $after: String) {
  organization(login: $login) {
    membersWithRole(first: $first, after: $after) {
      pageInfo {
        hasNextPage
        endCursor
      }
      nodes {
        login
      }
    }
  }
}
"""
