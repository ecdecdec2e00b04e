"""
Tests for contributor identity resolution
"""

from engmetrics.domain.enums import Provider
from engmetrics.scripts.contributor import ContributorResolver, resolve_identity


class TestResolveIdentity:
    """Tests for resolve_identity"""

    def test_explicit_email_lowercased(self):
        """Test that a provided email wins and is lowercased"""
        identity = resolve_identity(Provider.GITHUB, {"email": "Ada@Acme.IO", "name": "Ada", "login": "ada"})

        assert identity.email == "ada@acme.io"
        assert identity.name == "Ada"
        assert identity.username == "ada"

    def test_jira_account_id(self):
        """Test the synthetic email derived from a Jira accountId"""
        identity = resolve_identity("JIRA", {"accountId": "user-123", "displayName": "Grace Hopper"})

        assert identity.email == "user-123@jira.local"
        assert identity.name == "Grace Hopper"
        assert identity.provider_user_id == "user-123"

    def test_github_login(self):
        """Test the synthetic email derived from a GitHub login"""
        identity = resolve_identity(Provider.GITHUB, {"login": "Octocat", "id": 583231})

        assert identity.email == "octocat@github.local"
        assert identity.provider_user_id == "583231"

    def test_jira_avatar(self):
        """Test that Jira avatarUrls are read"""
        identity = resolve_identity("JIRA", {"accountId": "a1", "avatarUrls": {"48x48": "https://img/48.png"}})

        assert identity.avatar_url == "https://img/48.png"

    def test_no_payload(self):
        """Test that a missing user yields None"""
        assert resolve_identity("JIRA", None) is None
        assert resolve_identity("JIRA", {}) is None


class TestContributorResolver:
    """Tests for ContributorResolver"""

    def test_creates_contributor(self, storage):
        """Test that resolving a new user creates one row"""
        resolver = ContributorResolver(storage, Provider.JIRA)

        contributor_id = resolver.resolve({"accountId": "user-123", "displayName": "Ada"})

        row = storage.contributors.find_unique(contributor_id)
        assert row["email"] == "user-123@jira.local"
        assert row["provider"] == "JIRA"
        assert row["name"] == "Ada"

    def test_idempotent_across_resolvers(self, storage):
        """Test that the same user resolves to the same row in later runs"""
        first = ContributorResolver(storage, Provider.JIRA).resolve({"accountId": "user-123", "displayName": "Ada"})
        second = ContributorResolver(storage, Provider.JIRA).resolve(
            {"accountId": "user-123", "displayName": "Ada Lovelace"}
        )

        assert first == second
        assert storage.contributors.count() == 1
        assert storage.contributors.find_unique(first)["name"] == "Ada Lovelace"

    def test_memoised_within_run(self, storage):
        """Test that repeated resolution reuses the cached id"""
        resolver = ContributorResolver(storage, Provider.GITHUB)
        user = {"login": "ada"}

        assert resolver.resolve(user) == resolver.resolve(user)
        assert storage.contributors.count() == 1

    def test_same_email_different_provider(self, storage):
        """Test that identities are scoped per provider"""
        ContributorResolver(storage, Provider.GITHUB).resolve({"email": "ada@acme.io", "name": "Ada"})
        ContributorResolver(storage, Provider.JIRA).resolve({"emailAddress": "ada@acme.io", "displayName": "Ada"})

        assert storage.contributors.count() == 2

    def test_none_user(self, storage):
        """Test that an absent user resolves to None without writing"""
        assert ContributorResolver(storage, Provider.JIRA).resolve(None) is None
        assert storage.contributors.count() == 0
