"""
Tests for script registration and dependency ordering
"""

import pytest

from engmetrics.domain.errors import CycleError
from engmetrics.scripts.base import ImportScript
from engmetrics.scripts.registry import ScriptRegistry, default_registry


class StubScript(ImportScript):
    data_source_name = "GITHUB"
    resource = "stub"

    def build_client(self, context):
        return None

    def resolve_containers(self, storage, context):
        return []

    async def import_container(self, session, container):
        return None

    def container_failure_message(self, container, error):
        return str(error)


def stub(resource, depends_on=(), data_source_name="GITHUB"):
    script_class = type(
        f"Stub_{resource}",
        (StubScript,),
        {"resource": resource, "depends_on": tuple(depends_on), "data_source_name": data_source_name},
    )
    return script_class()


class TestExecutionOrder:
    """Tests for ScriptRegistry.execution_order"""

    def test_dependencies_run_first(self):
        """Test that a dependency registered later still runs first"""
        registry = ScriptRegistry()
        registry.register(stub("issue", depends_on=("sprint",)))
        registry.register(stub("sprint"))

        assert [s.resource for s in registry.execution_order("GITHUB")] == ["sprint", "issue"]

    def test_registration_order_breaks_ties(self):
        """Test that independent scripts keep registration order"""
        registry = ScriptRegistry()
        for resource in ("c", "a", "b"):
            registry.register(stub(resource))

        assert [s.resource for s in registry.execution_order("GITHUB")] == ["c", "a", "b"]

    def test_external_dependencies_ignored(self):
        """Test that dependencies without a script are treated as satisfied"""
        registry = ScriptRegistry()
        registry.register(stub("issue", depends_on=("repository", "project")))

        assert [s.resource for s in registry.execution_order("GITHUB")] == ["issue"]

    def test_scoped_to_data_source(self):
        """Test that only scripts of the requested provider are ordered"""
        registry = ScriptRegistry()
        registry.register(stub("issue"))
        registry.register(stub("issue", data_source_name="JIRA"))

        assert len(registry.execution_order("JIRA")) == 1
        assert registry.execution_order("SONARQUBE") == []

    def test_cycle_detected(self):
        """Test that a dependency cycle raises CycleError"""
        registry = ScriptRegistry()
        registry.register(stub("a", depends_on=("b",)))
        registry.register(stub("b", depends_on=("a",)))
        registry.register(stub("c"))

        with pytest.raises(CycleError) as exc_info:
            registry.execution_order("GITHUB")
        assert sorted(exc_info.value.resources) == ["a", "b"]


class TestRegister:
    """Tests for ScriptRegistry.register"""

    def test_duplicate_rejected(self):
        """Test that the same (data source, resource) cannot be registered twice"""
        registry = ScriptRegistry()
        registry.register(stub("issue"))

        with pytest.raises(ValueError, match="Script already registered"):
            registry.register(stub("issue"))

    def test_get(self):
        """Test lookup by data source and resource"""
        registry = ScriptRegistry()
        script = registry.register(stub("issue"))

        assert registry.get("GITHUB", "issue") is script
        assert registry.get("JIRA", "issue") is None


class TestDefaultRegistry:
    """Tests for the pipeline's default registry"""

    def test_github_order(self):
        """Test that reviews follow pull requests"""
        order = [s.resource for s in default_registry().execution_order("GITHUB")]

        assert order.index("pull-request") < order.index("pull-request-review")
        assert set(order) == {"issue", "commit", "pull-request", "pull-request-review", "pipeline-run"}

    def test_jira_order(self):
        """Test sprint, then issue, then status transitions"""
        order = [s.resource for s in default_registry().execution_order("JIRA")]

        assert order == ["sprint", "issue", "status-transition"]

    def test_gitlab_order(self):
        """Test that GitLab runs its four resources in registration order"""
        order = [s.resource for s in default_registry().execution_order("GITLAB")]

        assert order == ["issue", "commit", "merge-request", "pipeline-run"]

    def test_sonarqube_scripts(self):
        """Test that SonarQube imports both quality scans and vulnerabilities"""
        order = [s.resource for s in default_registry().execution_order("SONARQUBE")]

        assert order == ["quality-scan", "vulnerability"]

    def test_data_sources(self):
        """Test the providers covered by the default registry"""
        assert default_registry().data_source_names() == ["GITHUB", "GITLAB", "JIRA", "SONARQUBE"]
