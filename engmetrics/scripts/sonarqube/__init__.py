"""SonarQube import scripts."""

from engmetrics.scripts.sonarqube.quality_scan import SonarQubeQualityScanImportScript
from engmetrics.scripts.sonarqube.vulnerability import SonarQubeVulnerabilityImportScript

__all__ = ["SonarQubeQualityScanImportScript", "SonarQubeVulnerabilityImportScript"]
