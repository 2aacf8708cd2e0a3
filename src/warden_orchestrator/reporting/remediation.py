"""Remediation suggestions derived from a finding's source and severity."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType
from typing import Final

from warden_orchestrator.domain.findings import Finding, Remediation, RemediationPriority

_NVD_URL: Final[str] = "https://nvd.nist.gov/vuln/detail/{cve}"
_ADVISORY_URL: Final[str] = "https://github.com/advisories?query={cve}"
_PLACEHOLDER_PACKAGES: Final[frozenset[str]] = frozenset({"", "unknown"})


class RemediationAdvisor:
    """Builds a ``Remediation`` per finding and attaches it to copies of findings."""

    def __init__(self) -> None:
        templates: dict[str, Callable[[Finding, RemediationPriority], Remediation]] = {}
        for aliases, builder in (
            (("pip", "pip audit", "pip-audit", "python"), self._pip),
            (("npm", "npm audit"), self._npm),
            (("composer", "composer audit"), self._composer),
            (("debug mode", "debug mode audit"), self._debug_mode),
            (("env", "env audit", "environment"), self._env),
            (("config", "config audit"), self._config),
            (("file permissions", "file permissions audit"), self._file_permissions),
            (("docker", "docker audit", "container"), self._docker),
            (("security headers", "security headers audit"), self._security_headers),
            (("database security", "database security audit"), self._database),
        ):
            for alias in aliases:
                templates[alias] = builder
        self._templates = MappingProxyType(templates)

    @property
    def known_sources(self) -> tuple[str, ...]:
        return tuple(sorted(self._templates))

    def suggest(self, finding: Finding) -> Remediation:
        priority = RemediationPriority.for_severity(finding.severity)
        builder = self._templates.get(finding.source.strip().lower(), self._generic)
        return builder(finding, priority)

    def suggest_all(self, findings: Iterable[Finding]) -> list[Remediation]:
        return [self.suggest(finding) for finding in findings]

    def enrich(self, findings: Iterable[Finding]) -> list[Finding]:
        """Return copies of ``findings`` with a suggested remediation attached."""
        return [finding.with_remediation(self.suggest(finding)) for finding in findings]

    # Templates ----------------------------------------------------------------

    def _pip(self, finding: Finding, priority: RemediationPriority) -> Remediation:
        package = finding.package
        commands: list[str] = []
        if package not in _PLACEHOLDER_PACKAGES and package != "pip":
            commands.append(f"pip install --upgrade {package}")
        commands.append("pip-audit")
        links = _cve_links(finding)
        if package not in _PLACEHOLDER_PACKAGES:
            links.append(f"https://pypi.org/project/{package}/")
        return Remediation(
            description=f"Upgrade {package} to a patched release to resolve this vulnerability.",
            commands=tuple(commands),
            manual_steps=(
                f"Review the security advisory for {package}",
                "Pin the fixed version in your requirements or lock file",
                "Run your test suite after upgrading",
            ),
            links=tuple(links),
            priority=priority,
        )

    def _npm(self, finding: Finding, priority: RemediationPriority) -> Remediation:
        package = finding.package
        commands: list[str] = []
        if package not in _PLACEHOLDER_PACKAGES and package != "npm":
            commands.append(f"npm update {package}")
        commands.extend(("npm audit fix", "npm audit"))
        links = _cve_links(finding, include_advisories=False)
        links.append(f"https://www.npmjs.com/package/{package}")
        return Remediation(
            description=(
                f"Update {package} to resolve this vulnerability. "
                "Run npm audit fix to update compatible versions automatically."
            ),
            commands=tuple(commands),
            manual_steps=(
                f"Review the security advisory for {package}",
                "If npm audit fix fails, update the package manually",
                "Consider npm audit fix --force for breaking changes (use with caution)",
            ),
            links=tuple(links),
            priority=priority,
        )

    def _composer(self, finding: Finding, priority: RemediationPriority) -> Remediation:
        package = finding.package
        commands: tuple[str, ...] = ()
        if package not in _PLACEHOLDER_PACKAGES and package != "composer":
            commands = (f"composer update {package}", "composer audit")
        links = _cve_links(finding)
        links.append(f"https://packagist.org/packages/{package}")
        return Remediation(
            description=f"Update {package} to a patched version to resolve this vulnerability.",
            commands=commands,
            manual_steps=(
                f"Review the security advisory for {package}",
                "Check if the updated version is compatible with your application",
                "Run your test suite after updating",
            ),
            links=tuple(links),
            priority=priority,
        )

    def _debug_mode(self, finding: Finding, priority: RemediationPriority) -> Remediation:
        return Remediation(
            description=(
                "Disable debug mode in production to prevent sensitive information exposure."
            ),
            manual_steps=(
                "Turn off the framework debug flag in the production environment",
                "Make sure the production environment name is set correctly",
                "Reload configuration and confirm error pages no longer show stack traces",
            ),
            priority=priority,
        )

    def _env(self, finding: Finding, priority: RemediationPriority) -> Remediation:
        title = finding.title.lower()
        steps: list[str] = []
        if "key" in title or "secret" in title:
            steps.append("Generate a new application secret and rotate the old one")
        if "debug" in title:
            steps.append("Disable debug mode in production")
        steps.extend(
            (
                "Review all environment variables for sensitive data exposure",
                "Ensure the .env file is not committed to version control",
                "Use environment-specific configuration for production",
            )
        )
        return Remediation(
            description="Update environment configuration to follow security best practices.",
            manual_steps=tuple(steps),
            priority=priority,
        )

    def _config(self, finding: Finding, priority: RemediationPriority) -> Remediation:
        return Remediation(
            description="Review and update application configuration for security compliance.",
            manual_steps=(
                "Review the flagged configuration setting",
                "Update config values to follow security best practices",
                "Test application functionality after making changes",
            ),
            priority=priority,
        )

    def _file_permissions(self, finding: Finding, priority: RemediationPriority) -> Remediation:
        commands: tuple[str, ...] = ()
        steps: list[str] = []
        if ".env" in finding.title:
            commands = ("chmod 600 .env",)
            steps.append("Ensure the .env file is only readable by its owner")
        steps.extend(
            (
                "Review file permissions for sensitive configuration files",
                "Ensure config files are not world-readable or writable",
                "Remove any sensitive files from public directories",
            )
        )
        return Remediation(
            description=(
                "Adjust file permissions to prevent unauthorized access to sensitive files."
            ),
            commands=commands,
            manual_steps=tuple(steps),
            priority=priority,
        )

    def _docker(self, finding: Finding, priority: RemediationPriority) -> Remediation:
        title = finding.title.lower()
        steps: list[str] = []
        if "root" in title:
            steps.append("Add a USER instruction so the container does not run as root")
        if "latest" in title:
            steps.append("Pin base images to a specific tag or digest instead of latest")
        if "secret" in title or "password" in title:
            steps.append("Move secrets out of the image and inject them at runtime")
        steps.append("Rebuild the image and re-scan it before deploying")
        return Remediation(
            description="Harden the container definition to reduce its attack surface.",
            manual_steps=tuple(steps),
            links=("https://docs.docker.com/develop/security-best-practices/",),
            priority=priority,
        )

    def _security_headers(self, finding: Finding, priority: RemediationPriority) -> Remediation:
        title = finding.title.lower()
        steps = ["Add security headers via middleware or web server configuration"]
        if "x-frame-options" in title:
            steps.append("Add X-Frame-Options: DENY or SAMEORIGIN header")
        if "content-security-policy" in title or "csp" in title:
            steps.append("Configure a Content-Security-Policy appropriate for the application")
        if "x-content-type-options" in title:
            steps.append("Add X-Content-Type-Options: nosniff header")
        if "strict-transport-security" in title or "hsts" in title:
            steps.append("Add Strict-Transport-Security header with an appropriate max-age")
        steps.append("Verify the headers with securityheaders.com or a similar tool")
        return Remediation(
            description="Configure security headers to protect against common web vulnerabilities.",
            manual_steps=tuple(steps),
            links=(
                "https://securityheaders.com/",
                "https://owasp.org/www-project-secure-headers/",
            ),
            priority=priority,
        )

    def _database(self, finding: Finding, priority: RemediationPriority) -> Remediation:
        title = finding.title.lower()
        steps: list[str] = []
        if "password" in title:
            steps.append("Use a strong, unique password for database connections")
        if "ssl" in title or "tls" in title:
            steps.append("Require SSL/TLS for database connections")
        if "root" in title:
            steps.append("Create a dedicated database user instead of using root")
        steps.extend(
            (
                "Review database user permissions and restrict access",
                "Ensure the database is not publicly accessible",
            )
        )
        return Remediation(
            description="Secure database configuration to prevent unauthorized access.",
            manual_steps=tuple(steps),
            priority=priority,
        )

    def _generic(self, finding: Finding, priority: RemediationPriority) -> Remediation:
        return Remediation(
            description="Review the security finding and apply appropriate fixes.",
            manual_steps=(
                "Review the security advisory details",
                "Identify the affected component or configuration",
                "Apply the recommended fix or update",
                "Test the application after making changes",
            ),
            links=tuple(_cve_links(finding, include_advisories=False)),
            priority=priority,
        )


def _cve_links(finding: Finding, *, include_advisories: bool = True) -> list[str]:
    if not finding.cve:
        return []
    links = [_NVD_URL.format(cve=finding.cve)]
    if include_advisories:
        links.append(_ADVISORY_URL.format(cve=finding.cve))
    return links


def remediation_priorities(findings: Iterable[Finding]) -> Mapping[RemediationPriority, int]:
    """Count how many findings fall under each remediation priority."""
    counts = {priority: 0 for priority in RemediationPriority}
    for finding in findings:
        priority = (
            finding.remediation.priority
            if finding.remediation is not None
            else RemediationPriority.for_severity(finding.severity)
        )
        counts[priority] += 1
    return counts


__all__ = ["RemediationAdvisor", "remediation_priorities"]
