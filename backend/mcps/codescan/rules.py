"""
Detection rules for the scanning engine.
Each rule pairs one compiled pattern with its category and severity.
"""

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import regex


RULE_SET_VERSION = "2024.1"


class Severity(str, Enum):
    """Ordered risk level, Critical > High > Medium > Low."""

    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}


class Category(str, Enum):
    SECRET_EXPOSURE = "SecretExposure"
    SQL_INJECTION = "SqlInjection"
    CROSS_SITE_SCRIPTING = "CrossSiteScripting"


@dataclass(frozen=True)
class Rule:
    """A named, severity-tagged pattern used to detect one kind of issue."""

    rule_id: str
    category: Category
    severity: Severity
    pattern: "regex.Pattern"
    title_template: str
    description: str
    impact: str

    def find_first(self, content: str, timeout: Optional[float] = None) -> Optional["regex.Match"]:
        """
        Return the first match of this rule in content, or None.

        Raises TimeoutError when matching runs longer than ``timeout`` seconds.
        """
        return self.pattern.search(content, timeout=timeout)

    def find_all(self, content: str, timeout: Optional[float] = None) -> Iterator["regex.Match"]:
        """Yield every non-overlapping match of this rule in content."""
        return self.pattern.finditer(content, timeout=timeout)

    def render_title(self, file_path: str) -> str:
        return self.title_template.format(file=file_path)


def make_rule(
    rule_id: str,
    category: Category,
    severity: Severity,
    pattern: str,
    title_template: str,
    description: str,
    impact: str,
    flags: int = regex.IGNORECASE,
) -> Rule:
    """Build a Rule, compiling its pattern once."""
    return Rule(
        rule_id=rule_id,
        category=category,
        severity=severity,
        pattern=regex.compile(pattern, flags),
        title_template=title_template,
        description=description,
        impact=impact,
    )


class RuleSet:
    """
    Immutable, ordered collection of rules.

    Rules are evaluated as one flat list in insertion order, so a file that
    triggers several categories yields one finding per rule. Rule ids must be
    unique.
    """

    def __init__(self, rules: Iterable[Rule], version: str = RULE_SET_VERSION):
        self._rules: Tuple[Rule, ...] = tuple(rules)
        self._by_id: Dict[str, Rule] = {}
        for rule in self._rules:
            if rule.rule_id in self._by_id:
                raise ValueError(f"Duplicate rule id: {rule.rule_id}")
            self._by_id[rule.rule_id] = rule
        self.version = version

    def all_rules(self) -> Tuple[Rule, ...]:
        return self._rules

    def get(self, rule_id: str) -> Optional[Rule]:
        return self._by_id.get(rule_id)

    def ids(self) -> List[str]:
        return [rule.rule_id for rule in self._rules]

    def by_category(self) -> Dict[Category, List[Rule]]:
        grouped: Dict[Category, List[Rule]] = {}
        for rule in self._rules:
            grouped.setdefault(rule.category, []).append(rule)
        return grouped

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._by_id

    def __repr__(self) -> str:
        return f"RuleSet(version={self.version!r}, rules={len(self._rules)})"


_SECRET_TITLE = "Potential Secret Exposure in {file}"
_SECRET_DESCRIPTION = "Sensitive information or credentials found in code."
_SECRET_IMPACT = "Potential exposure of sensitive data or credentials."


def _secret_rule(rule_id: str, pattern: str) -> Rule:
    return make_rule(
        rule_id=rule_id,
        category=Category.SECRET_EXPOSURE,
        severity=Severity.CRITICAL,
        pattern=pattern,
        title_template=_SECRET_TITLE,
        description=_SECRET_DESCRIPTION,
        impact=_SECRET_IMPACT,
    )


def build_default_rules() -> List[Rule]:
    """Return a fresh list of the shipped rules, in evaluation order."""
    return [
        # Secrets
        _secret_rule(
            "secret.generic_assignment",
            r"(?:password|secret|key|token|api[_-]?key|aws[_-]?key|private[_-]?key)"
            r"\s*[=:]\s*['\"][^'\"]+['\"]",
        ),
        _secret_rule(
            "secret.private_key_block",
            r"BEGIN\s+(?:RSA|DSA|EC|OPENSSH)\s+PRIVATE\s+KEY",
        ),
        _secret_rule(
            "secret.ssh_public_key",
            r"(?:ssh-rsa|ssh-dss|ssh-ed25519)\s+[A-Za-z0-9+/]+={0,3}\s+[^@\s]+@[^@\s]+",
        ),
        _secret_rule("secret.aws_access_key", r"AKIA[0-9A-Z]{16}"),
        _secret_rule("secret.github_token", r"ghp_[0-9a-zA-Z]{36}"),
        _secret_rule("secret.json_secret_field", r"\"secret\"\s*:\s*\"[^\"]+\""),
        # SQL injection
        make_rule(
            rule_id="sqli.string_literal_query",
            category=Category.SQL_INJECTION,
            severity=Severity.HIGH,
            # Atomic groups pin the first FROM and WHERE so long lines cannot
            # backtrack through every keyword combination.
            pattern=(
                r"(?:SELECT|INSERT|UPDATE|DELETE|DROP|UNION)\s+"
                r"(?>.*?FROM\s+)(?>.*?WHERE\s+).*['\"][^'\"]*['\"]"
            ),
            title_template="Potential SQL Injection in {file}",
            description="Unsanitized SQL query detected.",
            impact="Potential database compromise.",
        ),
        # XSS
        make_rule(
            rule_id="xss.inline_script",
            category=Category.CROSS_SITE_SCRIPTING,
            severity=Severity.HIGH,
            pattern=r"<script|javascript:|on\w+\s*=",
            title_template="Potential XSS Vulnerability in {file}",
            description="Potential cross-site scripting vulnerability detected.",
            impact="Potential client-side code execution.",
        ),
    ]


@lru_cache(maxsize=1)
def default_rule_set() -> RuleSet:
    """The shipped rule set. Built once; safe to share across threads."""
    return RuleSet(build_default_rules())
