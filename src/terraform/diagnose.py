"""Failure triage for apply output.

The tool reports failures as human readable text on stderr. RULES maps
recognizable fragments of that text to actionable diagnoses. Rules are
checked in order and the first match wins. Text no rule recognizes yields
a generic diagnosis that still carries the raw output.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional

GENERIC_FAILURE = 'failed to complete the change'


@dataclass(frozen=True)
class Rule:
    """A stderr pattern and the diagnosis it maps to."""
    name: str
    pattern: re.Pattern
    message: str

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


@dataclass(frozen=True)
class Diagnosis:
    """Outcome of classifying a failed apply.

    Attributes:
        name: Rule name, or 'unknown' when nothing matched
        message: Actionable description of the failure
        detail: The stderr text that was classified
    """
    name: str
    message: str
    detail: str = ''

    @property
    def recognized(self) -> bool:
        return self.name != 'unknown'

    def __str__(self) -> str:
        return self.message


def _rule(name: str, pattern: str, message: str, flags: int = 0) -> Rule:
    return Rule(name, re.compile(pattern, flags), message)


RULES: tuple[Rule, ...] = (
    _rule(
        'azure-blob-copy-timeout',
        r'Error: Error creating Blob .*: Error copy/waiting',
        'failed to create the bootstrap blob: copying it to the storage account timed out, '
        'retry the operation',
    ),
    _rule(
        'azure-subnet-operation-in-progress',
        r'Error: Error Creating/Updating Subnet .*Code="AnotherOperationInProgress"',
        'failed to create subnet: another operation on this or a dependent resource is in progress, '
        'retry the operation',
    ),
    _rule(
        'azure-storage-account-timeout',
        r"Error: Error waiting for Azure Storage Account .* to be created: "
        r"Future#WaitForCompletion: context has been cancelled",
        'failed to create the storage account: waiting for it to become available timed out, '
        'retry the operation',
    ),
    _rule(
        'azure-public-ip-limit',
        r'Code="PublicIPCountLimitReached"',
        'public IP address limit reached for the subscription in this region, '
        'request a quota increase or release unused addresses',
    ),
    _rule(
        'azure-regional-cores-quota',
        r'exceeding approved Total Regional Cores quota',
        'regional vCPU quota exceeded, request a core quota increase for the subscription',
    ),
    _rule(
        'gcp-quota-exceeded',
        r"googleapi: Error 403: Quota '[\w-]+' exceeded",
        'a Google Cloud project quota was exceeded, request an increase for the listed metric',
    ),
    _rule(
        'aws-vcpu-limit',
        r'VcpuLimitExceeded',
        'AWS vCPU limit exceeded for the requested instance types, request a service quota increase',
    ),
    _rule(
        'quota-exceeded',
        r'quota[ _-]?exceeded|exceeded.{0,40}quota',
        'a cloud provider quota was exceeded, request an increase or free up resources and retry',
        re.IGNORECASE,
    ),
    _rule(
        'unauthorized',
        r'UnauthorizedOperation|AuthorizationFailed|AccessDenied|Error 403: .*permission',
        'the credentials in use are not authorized for the requested operation, '
        'check the account permissions',
    ),
)


def load_rules(entries: Iterable[dict]) -> tuple[Rule, ...]:
    """Compile rule mappings of the form {name, match, message}.

    Raises:
        ValueError: missing fields or an invalid regular expression
    """
    rules = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValueError(f"rule {i} must be a mapping")
        missing = [k for k in ('match', 'message') if not entry.get(k)]
        if missing:
            raise ValueError(f"rule {i} missing {', '.join(missing)}")
        try:
            pattern = re.compile(entry['match'])
        except (re.error, TypeError) as e:
            raise ValueError(f"rule {i} has invalid pattern {entry['match']!r}: {e}") from e
        rules.append(Rule(entry.get('name') or f'custom-{i}', pattern, entry['message']))
    return tuple(rules)


def diagnose(text: str, rules: Optional[Iterable[Rule]] = None) -> Diagnosis:
    """Classify captured stderr from a failed apply."""
    text = text or ''
    for rule in RULES if rules is None else rules:
        if rule.matches(text):
            return Diagnosis(rule.name, rule.message, text)
    return Diagnosis('unknown', GENERIC_FAILURE, text)
