"""Tests for apply failure diagnosis."""

import re
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

import pytest
from terraform.diagnose import GENERIC_FAILURE, RULES, Diagnosis, Rule, diagnose, load_rules


def _message(name: str) -> str:
    return next(rule.message for rule in RULES if rule.name == name)


class TestDiagnose:
    """Test rule matching."""

    @pytest.mark.parametrize('stderr,expected', [
        (
            'Error: Error creating Blob "bootstrap.ign": Error copy/waiting: timeout',
            'azure-blob-copy-timeout',
        ),
        (
            'Error: Error Creating/Updating Subnet "master" (Virtual Network "vnet"): '
            'network.SubnetsClient#CreateOrUpdate: Failure sending request: StatusCode=0 '
            '-- Original Error: Code="AnotherOperationInProgress" Message="Another operation"',
            'azure-subnet-operation-in-progress',
        ),
        (
            'Error: Error Creating/Updating Public IP "pip": network.PublicIPAddressesClient'
            '#CreateOrUpdate: Code="PublicIPCountLimitReached"',
            'azure-public-ip-limit',
        ),
        (
            'Code="OperationNotAllowed" Message="Operation could not be completed as it results '
            'in exceeding approved Total Regional Cores quota."',
            'azure-regional-cores-quota',
        ),
        (
            "Error: googleapi: Error 403: Quota 'CPUS' exceeded. Limit: 24.0 in region us-east1.",
            'gcp-quota-exceeded',
        ),
        (
            'Error: error launching source instance: VcpuLimitExceeded: You have requested more vCPU',
            'aws-vcpu-limit',
        ),
        ('quota exceeded', 'quota-exceeded'),
        ('Error: QuotaExceeded for resource type', 'quota-exceeded'),
        (
            'Error: UnauthorizedOperation: You are not authorized to perform this operation.',
            'unauthorized',
        ),
    ])
    def test_recognized_patterns(self, stderr, expected):
        diagnosis = diagnose(stderr)
        assert diagnosis.name == expected
        assert diagnosis.message == _message(expected)
        assert diagnosis.recognized is True

    def test_quota_exceeded_fixed_message(self):
        """The generic quota rule should map to its fixed diagnosis."""
        assert str(diagnose('quota exceeded')) == _message('quota-exceeded')

    def test_first_match_wins(self):
        """GCP quota text also matches the generic rule but the earlier rule wins."""
        diagnosis = diagnose("googleapi: Error 403: Quota 'SSD_TOTAL_GB' exceeded")
        assert diagnosis.name == 'gcp-quota-exceeded'

    def test_unrecognized_falls_back(self):
        stderr = 'Error: something nobody has seen before'
        diagnosis = diagnose(stderr)
        assert diagnosis.name == 'unknown'
        assert diagnosis.message == GENERIC_FAILURE
        assert diagnosis.detail == stderr
        assert diagnosis.recognized is False

    @pytest.mark.parametrize('stderr', ['', None, '\x00\xff', 'a' * 100000])
    def test_never_raises(self, stderr):
        assert isinstance(diagnose(stderr), Diagnosis)

    def test_detail_keeps_text(self):
        assert diagnose('quota exceeded on disks').detail == 'quota exceeded on disks'

    def test_custom_rules(self):
        rules = (Rule('widgets', re.compile('widgets gone'), 'buy widgets'),)
        assert diagnose('all widgets gone', rules).message == 'buy widgets'
        # builtins are not consulted when an explicit table is given
        assert diagnose('quota exceeded', rules).name == 'unknown'


class TestLoadRules:
    """Test compiling configured rules."""

    def test_compiles_entries(self):
        rules = load_rules([{'name': 'disk', 'match': 'disk (full|exhausted)', 'message': 'grow disk'}])
        assert rules[0].name == 'disk'
        assert rules[0].matches('disk exhausted')

    def test_default_name(self):
        rules = load_rules([{'match': 'x', 'message': 'y'}])
        assert rules[0].name == 'custom-0'

    def test_additive(self):
        """Appending rules should not change results for inputs they don't match."""
        extra = load_rules([{'name': 'disk', 'match': 'disk full', 'message': 'grow disk'}])
        combined = RULES + extra
        for text in ('quota exceeded', 'Error: unknown', 'VcpuLimitExceeded'):
            assert diagnose(text, combined) == diagnose(text)
        assert diagnose('disk full', combined).name == 'disk'

    @pytest.mark.parametrize('entry', [
        {'message': 'no pattern'},
        {'match': 'no message'},
        {'match': '(', 'message': 'bad regex'},
        'not a mapping',
    ])
    def test_invalid_entries(self, entry):
        with pytest.raises(ValueError):
            load_rules([entry])
