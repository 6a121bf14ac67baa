"""Tests for dry-run command classification."""

import re

import pytest

from fleet_admin.models import EXECUTE_ALL, Classification, Verdict
from fleet_admin.services.classifier import (
    ClassificationRule,
    CommandClassifier,
    Stage,
)


@pytest.fixture
def classifier() -> CommandClassifier:
    return CommandClassifier()


class TestClassifyOutsideDryRun:
    """Classification is a no-op when dry-run is off."""

    @pytest.mark.parametrize(
        "command",
        [
            "Get-Service",
            "Stop-Service -Name Spooler",
            "rm -rf /tmp/cache",
            "something nobody has heard of",
            "",
        ],
    )
    def test_always_execute_all(self, classifier: CommandClassifier, command: str) -> None:
        result = classifier.classify(command, dry_run=False)

        assert result == EXECUTE_ALL
        assert classifier.should_execute(result, dry_run=False)


class TestMutatingVerbs:
    """Stage 1: mutating verbs win over everything."""

    @pytest.mark.parametrize(
        "command, rule",
        [
            ("Stop-Service -Name Spooler", "service"),
            ("Set-Service W32Time -StartupType Disabled", "service"),
            ("Stop-Process -Id 4242 -Force", "process"),
            ("Disable-ScheduledTask -TaskName BackupJob1", "scheduled-task"),
            ("Register-ScheduledTask -TaskName Report -Xml $xml", "scheduled-task"),
            ("Remove-Item C:\\Temp\\old.log", "file"),
            ("Rename-Item Login.mxl Login.bak", "file"),
            ("Set-Content -Path C:\\app\\Login.mxl -Value $text", "content"),
            ("Get-Process | Out-File C:\\procs.txt", "out-file"),
            ("Set-ADAccountPassword -Identity svc_app -Reset", "account"),
            ("Set-LocalUser -Name svc_app -Password $pw", "account"),
            ("schtasks /change /tn BackupJob1 /disable", "schtasks"),
            ("sc.exe config Spooler start= disabled", "sc"),
            ("net stop Spooler", "net"),
            ("systemctl restart nginx", "systemctl"),
            ("sudo rm -rf /var/cache/app", "posix"),
            ("ls /tmp; rm /tmp/lock", "posix"),
            ("echo 'x' > /etc/motd", "out-file"),
            ("sed -i 's/a/b/' /etc/app.conf", "sed-inplace"),
        ],
    )
    def test_mutating(self, classifier: CommandClassifier, command: str, rule: str) -> None:
        result = classifier.classify(command, dry_run=True)

        assert result.verdict is Verdict.MUTATING
        assert result.kind == rule
        assert not classifier.should_execute(result, dry_run=True)

    def test_mixed_safe_and_unsafe_is_mutating(self, classifier: CommandClassifier) -> None:
        """A read-only producer does not launder a mutating consumer."""
        assert classifier.classify("Get-Service", dry_run=True).verdict is Verdict.READ_ONLY

        result = classifier.classify("Get-Service | Stop-Service", dry_run=True)

        assert result.verdict is Verdict.MUTATING

    def test_case_insensitive(self, classifier: CommandClassifier) -> None:
        result = classifier.classify("stop-service spooler", dry_run=True)

        assert result.verdict is Verdict.MUTATING


class TestDangerousPipelines:
    """Stage 2: read-only producers piped into mutating consumers."""

    @pytest.mark.parametrize(
        "command, rule",
        [
            ("Get-Service Spooler | % { $_.Stop() }", "pipe-method-call"),
            ("Get-WmiObject Win32_Service | ForEach-Object { $_.ChangeStartMode('Disabled') }", "pipe-method-call"),
            ("Get-Content script.ps1 | Invoke-Expression", "pipe-invoke"),
            ("find /tmp -name '*.lock' | xargs rm", "pipe-xargs"),
            ("cat setup.sh | sudo bash", "pipe-shell"),
        ],
    )
    def test_pipeline(self, classifier: CommandClassifier, command: str, rule: str) -> None:
        result = classifier.classify(command, dry_run=True)

        assert result == Classification(Verdict.MUTATING, rule)


class TestReadOnly:
    """Stage 3: allow-listed queries execute under dry-run."""

    @pytest.mark.parametrize(
        "command, verb",
        [
            ("Get-Service", "Get-Service"),
            ("Get-ScheduledTask -TaskName BackupJob1", "Get-ScheduledTask"),
            ("Test-Path C:\\Hyperion\\Automation", "Test-Path"),
            ("schtasks /query /tn BackupJob1", "schtasks /query"),
            ("sc.exe query Spooler", "sc.exe query"),
            ("systemctl status nginx", "systemctl status"),
            ("uptime", "uptime"),
            ("cat /etc/os-release 2>/dev/null", "cat"),
            ("Get-ChildItem C:\\Logs | Sort-Object LastWriteTime", "Get-ChildItem"),
        ],
    )
    def test_read_only(self, classifier: CommandClassifier, command: str, verb: str) -> None:
        result = classifier.classify(command, dry_run=True)

        assert result == Classification(Verdict.READ_ONLY, verb)
        assert classifier.should_execute(result, dry_run=True)


class TestCustom:
    """Unrecognized commands are blocked under dry-run."""

    @pytest.mark.parametrize(
        "command",
        ["Invoke-RotateCredential -Account svc_app", "./deploy.sh --all", ""],
    )
    def test_unknown_is_custom(self, classifier: CommandClassifier, command: str) -> None:
        result = classifier.classify(command, dry_run=True)

        assert result.verdict is Verdict.CUSTOM
        assert not classifier.should_execute(result, dry_run=True)
        assert classifier.should_execute(result, dry_run=False)


class TestRuleEngine:
    """The rule list is swappable and ordered by stage."""

    def test_custom_rules_replace_defaults(self) -> None:
        rules = [
            ClassificationRule(
                "deploy", re.compile(r"deploy"), Verdict.MUTATING, Stage.MUTATING_VERB
            ),
            ClassificationRule(
                "status", re.compile(r"status"), Verdict.READ_ONLY, Stage.READ_ONLY
            ),
        ]
        classifier = CommandClassifier(rules)

        assert classifier.classify("deploy status", dry_run=True).verdict is Verdict.MUTATING
        assert classifier.classify("status", dry_run=True) == Classification(
            Verdict.READ_ONLY, "status"
        )
        # Default rules are gone
        assert classifier.classify("Stop-Service x", dry_run=True).verdict is Verdict.CUSTOM

    def test_rules_sorted_by_stage(self) -> None:
        """A read-only rule listed first still loses to a mutating one."""
        rules = [
            ClassificationRule("q", re.compile(r"query"), Verdict.READ_ONLY, Stage.READ_ONLY),
            ClassificationRule("w", re.compile(r"wipe"), Verdict.MUTATING, Stage.MUTATING_VERB),
        ]
        classifier = CommandClassifier(rules)

        assert classifier.rules[0].name == "w"
        assert classifier.classify("query then wipe", dry_run=True).verdict is Verdict.MUTATING

    def test_with_rules_extends(self, classifier: CommandClassifier) -> None:
        extended = classifier.with_rules(
            ClassificationRule(
                "rotate",
                re.compile(r"\bInvoke-RotateCredential\b", re.IGNORECASE),
                Verdict.MUTATING,
                Stage.MUTATING_VERB,
            )
        )

        result = extended.classify("Invoke-RotateCredential -Account a", dry_run=True)

        assert result == Classification(Verdict.MUTATING, "rotate")
        assert len(extended.rules) == len(classifier.rules) + 1


class TestShouldExecute:
    """Test should_execute decision table."""

    @pytest.mark.parametrize(
        "classification, dry_run, expected",
        [
            (EXECUTE_ALL, True, True),
            (Classification(Verdict.READ_ONLY, "Get-Service"), True, True),
            (Classification(Verdict.MUTATING, "service"), True, False),
            (Classification(Verdict.CUSTOM), True, False),
            (Classification(Verdict.MUTATING, "service"), False, True),
            (Classification(Verdict.CUSTOM), False, True),
        ],
    )
    def test_decision(
        self, classification: Classification, dry_run: bool, expected: bool
    ) -> None:
        assert CommandClassifier.should_execute(classification, dry_run) is expected
