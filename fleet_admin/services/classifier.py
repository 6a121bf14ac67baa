"""Dry-run command classification.

Commands are matched against an ordered list of rules in three stages:

1. mutating verbs (any match wins, even alongside read-only verbs)
2. dangerous pipelines (a read-only producer feeding a mutating consumer)
3. read-only allow-list

Anything left unmatched is CUSTOM and, like MUTATING, is blocked under
dry-run. The rule set is textual and best-effort: aliases, variables and
encoded commands slip through. Treat it as an audit aid, not a sandbox.
"""

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import IntEnum
from typing import Final

from fleet_admin.models import CUSTOM, EXECUTE_ALL, Classification, Verdict


class Stage(IntEnum):
    """Evaluation order of rule groups. Lower runs first."""

    MUTATING_VERB = 1
    DANGEROUS_PIPELINE = 2
    READ_ONLY = 3


@dataclass(frozen=True)
class ClassificationRule:
    """A pattern and the verdict it yields when it matches."""

    name: str
    pattern: re.Pattern[str]
    verdict: Verdict
    stage: Stage

    def match(self, text: str) -> str | None:
        """Return the matched verb (or whole match), or None."""
        found = self.pattern.search(text)
        if found is None:
            return None
        return (found.groupdict().get("verb") or found.group(0)).strip()


def _rule(name: str, pattern: str, verdict: Verdict, stage: Stage) -> ClassificationRule:
    return ClassificationRule(name, re.compile(pattern, re.IGNORECASE), verdict, stage)


def _verbs(verbs: Iterable[str], nouns: Iterable[str]) -> str:
    """PowerShell Verb-Noun alternation, e.g. (?:Stop|Start)-(?:Service|Process)."""
    return rf"\b(?:{'|'.join(verbs)})-(?:{'|'.join(nouns)})\b"


_SERVICE_VERBS = ("New", "Remove", "Stop", "Start", "Restart", "Suspend", "Resume", "Set")
_PROCESS_VERBS = ("Stop", "Start", "Debug", "Wait")
_TASK_VERBS = ("Register", "Unregister", "Enable", "Disable", "Set", "Start", "Stop", "New")
_ITEM_VERBS = ("New", "Remove", "Rename", "Copy", "Move", "Set", "Clear")
_CONTENT_VERBS = ("Set", "Add", "Clear")
_ACCOUNT_VERBS = ("New", "Remove", "Set", "Enable", "Disable", "Rename", "Unlock")

# Unix commands that only ever change state
_POSIX_MUTATORS = (
    "rm",
    "rmdir",
    "mv",
    "cp",
    "dd",
    "chmod",
    "chown",
    "chgrp",
    "ln",
    "mkdir",
    "touch",
    "truncate",
    "shred",
    "kill",
    "pkill",
    "killall",
    "reboot",
    "shutdown",
    "halt",
    "poweroff",
    "passwd",
    "chpasswd",
    "useradd",
    "userdel",
    "usermod",
    "groupadd",
    "groupdel",
    "crontab",
    "tee",
)

MUTATING_RULES: Final[tuple[ClassificationRule, ...]] = (
    _rule("service", _verbs(_SERVICE_VERBS, ("Service",)), Verdict.MUTATING, Stage.MUTATING_VERB),
    _rule("process", _verbs(_PROCESS_VERBS, ("Process",)), Verdict.MUTATING, Stage.MUTATING_VERB),
    _rule(
        "scheduled-task",
        _verbs(_TASK_VERBS, ("ScheduledTask", "ScheduledJob")),
        Verdict.MUTATING,
        Stage.MUTATING_VERB,
    ),
    _rule(
        "file",
        _verbs(_ITEM_VERBS, ("Item", "ItemProperty", "ChildItem")),
        Verdict.MUTATING,
        Stage.MUTATING_VERB,
    ),
    _rule("content", _verbs(_CONTENT_VERBS, ("Content",)), Verdict.MUTATING, Stage.MUTATING_VERB),
    _rule("out-file", r"\bOut-File\b|\bExport-\w+\b|(?<![<>=!-])>{1,2}(?![=&>])(?!\s*(?:/dev/null|\$null)\b)", Verdict.MUTATING, Stage.MUTATING_VERB),
    _rule(
        "account",
        _verbs(_ACCOUNT_VERBS, ("LocalUser", "ADUser", "ADAccount", "LocalGroupMember"))
        + r"|\bSet-ADAccountPassword\b",
        Verdict.MUTATING,
        Stage.MUTATING_VERB,
    ),
    _rule("computer", r"\b(?:Restart|Stop|Rename)-Computer\b", Verdict.MUTATING, Stage.MUTATING_VERB),
    _rule(
        "schtasks",
        r"\bschtasks(?:\.exe)?\b[^|;&\n]*\s/(?:create|delete|change|run|end)\b",
        Verdict.MUTATING,
        Stage.MUTATING_VERB,
    ),
    _rule(
        "sc",
        r"\bsc(?:\.exe)?\s+(?:\\\\\S+\s+)?(?:config|stop|start|delete|create|pause|continue|failure)\b",
        Verdict.MUTATING,
        Stage.MUTATING_VERB,
    ),
    _rule(
        "net",
        r"\bnet(?:\.exe)?\s+(?:stop|start|user\s+\S+\s+\S+|localgroup\s+\S+\s+\S+\s+/(?:add|delete))",
        Verdict.MUTATING,
        Stage.MUTATING_VERB,
    ),
    _rule(
        "systemctl",
        r"\bsystemctl\s+(?:--\S+\s+)*(?:start|stop|restart|reload|enable|disable|mask|unmask|kill|daemon-reload)\b",
        Verdict.MUTATING,
        Stage.MUTATING_VERB,
    ),
    _rule("service-posix", r"\bservice\s+\S+\s+(?:start|stop|restart|reload)\b", Verdict.MUTATING, Stage.MUTATING_VERB),
    _rule(
        "posix",
        rf"(?:^\s*|[;&|(`\n]\s*|\bsudo\s+)(?:{'|'.join(_POSIX_MUTATORS)})\b",
        Verdict.MUTATING,
        Stage.MUTATING_VERB,
    ),
    _rule("sed-inplace", r"\bsed\s+(?:-\w*\s+)*-i", Verdict.MUTATING, Stage.MUTATING_VERB),
)

PIPELINE_RULES: Final[tuple[ClassificationRule, ...]] = (
    _rule(
        "pipe-method-call",
        r"\|\s*(?:ForEach-Object|foreach|%)\s*\{[^}]*\.(?:Stop|Start|Delete|Kill|Change|Terminate|SetPassword|Disable|Enable)\w*\s*\(",
        Verdict.MUTATING,
        Stage.DANGEROUS_PIPELINE,
    ),
    _rule(
        "pipe-invoke",
        r"\|\s*(?:Invoke-Expression|iex|Invoke-Command|icm|Invoke-WmiMethod|Invoke-CimMethod)\b",
        Verdict.MUTATING,
        Stage.DANGEROUS_PIPELINE,
    ),
    _rule(
        "pipe-xargs",
        rf"\|\s*(?:sudo\s+)?xargs\s+(?:-\S+\s+)*(?:sudo\s+)?(?:{'|'.join(_POSIX_MUTATORS)})\b",
        Verdict.MUTATING,
        Stage.DANGEROUS_PIPELINE,
    ),
    _rule("pipe-shell", r"\|\s*(?:sudo\s+)?(?:ba|z|da)?sh\b", Verdict.MUTATING, Stage.DANGEROUS_PIPELINE),
)

READ_ONLY_RULES: Final[tuple[ClassificationRule, ...]] = (
    _rule("get", r"\bGet-\w+\b", Verdict.READ_ONLY, Stage.READ_ONLY),
    _rule("test", r"\bTest-(?:Path|Connection|NetConnection|WSMan)\b", Verdict.READ_ONLY, Stage.READ_ONLY),
    _rule(
        "shape",
        r"\b(?:Select|Where|Sort|Measure|Group|Format|ConvertTo|Out)-(?:Object|Table|List|Json|Csv|String|Null)\b",
        Verdict.READ_ONLY,
        Stage.READ_ONLY,
    ),
    _rule("schtasks-query", r"\bschtasks(?:\.exe)?\s+/query\b", Verdict.READ_ONLY, Stage.READ_ONLY),
    _rule("sc-query", r"\bsc(?:\.exe)?\s+(?:\\\\\S+\s+)?(?:query|queryex|qc)\b", Verdict.READ_ONLY, Stage.READ_ONLY),
    _rule("systemctl-query", r"\bsystemctl\s+(?:status|is-active|is-enabled|list-units|show)\b", Verdict.READ_ONLY, Stage.READ_ONLY),
    _rule(
        "posix-query",
        r"(?:^\s*|[;&|(\n]\s*)(?P<verb>whoami|hostname|date|uptime|uname|id|ls|cat|head|tail|grep|ps|df|du|free|stat|echo|ipconfig|ifconfig|ip\s+a(?:ddr)?|netstat|ss|find|wc|sort|uniq|awk|journalctl)\b",
        Verdict.READ_ONLY,
        Stage.READ_ONLY,
    ),
)

DEFAULT_RULES: Final[tuple[ClassificationRule, ...]] = (
    MUTATING_RULES + PIPELINE_RULES + READ_ONLY_RULES
)


class CommandClassifier:
    """Ordered rule engine deciding what may run under dry-run.

    Stateless once built; the same instance can be shared by concurrent
    dispatches.
    """

    def __init__(self, rules: Sequence[ClassificationRule] = DEFAULT_RULES) -> None:
        # Stable sort keeps the caller's order within a stage
        self.rules: tuple[ClassificationRule, ...] = tuple(
            sorted(rules, key=lambda rule: rule.stage)
        )

    def classify(self, command_text: str, dry_run: bool) -> Classification:
        """Classify a command for dry-run gating.

        Args:
            command_text: The command as it would be sent to the host
            dry_run: Whether dry-run mode is active

        Returns:
            EXECUTE_ALL outside dry-run, otherwise the first matching
            rule's verdict, or CUSTOM if nothing matched
        """
        if not dry_run:
            return EXECUTE_ALL

        for rule in self.rules:
            matched = rule.match(command_text)
            if matched is None:
                continue
            if rule.verdict is Verdict.READ_ONLY:
                return Classification(Verdict.READ_ONLY, matched)
            return Classification(rule.verdict, rule.name)

        return CUSTOM

    @staticmethod
    def should_execute(classification: Classification, dry_run: bool) -> bool:
        """Whether a classified command may actually run."""
        if not dry_run:
            return True
        return classification.verdict is Verdict.READ_ONLY

    def with_rules(self, *extra: ClassificationRule) -> "CommandClassifier":
        """Return a classifier with additional rules merged in by stage."""
        return CommandClassifier(self.rules + extra)
