"""Parallel rule evaluation with per-rule failure and timeout isolation."""

from __future__ import annotations

import logging
import os
import threading
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, wait
from dataclasses import dataclass, field
from typing import Literal

from semcheck.overrides import EffectiveConfig
from semcheck.rules.base import Finding, Rule, RuleMatch
from semcheck.rules.query import PairView

logger = logging.getLogger(__name__)

RunStatus = Literal["ran", "failed", "timed_out"]


@dataclass(slots=True)
class RuleRun:
    """Per-rule execution record."""

    rule_id: str
    status: RunStatus
    reason: str
    elapsed_ms: int | None = field(default=None, compare=False)
    findings: int = 0

    @property
    def failed(self) -> bool:
        return self.status != "ran"

    def to_dict(self, *, include_timing: bool = False) -> dict[str, object]:
        payload: dict[str, object] = {
            "rule_id": self.rule_id,
            "status": self.status,
            "reason": self.reason,
            "findings": self.findings,
        }
        if include_timing:
            payload["elapsed_ms"] = self.elapsed_ms
        return payload


def _timed_evaluate(rule: Rule, view: PairView) -> tuple[list[RuleMatch], int]:
    start = time.perf_counter()
    matches = rule.evaluate(view)
    return list(matches), int((time.perf_counter() - start) * 1000)


def _default_jobs() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


def _start(rule: Rule, view: PairView) -> Future[tuple[list[RuleMatch], int]]:
    """Run ``rule`` on its own daemon thread; an abandoned rule never blocks exit."""
    future: Future[tuple[list[RuleMatch], int]] = Future()
    future.set_running_or_notify_cancel()

    def target() -> None:
        try:
            result = _timed_evaluate(rule, view)
        except Exception as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)

    thread = threading.Thread(target=target, name=f"semcheck-rule-{rule.rule_id}", daemon=True)
    thread.start()
    return future


def evaluate_rules(
    rules: list[Rule],
    view: PairView,
    config: EffectiveConfig,
    *,
    jobs: int | None = None,
    timeout: float | None = None,
) -> tuple[list[Finding], list[RuleRun]]:
    """Run every enabled rule and return sorted findings plus one run record per rule.

    At most ``jobs`` rules run at once. Each rule's ``timeout`` is counted
    from the moment that rule starts, so rules still queued behind a slow one
    keep their full budget. A rule that raises or runs past its limit is
    recorded as failed and contributes no findings; a timed-out rule frees
    its slot and is abandoned. Run records follow catalog order.
    """
    enabled = [rule for rule in rules if config.is_enabled(rule.rule_id)]
    findings: list[Finding] = []
    runs: list[RuleRun] = []
    if not enabled:
        return findings, runs

    limit = jobs or _default_jobs()
    pending = deque(enumerate(enabled))
    running: dict[Future[tuple[list[RuleMatch], int]], tuple[int, Rule, float]] = {}
    outcomes: dict[int, tuple[RuleRun, list[Finding]]] = {}

    while pending or running:
        while pending and len(running) < limit:
            index, rule = pending.popleft()
            running[_start(rule, view)] = (index, rule, time.monotonic())

        wait_for = None
        if timeout is not None:
            nearest = min(started for _, _, started in running.values()) + timeout
            wait_for = max(0.0, nearest - time.monotonic())
        done, _ = wait(list(running), timeout=wait_for, return_when=FIRST_COMPLETED)
        for future in done:
            index, rule, _ = running.pop(future)
            outcomes[index] = _collect(rule, future, config)

        if timeout is None:
            continue
        now = time.monotonic()
        for future, (index, rule, started) in list(running.items()):
            if future.done() or now - started < timeout:
                continue
            del running[future]
            logger.warning("rule %s exceeded %ss and was abandoned", rule.rule_id, timeout)
            run = RuleRun(
                rule_id=rule.rule_id,
                status="timed_out",
                reason=f"exceeded {timeout}s time limit",
            )
            outcomes[index] = (run, [])

    for index in range(len(enabled)):
        run, rule_findings = outcomes[index]
        runs.append(run)
        findings.extend(rule_findings)
    findings.sort(key=Finding.sort_key)
    return findings, runs


def _collect(
    rule: Rule,
    future: Future[tuple[list[RuleMatch], int]],
    config: EffectiveConfig,
) -> tuple[RuleRun, list[Finding]]:
    try:
        matches, elapsed_ms = future.result()
    except Exception as exc:
        logger.warning("rule %s failed: %s: %s", rule.rule_id, exc.__class__.__name__, exc)
        run = RuleRun(
            rule_id=rule.rule_id,
            status="failed",
            reason=f"{exc.__class__.__name__}: {exc}",
        )
        return run, []

    rule_config = config.get(rule.rule_id)
    findings = [
        Finding(
            rule_id=rule.rule_id,
            item=match.item,
            level=rule_config.level,  # type: ignore[arg-type]
            required_bump=rule_config.required_bump,
            message=match.message,
            span=match.span,
            baseline_id=match.baseline_id,
            current_id=match.current_id,
            facts=match.facts,
        )
        for match in matches
    ]
    logger.debug("rule %s: %d findings in %dms", rule.rule_id, len(findings), elapsed_ms)
    run = RuleRun(
        rule_id=rule.rule_id,
        status="ran",
        reason="completed",
        elapsed_ms=elapsed_ms,
        findings=len(findings),
    )
    return run, findings
