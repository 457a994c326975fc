"""Single entry point: snapshot pair plus overrides in, report out."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from semcheck.config import DEFAULT_RULE_TIMEOUT
from semcheck.evaluator import evaluate_rules
from semcheck.identity import IdentityResolver
from semcheck.overrides import EffectiveConfig, LintOverride, resolve_config
from semcheck.report import Report, aggregate
from semcheck.rules import all_rules, list_lint_groups, witness_templates
from semcheck.rules.base import Rule
from semcheck.rules.query import PairView
from semcheck.semver import REQUIRED_BUMPS, classify_version_change
from semcheck.snapshot import SnapshotPair
from semcheck.witness import Witness, WitnessSynthesizer

logger = logging.getLogger(__name__)


def effective_config(
    overrides: Iterable[LintOverride] = (),
    *,
    rules: list[Rule] | None = None,
) -> EffectiveConfig:
    """Resolve the catalog against ``overrides``; raises ``ConfigError`` on bad input."""
    catalog = rules if rules is not None else all_rules()
    return resolve_config(catalog, list_lint_groups(), overrides)


def evaluate(
    pair: SnapshotPair,
    overrides: Iterable[LintOverride] = (),
    *,
    release_type: str | None = None,
    jobs: int | None = None,
    rule_timeout: float | None = DEFAULT_RULE_TIMEOUT,
    witnesses: bool = True,
    rules: list[Rule] | None = None,
) -> Report:
    """Check ``pair`` and return the report.

    Configuration is resolved before any rule runs, so a conflicting or
    unknown override raises ``ConfigError`` without partial results.
    ``release_type`` replaces the bump detected from the two version numbers.
    """
    if release_type is not None and release_type not in REQUIRED_BUMPS:
        raise ValueError(f"release type must be one of: {', '.join(REQUIRED_BUMPS)}")
    catalog = rules if rules is not None else all_rules()
    config = effective_config(overrides, rules=catalog)

    resolver = IdentityResolver(pair)
    view = PairView(pair, resolver)
    findings, runs = evaluate_rules(catalog, view, config, jobs=jobs, timeout=rule_timeout)

    if release_type is not None:
        detected = release_type
    else:
        detected = classify_version_change(pair.baseline.version, pair.current.version)
    logger.debug(
        "%s %s -> %s: detected %s, %d findings",
        pair.current.crate,
        pair.baseline.version,
        pair.current.version,
        detected,
        len(findings),
    )

    rendered: list[Witness] = []
    if witnesses and findings:
        synthesizer = WitnessSynthesizer(view, witness_templates(catalog))
        rendered = synthesizer.synthesize_all(findings, jobs=jobs)

    added = [resolver.identity(item, "current") for item in resolver.additions()]
    return aggregate(findings, detected, witnesses=rendered, runs=runs, additions=added)
