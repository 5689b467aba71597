#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Post-build audit of the dist/ tree.

Builds an inventory, runs every rule check, prints one section per check,
writes ``build-report.json`` into the audited directory and exits with
0 (no errors) or 1 (errors, missing build output, report not written).
Warnings never fail the run.

USAGE (CI):
  python -m distaudit.audit
  python -m distaudit.audit --dist public --config audit.yml -v
"""
from __future__ import annotations

import argparse
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from distaudit import console
from distaudit.budgets import AuditConfig, describe, load_config, report_name_of
from distaudit.checks import CHECKS, RuleCheck, Severity, Violation, kib, select_checks
from distaudit.errors import (
    ConfigError,
    MissingBuildOutput,
    ReportWriteFailure,
    RuleCheckFailure,
    UnreadableBuildOutput,
)
from distaudit.inventory import Inventory, build_inventory
from distaudit.report import Report, assemble, write_report

log = console.get_logger("audit")


def default_dist() -> Path:
    return Path(os.getenv("DIST_DIR") or "dist")


def inventory_violations(inventory: Inventory) -> List[Violation]:
    return [
        Violation("inventory", f"Skipped {s.relative_path}: {s.reason}", Severity.WARNING, s.relative_path)
        for s in inventory.skipped
    ]


def run_checks(inventory: Inventory, config: AuditConfig,
               checks: Sequence[RuleCheck] = CHECKS) -> Dict[str, List[Violation]]:
    """Run each check in turn; a crashing check becomes one warning and the rest still run."""
    results: Dict[str, List[Violation]] = {}
    for check in checks:
        try:
            results[check.rule_id] = list(check(inventory, config))
        except Exception as e:
            failure = RuleCheckFailure(check.rule_id, e)
            log.debug("check %s raised", check.rule_id, exc_info=True)
            results[check.rule_id] = [Violation(check.rule_id, str(failure), Severity.WARNING)]
    return results


def audit(root: "str | Path", config: Optional[AuditConfig] = None,
          checks: Sequence[RuleCheck] = CHECKS) -> Tuple[Report, Dict[str, List[Violation]]]:
    """Inventory + checks + report, no output. Returns ``(report, results_by_rule)``."""
    config = config or AuditConfig()
    inventory = build_inventory(root, exclude=[config.report_name])
    results = {"inventory": inventory_violations(inventory)}
    results.update(run_checks(inventory, config, checks))
    violations = [v for vs in results.values() for v in vs]
    return assemble(inventory, violations), results


def print_sections(results: Dict[str, List[Violation]], checks: Sequence[RuleCheck]) -> None:
    titles = {c.rule_id: c.title for c in checks}
    if results.get("inventory"):
        console.section(log, "Build Inventory")
        console.emit_violations(log, results["inventory"])
    for rule_id, title in titles.items():
        console.section(log, title)
        found = results.get(rule_id) or []
        if found:
            console.emit_violations(log, found)
        else:
            console.success(log, "%s passed", title)


def print_summary(report: Report) -> None:
    console.section(log, "Build Report")
    for ext, stats in report.by_extension.items():
        log.debug("%s: %d file(s), %s", ext or "(none)", stats.count, kib(stats.size_bytes))
    for rec in report.largest_files:
        log.debug("%s: %s", rec.relative_path, kib(rec.size_bytes))
    log.info("Total files: %d", report.total_files)
    log.info("Total build size: %.2f MB", report.total_size_bytes / (1024 * 1024))

    console.section(log, "Validation Summary")
    errors, warnings = len(report.errors), len(report.warnings)
    if report.passed:
        console.success(log, "PASS: %d error(s), %d warning(s)", errors, warnings)
    else:
        log.error("FAIL: %d error(s), %d warning(s)", errors, warnings)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="dist-audit",
        description="Audit static build output against size and content budgets.",
    )
    p.add_argument("--dist", type=Path, default=None,
                   help="Build output directory (default: $DIST_DIR or ./dist)")
    p.add_argument("--config", type=Path, default=None,
                   help="YAML config file (default: $AUDIT_CONFIG or ./audit.yml if present)")
    p.add_argument("--report-name", default=None,
                   help="Report filename inside the dist directory (default: build-report.json)")
    p.add_argument("--only", action="append", default=None, metavar="RULE",
                   help="Run only this check (repeatable): " + ", ".join(c.rule_id for c in CHECKS))
    g = p.add_mutually_exclusive_group()
    g.add_argument("-v", "--verbose", action="store_true", help="Per-file sizes and debug output")
    g.add_argument("-q", "--quiet", action="store_true", help="Only warnings and errors")
    return p.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    if args.dist is None:
        args.dist = default_dist()
    console.setup_logging(1 if args.verbose else -1 if args.quiet else 0)

    try:
        config = load_config(args.config)
        if args.report_name:
            config = replace(config, report_name=report_name_of(args.report_name, "--report-name"))
    except ConfigError as e:
        log.error("Configuration error: %s", e)
        return 2
    try:
        checks = select_checks(args.only) if args.only else CHECKS
    except KeyError as e:
        log.error("Unknown check: %s", e.args[0])
        return 2

    log.info("Build Performance Validation: %s", args.dist)
    for line in describe(config):
        log.debug("budget %s", line)

    try:
        report, results = audit(args.dist, config, checks)
    except (MissingBuildOutput, UnreadableBuildOutput) as e:
        log.error("%s", e)
        return 1

    print_sections(results, checks)

    report_path = args.dist / config.report_name
    print_summary(report)
    try:
        write_report(report, report_path)
    except ReportWriteFailure as e:
        log.error("%s", e)
        return 1
    console.success(log, "Build report generated: %s", report_path)
    return 0 if report.passed else 1


if __name__ == "__main__":
    sys.exit(main())
