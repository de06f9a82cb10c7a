"""procgovctl: operator CLI for the procedure governance core."""
from __future__ import annotations

import argparse
import json
from pathlib import Path

from procgov.core.config import GovernanceSettings
from procgov.core.logging import configure_logging
from procgov.ledger.backends import build_backend
from procgov.ledger.ledger import DEFAULT_PAGE_SIZE, AuditLedger
from procgov.scoring.criteria import load_criteria
from procgov.scoring.detector import detect_sections
from procgov.scoring.engine import score


def _ledger(settings: GovernanceSettings) -> AuditLedger:
    return AuditLedger(build_backend(settings))


def _cmd_score(args: argparse.Namespace, settings: GovernanceSettings) -> None:
    text = Path(args.textfile).read_text(encoding="utf-8")
    criteria = load_criteria(settings.criteria_path)
    result = score(detect_sections(text), criteria, minimum_score=settings.minimum_quality_score)
    print(json.dumps(result.to_dict(), indent=2))


def _cmd_audit_log(args: argparse.Namespace, settings: GovernanceSettings) -> None:
    page = _ledger(settings).query(action=args.action, user_id=args.user, page=args.page, limit=args.limit)
    print(json.dumps(page.to_dict(), indent=2))


def _cmd_verify_ledger(args: argparse.Namespace, settings: GovernanceSettings) -> None:
    report = _ledger(settings).verify()
    print(json.dumps(report.to_dict(), indent=2))
    if not report.ok:
        raise SystemExit(1)


def _cmd_serve(args: argparse.Namespace, settings: GovernanceSettings) -> None:
    import uvicorn

    from procgov.api.main import create_app

    uvicorn.run(create_app(settings), host=args.host, port=args.port, log_level=settings.log_level.lower())


COMMANDS = {
    "score": _cmd_score,
    "audit-log": _cmd_audit_log,
    "verify-ledger": _cmd_verify_ledger,
    "serve": _cmd_serve,
}


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="procgovctl")
    subparsers = parser.add_subparsers(dest="command", required=True)

    score_parser = subparsers.add_parser("score")
    score_parser.add_argument("textfile")

    audit_parser = subparsers.add_parser("audit-log")
    audit_parser.add_argument("--action")
    audit_parser.add_argument("--user")
    audit_parser.add_argument("--page", type=int, default=1)
    audit_parser.add_argument("--limit", type=int, default=DEFAULT_PAGE_SIZE)

    subparsers.add_parser("verify-ledger")

    serve_parser = subparsers.add_parser("serve")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)
    settings = GovernanceSettings.from_env()
    configure_logging(settings.log_level)
    handler = COMMANDS[args.command]
    handler(args, settings)


if __name__ == "__main__":  # pragma: no cover - manual entry point
    main()
