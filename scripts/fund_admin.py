"""
펀드 관리 CLI

사용법:
    python -m scripts.fund_admin init-db
    python -m scripts.fund_admin set-rate 1310.5
    python -m scripts.fund_admin accrue --as-of 2026-03-31
    python -m scripts.fund_admin audit

--db 옵션이 없으면 config/fund.yaml의 database.path를 사용한다.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# 프로젝트 루트를 Python 경로에 추가
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.config.loader import get_config
from core.errors import FundError
from core.service import FundService
from core.types import Actor
from core.utils.timezone import parse_date

logger = logging.getLogger("cli")


async def cmd_init_db(service: FundService, args: argparse.Namespace) -> int:
    settings = await service.get_settings()
    logger.info(
        f"DB 초기화 완료 (pivot={settings.pivot_currency}, "
        f"display={settings.default_currency}, rate={settings.pivot_rate}, tz={settings.timezone})"
    )
    return 0


async def cmd_set_rate(service: FundService, args: argparse.Namespace) -> int:
    patch = {"pivot_rate": args.rate}
    if args.timezone:
        patch["timezone"] = args.timezone
    settings = await service.update_settings(Actor.admin(args.actor), patch)
    logger.info(f"환율 변경: 1 {settings.pivot_currency} = {settings.pivot_rate} {settings.default_currency}")
    return 0


async def cmd_accrue(service: FundService, args: argparse.Namespace) -> int:
    as_of = parse_date(args.as_of) if args.as_of else None
    report = await service.run_accrual(as_of=as_of)

    for result in report.accrued:
        logger.info(
            f"  - 회계연도 {result.financial_year_id}: {result.days_accrued}일 "
            f"({result.first_day} ~ {result.last_day}), {result.amount_accrued}"
        )
    for failure in report.failures:
        logger.error(
            f"  - 회계연도 {failure.financial_year_id} 실패: {failure.error_type}: {failure.message}"
        )

    logger.info(
        f"적립 완료 (as of {report.as_of}): {report.processed}건 적립, "
        f"{len(report.skipped)}건 건너뜀, {len(report.failures)}건 실패"
    )
    return 0 if report.ok else 1


async def cmd_audit(service: FundService, args: argparse.Namespace) -> int:
    audits = await service.audit_all()
    broken = [a for a in audits if not a.is_consistent]

    for audit in broken:
        logger.error(
            f"  - 투자자 {audit.investor_id}: amount={audit.amount}, "
            f"rollover={audit.rollover_amount}, total={audit.total_amount}, "
            f"journal={audit.replayed_principal}"
        )

    logger.info(f"잔액 검증: {len(audits)}명 중 불일치 {len(broken)}명")
    return 0 if not broken else 1


COMMANDS = {
    "init-db": cmd_init_db,
    "set-rate": cmd_set_rate,
    "accrue": cmd_accrue,
    "audit": cmd_audit,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="펀드 관리 도구")
    parser.add_argument("--db", type=Path, default=None, help="DB 파일 경로 (기본: fund.yaml)")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="스키마 및 기본 설정 생성")

    set_rate = sub.add_parser("set-rate", help="기준통화 환율 변경 (관리자)")
    set_rate.add_argument("rate", help="1 기준통화당 표시통화 금액")
    set_rate.add_argument("--timezone", default=None, help="IANA 타임존 (예: Asia/Baghdad)")
    set_rate.add_argument("--actor", default="cli", help="관리자 ID (기본: cli)")

    accrue = sub.add_parser("accrue", help="일 단위 이익 적립 (수동/백필)")
    accrue.add_argument("--as-of", default=None, help="기준일 YYYY-MM-DD (기본: 오늘)")

    sub.add_parser("audit", help="전체 투자자 잔액 불변식 검증")

    return parser


async def run(args: argparse.Namespace) -> int:
    """명령 실행 → 종료 코드"""
    db_path = args.db if args.db is not None else get_config().db_path

    async with SQLiteAdapter(db_path) as db:
        await init_schema(db)
        service = FundService(db)
        await service.initialize()

        try:
            return await COMMANDS[args.command](service, args)
        except FundError as e:
            logger.error(f"{args.command} 실패: {type(e).__name__}: {e}")
            return 2


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    args = build_parser().parse_args(argv)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
