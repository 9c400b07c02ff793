"""
Scheduler Bootstrap

설정 로드, DB 초기화, 메인 루프 관리.
scheduler_interval_sec마다 ProfitScheduler.tick()을 호출한다
(실제 적립/승인은 로컬 날짜당 한 번).
"""

import asyncio
import logging
import signal
import sys

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.config.loader import ConfigLoadError, FundConfig, get_config
from core.logging import setup_logging
from core.service import FundService
from core.utils.timezone import now_utc

from scheduler.profit_scheduler import ProfitScheduler

logger = logging.getLogger("scheduler")


async def run_loop(
    scheduler: ProfitScheduler,
    interval_sec: int,
    shutdown_event: asyncio.Event,
) -> None:
    """메인 루프

    tick 실패는 기록하고 다음 주기에 재시도한다.
    """
    logger.info(f"메인 루프 시작 (interval: {interval_sec}s)")

    while not shutdown_event.is_set():
        try:
            await scheduler.tick(now_utc())
        except Exception as e:
            logger.error(f"스케줄러 tick 에러: {e}", exc_info=True)

        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval_sec)
        except asyncio.TimeoutError:
            pass

    logger.info("메인 루프 종료")


def _install_signal_handlers(shutdown_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown_event.set)
        except NotImplementedError:
            # Windows: KeyboardInterrupt로 종료
            pass


async def main(config: FundConfig | None = None) -> None:
    """Scheduler 메인 함수"""
    # 1. 설정 로드
    try:
        config = config or get_config()
    except ConfigLoadError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error(f"설정 로드 실패: {e}")
        sys.exit(1)

    setup_logging("scheduler", log_dir=config.log_dir)

    logger.info("=" * 60)
    logger.info("Fund Profit Scheduler 시작")
    logger.info("=" * 60)
    logger.info(f"DB: {config.db_path}")

    # 2. DB 연결 및 스키마 초기화
    async with SQLiteAdapter(config.db_path) as db:
        await init_schema(db)

        service = FundService(db)
        await service.initialize()
        scheduler = ProfitScheduler(service)

        # 3. 종료 이벤트 설정
        shutdown_event = asyncio.Event()
        _install_signal_handlers(shutdown_event)

        logger.info("Scheduler 메인 루프 시작 (종료: Ctrl+C)")

        try:
            await run_loop(scheduler, config.scheduler_interval_sec, shutdown_event)
        except asyncio.CancelledError:
            logger.info("메인 루프 취소됨")

    logger.info("=" * 60)
    logger.info("Fund Profit Scheduler 정상 종료")
    logger.info("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
