# NALSSI/nalssi/core/scheduler.py

import asyncio
import logging
import os
import resource
from datetime import timedelta
from typing import Awaitable, Callable, Dict, Optional, Set

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from nalssi.core.config import settings
from nalssi.domains.weather.cleanup import WeatherDataCleaner, weather_data_cleaner
from nalssi.domains.weather.collector import (
    WeatherDataCollector, weather_data_collector, resolve_short_term_base,
)
from nalssi.domains.weather.generator import RecommendationGenerator, recommendation_generator
from nalssi.domains.weather.schemas import SchedulerStatus
from nalssi.utils.clock import get_now_kst, today_kst

logger = logging.getLogger(__name__)

MEMORY_WARNING_PERCENT = 80.0

WEATHER_GROUP = "weather"
GENERAL_GROUP = "general"
SHUTDOWN_POLL_LIMIT = 10


class JobFlag:
    """
    작업 중복 실행 방지 플래그
    이벤트 루프 안에서 확인과 설정 사이에 await가 없으므로 원자적으로 동작합니다.
    """

    def __init__(self, name: str):
        self.name = name
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def try_acquire(self) -> bool:
        if self._running:
            return False
        self._running = True
        return True

    def release(self):
        self._running = False


def memory_usage_percent() -> Optional[float]:
    """프로세스 RSS / 물리 메모리 (%)"""
    try:
        page_size = os.sysconf("SC_PAGE_SIZE")
        total = os.sysconf("SC_PHYS_PAGES") * page_size
    except (ValueError, OSError, AttributeError):
        return None
    if total <= 0:
        return None

    try:
        with open("/proc/self/statm") as f:
            rss = int(f.read().split()[1]) * page_size
    except (OSError, IndexError, ValueError):
        # /proc이 없으면 최대 RSS로 대체 (리눅스 기준 KB 단위)
        rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss * 1024
    return rss / total * 100


class WeatherScheduler:
    """
    날씨 수집/추천 생성/정리 작업 스케줄러 (APScheduler)
    - 작업마다 실행 중 플래그를 두고 이미 실행 중이면 경고 후 건너뜁니다.
    - 수집이 끝나면 일정 시간 뒤 추천 생성을 한 번 예약합니다.
    """

    def __init__(
        self,
        collector: WeatherDataCollector = None,
        generator: RecommendationGenerator = None,
        cleaner: WeatherDataCleaner = None,
        scheduler: AsyncIOScheduler = None,
    ):
        self.collector = collector or weather_data_collector
        self.generator = generator or recommendation_generator
        self.cleaner = cleaner or weather_data_cleaner
        self.config = settings.SCHEDULER
        self.timezone = pytz.timezone(settings.TIMEZONE)
        self.scheduler = scheduler or AsyncIOScheduler(timezone=self.timezone)

        self.short_term_sync = JobFlag("short_term_sync")
        self.medium_term_sync = JobFlag("medium_term_sync")
        self.short_term_generation = JobFlag("short_term_generation")
        self.medium_term_generation = JobFlag("medium_term_generation")
        self.complete_generation = JobFlag("complete_generation")
        self.cleanup = JobFlag("cleanup")

        self._tasks: Dict[str, Set[asyncio.Task]] = {WEATHER_GROUP: set(), GENERAL_GROUP: set()}

    @property
    def flags(self):
        return (
            self.short_term_sync, self.medium_term_sync, self.short_term_generation,
            self.medium_term_generation, self.complete_generation, self.cleanup,
        )

    # ====================================================
    # 등록 / 종료
    # ====================================================
    def start(self):
        if not self.config.ENABLED:
            logger.info("날씨 스케줄러 비활성화 (SCHEDULER__ENABLED=false)")
            return

        cron_jobs = [
            ("short_term_sync", self.config.SHORT_TERM_CRON, self.run_short_term_sync),
            ("medium_term_sync", self.config.MEDIUM_TERM_CRON, self.run_medium_term_sync),
            ("short_term_generation", self.config.SHORT_TERM_GENERATION_CRON, self.run_short_term_generation),
            ("medium_term_generation", self.config.MEDIUM_TERM_GENERATION_CRON, self.run_medium_term_generation),
            ("complete_generation", self.config.COMPLETE_GENERATION_CRON, self.run_complete_generation),
            ("cleanup", self.config.CLEANUP_CRON, self.run_cleanup),
        ]
        for job_id, cron, job in cron_jobs:
            self.scheduler.add_job(
                self._run_tracked,
                CronTrigger.from_crontab(cron, timezone=self.timezone),
                args=[WEATHER_GROUP, job],
                id=job_id,
                replace_existing=True,
                max_instances=2,  # 중복 실행은 JobFlag가 판단
                coalesce=True,
            )

        self.scheduler.add_job(
            self._run_tracked, "interval", minutes=self.config.HEALTH_CHECK_MINUTES,
            args=[GENERAL_GROUP, self.health_check], id="health_check", replace_existing=True,
        )

        # 서버 기동 후 1회 초기 동기화
        self.scheduler.add_job(
            self._run_tracked, "date",
            run_date=get_now_kst() + timedelta(seconds=self.config.INITIAL_SYNC_DELAY_SECONDS),
            args=[WEATHER_GROUP, self.initial_sync], id="initial_sync", replace_existing=True,
        )

        self.scheduler.start()
        logger.info(f"🚀 날씨 스케줄러 시작 | jobs={len(self.scheduler.get_jobs())}")

    async def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            # APScheduler 3.11부터 shutdown은 이벤트 루프 콜백으로 실행됨
            for _ in range(SHUTDOWN_POLL_LIMIT):
                if not self.scheduler.running:
                    break
                await asyncio.sleep(0)
        await self._drain(WEATHER_GROUP, self.config.WEATHER_SHUTDOWN_TIMEOUT)
        await self._drain(GENERAL_GROUP, self.config.GENERAL_SHUTDOWN_TIMEOUT)
        logger.info("🛑 날씨 스케줄러 종료")

    async def _drain(self, group: str, timeout: float):
        tasks = [task for task in self._tasks[group] if not task.done()]
        if not tasks:
            return
        logger.info(f"실행 중 작업 종료 대기 | group={group} tasks={len(tasks)} timeout={timeout}s")
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"대기 시간 초과로 작업 취소 | group={group} cancelled={len(pending)}")
            await asyncio.gather(*pending, return_exceptions=True)

    async def _run_tracked(self, group: str, job: Callable[[], Awaitable]):
        task = asyncio.current_task()
        self._tasks[group].add(task)
        try:
            return await job()
        finally:
            self._tasks[group].discard(task)

    async def _guarded(self, flag: JobFlag, label: str, job: Callable[[], Awaitable]):
        if not flag.try_acquire():
            logger.warning(f"{label} 작업이 이미 실행 중입니다. 건너뜁니다.", extra={"job": flag.name})
            return None
        try:
            return await job()
        except Exception:
            logger.exception(f"❌ {label} 작업 실행 중 오류", extra={"job": flag.name})
            return None
        finally:
            flag.release()

    def _schedule_trigger(self, job_id: str, job: Callable[[], Awaitable], delay_minutes: int, reason: str):
        run_date = get_now_kst() + timedelta(minutes=delay_minutes)
        self.scheduler.add_job(
            self._run_tracked, "date", run_date=run_date,
            args=[WEATHER_GROUP, job], id=job_id, replace_existing=True,
        )
        logger.info(f"추천 생성 예약 | reason={reason} run_at={run_date:%H:%M}")

    # ====================================================
    # 수집
    # ====================================================
    async def run_short_term_sync(self):
        async def job():
            base_date, base_time = resolve_short_term_base(get_now_kst())
            result = await self.collector.collect_short_term(None, base_date, base_time, False)
            if result.successful_regions > 0:
                self._schedule_trigger(
                    "short_term_generation_trigger", self.run_short_term_generation,
                    self.config.SHORT_TERM_TRIGGER_DELAY_MINUTES, "단기예보 수집 후",
                )
            return result

        return await self._guarded(self.short_term_sync, "단기예보 수집", job)

    async def run_medium_term_sync(self):
        async def job():
            result = await self.collector.collect_medium_term(None, today_kst(), False)
            if result.successful_regions > 0:
                self._schedule_trigger(
                    "medium_term_generation_trigger", self.run_medium_term_generation,
                    self.config.MEDIUM_TERM_TRIGGER_DELAY_MINUTES, "중기예보 수집 후",
                )
            return result

        return await self._guarded(self.medium_term_sync, "중기예보 수집", job)

    # ====================================================
    # 추천 생성 / 정리
    # ====================================================
    async def run_short_term_generation(self):
        return await self._guarded(self.short_term_generation, "단기 추천 생성", self.generator.generate_short_term)

    async def run_medium_term_generation(self):
        return await self._guarded(self.medium_term_generation, "중기 추천 생성", self.generator.generate_medium_term)

    async def run_complete_generation(self):
        return await self._guarded(self.complete_generation, "전체 추천 생성", self.generator.generate_complete)

    async def run_cleanup(self):
        async def job():
            return await self.cleaner.cleanup(retention_days=self.config.RETENTION_DAYS)

        return await self._guarded(self.cleanup, "데이터 정리", job)

    # ====================================================
    # 상태 점검 / 초기 동기화
    # ====================================================
    async def health_check(self) -> dict:
        status = self.status()
        logger.info(
            "스케줄러 상태 | " + " ".join(f"{flag.name}={flag.running}" for flag in self.flags)
        )
        for flag in self.flags:
            if flag.running:
                logger.warning(f"{flag.name} 작업이 실행 중입니다. 장시간 실행 여부 확인이 필요합니다.")

        memory = memory_usage_percent()
        if memory is not None and memory > MEMORY_WARNING_PERCENT:
            logger.warning(f"메모리 사용량이 높습니다: {memory:.1f}%")
        return {"status": status, "memory_percent": memory}

    async def initial_sync(self):
        logger.info("🔎 [Init] 서버 시작 후 초기 데이터 동기화")
        base_date, base_time = resolve_short_term_base(get_now_kst())

        short_result, medium_result = await asyncio.gather(
            self.collector.collect_short_term(None, base_date, base_time, False),
            self.collector.collect_medium_term(None, today_kst(), False),
            return_exceptions=True,
        )
        for label, outcome in (("단기예보", short_result), ("중기예보", medium_result)):
            if isinstance(outcome, Exception):
                logger.error(f"❌ 초기 {label} 동기화 실패 | error={outcome!r}")
            else:
                logger.info(f"✅ 초기 {label} 동기화 완료 | regions={outcome.successful_regions}/{outcome.total_regions}")

        return await self.run_complete_generation()

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(
            short_term_sync_running=self.short_term_sync.running,
            medium_term_sync_running=self.medium_term_sync.running,
            short_term_generation_running=self.short_term_generation.running,
            medium_term_generation_running=self.medium_term_generation.running,
            complete_generation_running=self.complete_generation.running,
            cleanup_running=self.cleanup.running,
            status_time=get_now_kst(),
        )


weather_scheduler = WeatherScheduler()
