#!/usr/bin/env python3
"""
订阅到期提醒检查器
"""
import functools
import signal
import sys
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from config_loader import (
    load_config_with_env_vars,
    register_config_listener,
    start_config_watcher,
    stop_config_watcher,
    unregister_config_listener,
)
from config_validator import AppConfig
from errors import SubscriptionNotFound
from expiry_scheduler import DueSubscription, ExpiryScheduler, TickResult
from lunar_calendar import lunar_to_solar_strict, solar_date_to_lunar
from metrics import MetricsCollector, get_metrics_collector, start_metrics_server
from notification_formatter import NOTIFICATION_TITLE, extract_tags, format_notification_content
from notifiers import BaseNotifier, build_notifiers
from subscription_store import JsonFileStore, SubscriptionStore
from timezone_clock import days_until_date, hours_between, to_local
from logger import get_logger, set_log_level

# 创建 logger
logger = get_logger('subscription_checker')


def _synchronized(method):
    """在检查器锁内执行，避免与配置热更新并发"""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class SubscriptionChecker:
    """订阅到期检查器"""

    def __init__(self, config_path: str = 'config.json', store: Optional[SubscriptionStore] = None,
                 notifiers: Optional[List[BaseNotifier]] = None,
                 metrics: Optional[MetricsCollector] = None):
        """
        初始化

        Args:
            config_path: 配置文件路径
            store: 订阅存储，默认按配置的 data_file 创建 JSON 文件存储
            notifiers: 通知渠道，默认按配置中启用的渠道创建
            metrics: 指标收集器，默认使用全局实例
        """
        self.config_path = config_path
        self.config = self._load_config()
        self.app_config = AppConfig.from_dict(self.config)
        self.store = store or JsonFileStore(self.settings.data_file)
        self._custom_notifiers = notifiers is not None
        self.notifiers = notifiers if notifiers is not None else build_notifiers(self.app_config)
        self.metrics = metrics or get_metrics_collector()
        self.scheduler = self._build_scheduler()
        self._stop_event = threading.Event()
        # 保护 scheduler / notifiers，检查与配置热更新互斥
        self._lock = threading.RLock()
        self.last_result: Optional[TickResult] = None

    def _load_config(self) -> Dict[str, Any]:
        """加载配置文件"""
        return load_config_with_env_vars(self.config_path)

    @property
    def settings(self):
        return self.app_config.settings

    def _build_scheduler(self) -> ExpiryScheduler:
        return ExpiryScheduler(
            timezone_name=self.settings.timezone,
            notification_hours=self.settings.notification_hours
        )

    def apply_config(self, config: Dict[str, Any]) -> None:
        """
        应用新配置（配置文件变化时由监听线程调用）

        与检查共用同一把锁，旧通知渠道在检查结束后才关闭替换
        """
        app_config = AppConfig.from_dict(config)
        with self._lock:
            self.config = config
            self.app_config = app_config
            self.scheduler = self._build_scheduler()
            if not self._custom_notifiers:
                self.close()
                self.notifiers = build_notifiers(app_config)
        logger.info(
            f"[Config] 已应用新配置 | 时区: {self.settings.timezone} | "
            f"通知渠道: {', '.join(n.name for n in self.notifiers) or '无'}"
        )

    def _reload_config_file(self) -> None:
        try:
            load_config_with_env_vars(self.config_path)
        except (OSError, ValueError) as e:
            logger.error(f"[Config] 重新加载配置失败，继续使用旧配置: {e}")

    @_synchronized
    def check_subscriptions(self, dry_run: bool = False, now: Optional[datetime] = None) -> TickResult:
        """
        检查所有订阅

        Args:
            dry_run: 测试模式，不写回到期时间也不发送通知
            now: 当前时刻，默认取系统时间

        Returns:
            TickResult: 本轮调度结果
        """
        start_time = time.time()
        now = now or datetime.now(timezone.utc)

        records = self.store.load_all_records()
        if not records:
            logger.info("📋 没有订阅记录")

        if dry_run:
            logger.info("🔍 [测试模式] 不会写回到期时间，也不会发送通知")

        result = self.scheduler.run_tick(records, now)

        if result.updates:
            if dry_run:
                logger.info(f"🔍 [测试模式] 跳过写回 {len(result.updates)} 个到期时间更新")
            else:
                self.store.apply_updates(result.updates)

        sent: Dict[str, bool] = {}
        if result.due:
            if dry_run:
                logger.info(f"🔍 [测试模式] 跳过发送 {len(result.due)} 个订阅的提醒")
            else:
                sent = self.send_due_notifications(result.due, now)

        self.metrics.update_tick_metrics(result, time.time() - start_time)
        self.last_result = result
        self._print_summary(result, sent)
        return result

    def send_due_notifications(self, due: List[DueSubscription], now: Optional[datetime] = None) -> Dict[str, bool]:
        """格式化待通知批次并发送到所有渠道"""
        content = format_notification_content(
            due,
            timezone_name=self.settings.timezone,
            show_lunar=self.settings.show_lunar,
            now=now
        )
        tags = extract_tags([item.record for item in due])
        return self._send_to_all_channels(NOTIFICATION_TITLE, content, tags)

    def _send_to_all_channels(self, title: str, content: str, tags: List[str]) -> Dict[str, bool]:
        """
        发送到所有启用的通知渠道，各渠道失败互不影响

        Returns:
            Dict[str, bool]: 渠道名 -> 是否成功
        """
        if not self.notifiers:
            logger.info("未启用任何通知渠道")
            return {}

        results: Dict[str, bool] = {}
        for notifier in self.notifiers:
            success = notifier.notify(title, content, tags)
            results[notifier.name] = success
            self.metrics.record_notification(notifier.name, success)
            if success:
                logger.info(f"发送 {notifier.name} 通知成功")
            else:
                logger.error(f"❌ 发送 {notifier.name} 通知失败")
        return results

    @_synchronized
    def test_notification(self, subscription_id: str, now: Optional[datetime] = None) -> Dict[str, bool]:
        """
        手动发送单个订阅的测试通知

        Raises:
            SubscriptionNotFound: 订阅不存在
        """
        record = self.store.get_subscription(subscription_id)
        if record is None:
            raise SubscriptionNotFound(subscription_id)

        now = now or datetime.now(timezone.utc)
        tz = self.scheduler.tz
        expiry_date = to_local(record.expiry_instant, tz).date()
        if record.use_lunar:
            expiry_date = lunar_to_solar_strict(solar_date_to_lunar(expiry_date))

        item = DueSubscription(
            record=record,
            days_remaining=days_until_date(expiry_date, now, tz),
            hours_remaining=hours_between(now, record.expiry_instant)
        )
        content = format_notification_content(
            [item],
            timezone_name=self.settings.timezone,
            show_lunar=self.settings.show_lunar,
            now=now
        )
        logger.info(f"发送测试通知: {record.name} ({record.id})")
        return self._send_to_all_channels(f"手动测试通知: {record.name}", content, extract_tags([record]))

    def run_forever(self, interval: Optional[int] = None, dry_run: bool = False) -> None:
        """
        守护模式：按间隔循环检查，收到 SIGINT/SIGTERM 后退出

        Args:
            interval: 检查间隔（秒），默认读取配置 check_interval_seconds
            dry_run: 测试模式
        """
        interval = interval or self.settings.check_interval_seconds
        previous_handlers = self._install_signal_handlers()
        start_metrics_server(self.settings.metrics_port)

        register_config_listener(self.apply_config)
        start_config_watcher(self.config_path, callback=self._reload_config_file)
        logger.info(f"🚀 守护模式启动，检查间隔 {interval} 秒")

        try:
            while not self._stop_event.is_set():
                try:
                    self.check_subscriptions(dry_run=dry_run)
                except Exception as e:
                    logger.error(f"❌ 检查订阅时发生错误: {e}", exc_info=True)
                    self.metrics.set_check_failed()
                self._stop_event.wait(interval)
        finally:
            stop_config_watcher()
            unregister_config_listener(self.apply_config)
            self.close()
            for signum, handler in previous_handlers.items():
                signal.signal(signum, handler)
            logger.info("守护模式已退出")

    def stop(self) -> None:
        self._stop_event.set()

    def _install_signal_handlers(self) -> Dict[int, Any]:
        """注册退出信号，返回原处理函数"""
        if threading.current_thread() is not threading.main_thread():
            return {}

        def handle_signal(signum, frame):
            logger.info(f"收到信号 {signal.Signals(signum).name}，准备退出")
            self.stop()

        previous = {}
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous[signum] = signal.getsignal(signum)
            signal.signal(signum, handle_signal)
        return previous

    def close(self) -> None:
        """关闭通知渠道的 HTTP Session"""
        for notifier in self.notifiers:
            notifier.close()

    def _print_summary(self, result: TickResult, sent: Dict[str, bool]) -> None:
        """打印检查汇总"""
        logger.info(f"{'='*60}")
        logger.info("📊 订阅检查汇总")
        logger.info(f"{'='*60}")

        logger.info(f"检查订阅数: {result.checked}（停用 {result.skipped_inactive}）")
        logger.info(f"需要提醒: {result.candidates}")
        logger.info(f"自动续期: {len(result.updates)}")
        if result.suppressed_by_hour:
            logger.info(f"当前小时 {result.current_hour} 不在推送时段内，未发送提醒")
        if sent:
            ok = sum(1 for success in sent.values() if success)
            logger.info(f"通知渠道: 成功 {ok} / 共 {len(sent)}")

        if result.due:
            logger.info("详细结果:")
            for item in result.due:
                if item.days_remaining < 0:
                    status = f"🚨已过期 {abs(item.days_remaining)} 天"
                elif item.days_remaining == 0:
                    status = "⚠️今天到期"
                else:
                    status = f"📅还有 {item.days_remaining} 天"
                renewed = "（已自动续期）" if item.renewed else ""
                logger.info(f"  {status} {item.record.name}{renewed}")

        for failure in result.failures:
            logger.warning(f"  ⚠️ 跳过 {failure.name} ({failure.subscription_id}): {failure.reason}")

        logger.info(f"{'='*60}")


def main():
    """主函数"""
    import argparse

    parser = argparse.ArgumentParser(
        description='订阅到期提醒检查',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例:
  %(prog)s                          # 检查一次并发送提醒
  %(prog)s --dry-run                # 测试模式，不写回也不发送
  %(prog)s --daemon --interval 600  # 守护模式，每 10 分钟检查一次
  %(prog)s --test <订阅ID>          # 发送单个订阅的测试通知
        """
    )
    parser.add_argument('--config', default='config.json', help='配置文件路径 (默认: config.json)')
    parser.add_argument('--dry-run', action='store_true', help='测试模式，不写回到期时间也不发送通知')
    parser.add_argument('--daemon', action='store_true', help='守护模式，循环检查')
    parser.add_argument('--interval', type=int, help='守护模式检查间隔（秒），默认读取配置')
    parser.add_argument('--test', metavar='ID', help='发送指定订阅的测试通知')
    parser.add_argument('-v', '--verbose', action='store_true', help='输出调试日志')

    args = parser.parse_args()
    if args.verbose:
        set_log_level('DEBUG')

    try:
        checker = SubscriptionChecker(args.config)
        if args.test:
            results = checker.test_notification(args.test)
            if results and not any(results.values()):
                sys.exit(1)
        elif args.daemon:
            checker.run_forever(interval=args.interval, dry_run=args.dry_run)
        else:
            checker.check_subscriptions(dry_run=args.dry_run)
            checker.close()
    except Exception as e:
        logger.error(f"❌ 错误: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
