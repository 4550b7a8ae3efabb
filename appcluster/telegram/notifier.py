import asyncio
from typing import Optional

from aiogram import Bot
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError, TelegramRetryAfter

from .events import NodeDnsStatusChange, ResultChange, ActionError
from .formatter import MessageFormatter
from ..utils.logger import get_logger


class TelegramNotifier:
    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        topic_id: Optional[int] = None,
        locale: str = "en",
        enabled: bool = True,
        queue_size: int = 100,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        rate_limit_delay: float = 0.1,
        drain_timeout: float = 5.0,
    ):
        self.logger = get_logger(__name__)
        self.enabled = enabled
        self.chat_id = chat_id
        self.topic_id = topic_id
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.rate_limit_delay = rate_limit_delay
        self.drain_timeout = drain_timeout

        self._bot: Optional[Bot] = None
        self._formatter: Optional[MessageFormatter] = None
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._worker_task: Optional[asyncio.Task] = None
        self._running = False

        if enabled and bot_token and chat_id:
            self._bot = Bot(
                token=bot_token,
                default=DefaultBotProperties(parse_mode=ParseMode.HTML),
            )
            self._formatter = MessageFormatter(locale=locale)
            topic_info = f", topic_id={topic_id}" if topic_id else ""
            self.logger.info(f"TelegramNotifier initialized with locale={locale}{topic_info}")
        else:
            self.enabled = False
            self.logger.info("TelegramNotifier is disabled")

    async def start(self) -> None:
        if not self.enabled or not self._bot:
            return

        self._running = True
        self._worker_task = asyncio.create_task(self._worker())
        self.logger.info("TelegramNotifier worker started")

    async def stop(self) -> None:
        if not self._running:
            return

        try:
            await asyncio.wait_for(self._queue.join(), timeout=self.drain_timeout)
        except asyncio.TimeoutError:
            self.logger.warning(f"Dropping {self._queue.qsize()} undelivered notifications")

        self._running = False

        if self._worker_task:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass

        if self._bot:
            await self._bot.session.close()

        self.logger.info("TelegramNotifier stopped")

    async def _worker(self) -> None:
        while self._running:
            try:
                try:
                    message = await asyncio.wait_for(self._queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue

                await self._send_with_retry(message)
                self._queue.task_done()
                await asyncio.sleep(self.rate_limit_delay)

            except asyncio.CancelledError:
                break
            except Exception as e:
                self.logger.error(f"Error in notification worker: {e}")

    async def _send_with_retry(self, message: str) -> None:
        attempt = 0
        while attempt < self.retry_attempts:
            try:
                await self._bot.send_message(
                    chat_id=self.chat_id,
                    text=message,
                    message_thread_id=self.topic_id,
                )
                return
            except TelegramRetryAfter as e:
                self.logger.warning(f"Telegram rate limit hit, waiting {e.retry_after}s")
                await asyncio.sleep(e.retry_after)
            except TelegramAPIError as e:
                attempt += 1
                delay = min(self.retry_delay * attempt, 30.0)
                self.logger.warning(f"Telegram API error (attempt {attempt}), retrying in {delay}s: {e}")
                await asyncio.sleep(delay)
            except Exception as e:
                attempt += 1
                delay = min(self.retry_delay * attempt, 30.0)
                self.logger.error(f"Failed to send notification (attempt {attempt}), retrying in {delay}s: {e}")
                await asyncio.sleep(delay)

        self.logger.error(f"Giving up on notification after {attempt} attempts")

    def _enqueue(self, message: str) -> None:
        if not self.enabled or not message:
            return

        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self.logger.warning("Notification queue is full, dropping message")

    def notify_dns_status_change(self, change: NodeDnsStatusChange) -> None:
        if not self.enabled:
            return
        message = self._formatter.format_dns_status_change(change)
        self._enqueue(message)

    def notify_result_change(self, change: ResultChange) -> None:
        if not self.enabled:
            return
        message = self._formatter.format_result_change(change)
        self._enqueue(message)

    def notify_action_error(self, error: ActionError) -> None:
        if not self.enabled:
            return
        message = self._formatter.format_action_error(error)
        self._enqueue(message)

    def notify_service_started(self) -> None:
        if not self.enabled:
            return
        message = self._formatter.format_service_started()
        self._enqueue(message)

    def notify_service_stopped(self) -> None:
        if not self.enabled:
            return
        message = self._formatter.format_service_stopped()
        self._enqueue(message)
