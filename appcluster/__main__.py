import asyncio
import signal
import sys

from .app_cluster import AppCluster
from .cloudflare_dns import CloudflareClient, DnsRoleResolver
from .config import Config, ConfigurationError
from .telegram import TelegramNotifier
from .utils.logger import setup_logger


class GracefulExit(SystemExit):
    code = 0


def raise_graceful_exit(signum, frame):
    raise GracefulExit()


async def run_status_loop(cluster: AppCluster, interval: int, logger):
    logger.info(f"Reporting status every {interval}s")

    while True:
        try:
            await asyncio.sleep(interval)
            cluster.log_status()

        except GracefulExit:
            logger.info("Received shutdown signal, stopping...")
            break
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt, stopping...")
            break
        except Exception as e:
            logger.error(f"Error reporting status: {e}", exc_info=True)


async def main():
    config = Config()

    logger = setup_logger(name="appcluster", level=config.log_level, log_file=config.log_file)

    signal.signal(signal.SIGTERM, raise_graceful_exit)
    signal.signal(signal.SIGINT, raise_graceful_exit)

    logger.info("Starting AppCluster")

    notifier = TelegramNotifier(
        bot_token=config.telegram_bot_token,
        chat_id=config.telegram_chat_id,
        topic_id=config.telegram_topic_id,
        locale=config.telegram_locale,
        enabled=config.telegram_enabled,
    )

    cloudflare_client = CloudflareClient(api_token=config.cloudflare_token)
    resolver = DnsRoleResolver(
        client=cloudflare_client,
        zone=config.dns_zone,
        notifier=notifier,
        notify_dns_changes=config.telegram_notify_dns_changes,
    )

    try:
        cluster = AppCluster(config=config, resolver=resolver, notifier=notifier)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        await cloudflare_client.close()
        sys.exit(2)

    try:
        await notifier.start()
        notifier.notify_service_started()

        cluster.print_resources()
        await cluster.start()

        await run_status_loop(cluster=cluster, interval=config.status_interval, logger=logger)
    except (GracefulExit, KeyboardInterrupt):
        logger.info("Shutting down gracefully")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        await cluster.stop()
        notifier.notify_service_stopped()
        await notifier.stop()
        await cloudflare_client.close()

    logger.info("AppCluster stopped")


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
