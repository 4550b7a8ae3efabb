import asyncio
import time
from typing import List, Dict, Optional

from cloudflare import AsyncCloudflare

from ..utils.logger import get_logger


class CloudflareClient:
    def __init__(
        self,
        api_token: str,
        rate_limit_delay: float = 0.25,
        retry_delay: float = 1.0,
        max_attempts: int = 3,
    ):
        self.api_token = api_token
        self.logger = get_logger(__name__)
        self.cf = AsyncCloudflare(api_token=api_token)
        self.rate_limit_delay = rate_limit_delay
        self.retry_delay = retry_delay
        self.max_attempts = max_attempts
        self._last_request_time: float = 0
        self._lock = asyncio.Lock()

    async def _rate_limit(self) -> None:
        async with self._lock:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < self.rate_limit_delay:
                await asyncio.sleep(self.rate_limit_delay - elapsed)
            self._last_request_time = time.monotonic()

    async def _retry_delay(self, attempt: int) -> None:
        delay = min(self.retry_delay * attempt, 30.0)
        await asyncio.sleep(delay)

    async def get_dns_records(self, zone_id: str, name: str = None, record_type: str = "A") -> List[Dict]:
        attempt = 0
        while True:
            try:
                await self._rate_limit()
                params = {"type": record_type}
                if name:
                    params["name"] = name

                records_list = []
                async for record in self.cf.dns.records.list(zone_id=zone_id, **params):
                    records_list.append(
                        {
                            "id": record.id,
                            "name": record.name,
                            "content": record.content,
                            "type": record.type,
                            "ttl": record.ttl,
                        }
                    )

                self.logger.debug(f"Found {len(records_list)} {record_type} records for {name or zone_id}")
                return records_list

            except Exception as e:
                status_code = getattr(e, "status_code", None)
                if status_code and 400 <= status_code < 500:
                    raise
                attempt += 1
                self.logger.error(f"Error fetching DNS records for {name or zone_id} (attempt {attempt}): {e}")
                if attempt >= self.max_attempts:
                    raise
                await self._retry_delay(attempt)

    async def get_record_addresses(self, zone_id: str, name: str, record_type: str = "A") -> List[str]:
        records = await self.get_dns_records(zone_id, name=name, record_type=record_type)
        return sorted({record["content"] for record in records})

    async def get_zone_id_by_domain(self, domain: str) -> Optional[str]:
        attempt = 0
        while True:
            try:
                await self._rate_limit()
                async for zone in self.cf.zones.list(name=domain):
                    zone_id = zone.id
                    self.logger.info(f"Found zone_id for {domain}: {zone_id}")
                    return zone_id

                self.logger.error(f"No zone found for domain: {domain}")
                return None

            except Exception as e:
                attempt += 1
                self.logger.error(f"Error fetching zone for domain {domain} (attempt {attempt}): {e}")
                if attempt >= self.max_attempts:
                    raise
                await self._retry_delay(attempt)

    async def close(self) -> None:
        await self.cf.close()
