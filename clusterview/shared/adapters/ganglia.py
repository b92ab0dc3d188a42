"""
Ganglia rrd.py monitoring client.

The collector answers ``GET /cgi-bin/rrd.py?c=<cluster>&h=<hosts>&m=<metrics>``
with a line-oriented feed. Each series block reads::

    <ds_name>
    <cluster>
    <host>
    <metric>
    <start epoch seconds>
    <step seconds>
    <value>...          ("[~n]" marks a missing sample)
    [AMBARI_DP_END]

and the feed ends with ``[AMBARI_END]``.
"""

from collections.abc import Iterable, Iterator
from typing import Optional

import httpx
import structlog

from clusterview.modules.resources.domain.ports import MetricSeries
from clusterview.modules.resources.domain.request import TemporalInfo
from clusterview.shared.core.config import get_settings
from clusterview.shared.core.exceptions import BackendUnavailableError, MalformedDataError
from clusterview.shared.core.http import get_http_client

logger = structlog.get_logger()

DATAPOINTS_END = "[AMBARI_DP_END]"
FEED_END = "[AMBARI_END]"
NULL_SAMPLE = "[~n]"


def _next_line(lines: Iterator[str], field: str) -> str:
    try:
        return next(lines)
    except StopIteration:
        raise MalformedDataError(f"Ganglia feed truncated while reading {field}") from None


def _parse_int(raw: str, field: str) -> int:
    try:
        return int(float(raw))
    except (ValueError, OverflowError):
        raise MalformedDataError(f"Ganglia feed has non-numeric {field}: {raw!r}") from None


def _parse_sample(raw: str) -> Optional[float]:
    if raw == NULL_SAMPLE:
        return None
    try:
        return float(raw)
    except ValueError:
        raise MalformedDataError(f"Ganglia feed has non-numeric sample: {raw!r}") from None


def parse_rrd_feed(text: str) -> dict[tuple[str, str], MetricSeries]:
    """Parse an rrd.py feed into series keyed by ``(host, metric)``."""
    lines = iter(line.strip() for line in text.splitlines() if line.strip())
    series: dict[tuple[str, str], MetricSeries] = {}

    for ds_name in lines:
        if ds_name == FEED_END:
            return series
        cluster = _next_line(lines, "cluster")
        host = _next_line(lines, "host")
        metric = _next_line(lines, "metric")
        start = _parse_int(_next_line(lines, "start"), "start")
        step = _parse_int(_next_line(lines, "step"), "step")
        if step <= 0:
            raise MalformedDataError(f"Ganglia feed has non-positive step for {metric}")

        values: list[Optional[float]] = []
        while (raw := _next_line(lines, "datapoints")) != DATAPOINTS_END:
            values.append(_parse_sample(raw))

        series[(host, metric)] = MetricSeries(
            namespace=cluster,
            host=host,
            metric=metric,
            start=start,
            step=step,
            values=tuple(values),
            ds_name=ds_name,
        )

    raise MalformedDataError(f"Ganglia feed missing {FEED_END} terminator")


class GangliaClient:
    """Queries a Ganglia collector for metric series of one namespace at a time."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.GANGLIA_COLLECTOR_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.GANGLIA_TIMEOUT_SECONDS
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client or get_http_client(timeout=self.timeout)

    def build_params(
        self,
        namespace: str,
        hosts: Iterable[str],
        metrics: Iterable[str],
        temporal_info: Optional[TemporalInfo] = None,
    ) -> dict[str, str]:
        params = {
            "c": namespace,
            "h": ",".join(sorted(set(hosts))),
            "m": ",".join(sorted(set(metrics))),
        }
        if temporal_info is not None:
            params["s"] = str(temporal_info.start)
            params["e"] = str(temporal_info.end)
            if temporal_info.step is not None:
                params["r"] = str(temporal_info.step)
        return params

    async def query(
        self,
        namespace: str,
        hosts: Iterable[str],
        metrics: Iterable[str],
        temporal_info: Optional[TemporalInfo] = None,
    ) -> dict[tuple[str, str], MetricSeries]:
        url = f"{self.base_url}/cgi-bin/rrd.py"
        params = self.build_params(namespace, hosts, metrics, temporal_info)

        try:
            response = await self.client.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise BackendUnavailableError(
                f"Ganglia collector returned status {exc.response.status_code}",
                details={"namespace": namespace, "status_code": exc.response.status_code},
            ) from exc
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            raise BackendUnavailableError(
                f"Ganglia collector unreachable: {exc}",
                details={"namespace": namespace},
            ) from exc

        series = parse_rrd_feed(response.text)
        logger.debug(
            "ganglia_query_completed",
            namespace=namespace,
            requested_metrics=params["m"],
            series_count=len(series),
        )
        return series
