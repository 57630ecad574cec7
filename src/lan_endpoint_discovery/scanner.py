"""
Subnet scanner.

Probes an ordered candidate sequence in three strictly sequential stages:

1. router    - prefix.1 of every configured prefix
2. shortlist - common developer host suffixes (100-120)
3. sweep     - the full host range (1-254) of every prefix

Within a stage up to `scan_concurrency` probes run at once. The lowest
ranked reachable candidate wins: when a candidate succeeds, every pending
or in-flight probe ranked after it is cancelled and the ones ranked before
it are allowed to finish. The answer is therefore the same as a strictly
sequential scan would give.
"""
import asyncio
import logging
import time
from typing import Optional, Protocol

from .config import build_address, merge_config
from .types import DiscoveryConfig, ProbeResult, ScanCandidate, ScanResult, ScanStage

logger = logging.getLogger(__name__)


class Prober(Protocol):
    """Anything that can probe an address (see ReachabilityProber)"""

    async def probe(self, address: str) -> ProbeResult:
        ...


class SubnetScanner:
    """
    Finds the backend on the local network.

    Example:
        scanner = SubnetScanner(prober, DiscoveryConfig(subnet_prefixes=["192.168.1"]))
        result = await scanner.scan()
        if result:
            print(result.address, result.stage)
    """

    def __init__(self, prober: Prober, config: Optional[DiscoveryConfig] = None) -> None:
        self._prober = prober
        self._config = merge_config(config)

    @property
    def prefixes(self) -> list[str]:
        return list(self._config.subnet_prefixes)

    def _router_addresses(self) -> list[str]:
        return [
            build_address(prefix, self._config.router_suffix)
            for prefix in self._config.subnet_prefixes
        ]

    def _shortlist_addresses(self, prefixes: list[str]) -> list[str]:
        return [
            build_address(prefix, suffix)
            for prefix in prefixes
            for suffix in self._config.shortlist_suffixes
        ]

    def _sweep_addresses(self) -> list[str]:
        return [
            build_address(prefix, suffix)
            for prefix in self._config.subnet_prefixes
            for suffix in range(self._config.sweep_start, self._config.sweep_end + 1)
        ]

    @staticmethod
    def _rank(
        stage: ScanStage,
        addresses: list[str],
        probed: set[str],
        start: int,
    ) -> list[ScanCandidate]:
        """Turn addresses into ranked candidates, skipping ones already probed"""
        candidates = []
        rank = start
        for address in addresses:
            if address in probed:
                continue
            probed.add(address)
            candidates.append(ScanCandidate(address=address, rank=rank, stage=stage))
            rank += 1
        return candidates

    def generate_candidates(self) -> list[ScanCandidate]:
        """
        The full candidate sequence of a scan in which no router answers.

        Deterministic and deduplicated; ranks are consecutive from 0.
        """
        probed: set[str] = set()
        candidates: list[ScanCandidate] = []
        for stage, addresses in (
            (ScanStage.ROUTER, self._router_addresses()),
            (ScanStage.SHORTLIST, self._shortlist_addresses(self.prefixes)),
            (ScanStage.SWEEP, self._sweep_addresses()),
        ):
            candidates.extend(self._rank(stage, addresses, probed, len(candidates)))
        return candidates

    async def _probe_stage(
        self,
        candidates: list[ScanCandidate],
        stop_on_first: bool = True,
    ) -> tuple[Optional[ScanCandidate], list[tuple[ScanCandidate, ProbeResult]]]:
        """
        Probe a stage with bounded concurrency.

        Args:
            candidates: Candidates in rank order
            stop_on_first: Cancel probes ranked after the first success

        Returns:
            (lowest ranked reachable candidate or None, completed probes)
        """
        if not candidates:
            return None, []

        semaphore = asyncio.Semaphore(self._config.scan_concurrency)

        async def run(candidate: ScanCandidate) -> ProbeResult:
            async with semaphore:
                return await self._prober.probe(candidate.address)

        tasks = {asyncio.create_task(run(c)): c for c in candidates}
        pending = set(tasks)
        completed: list[tuple[ScanCandidate, ProbeResult]] = []
        best: Optional[ScanCandidate] = None

        try:
            while pending:
                done, pending = await asyncio.wait(
                    pending, return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    candidate = tasks[task]
                    if task.cancelled():
                        continue
                    error = task.exception()
                    if error is not None:
                        # Probers are not supposed to raise; treat it as unreachable
                        logger.error(f"Probe of {candidate.address} raised: {error!r}")
                        continue
                    result = task.result()
                    completed.append((candidate, result))
                    if result.reachable and (best is None or candidate.rank < best.rank):
                        best = candidate

                if best is not None and stop_on_first:
                    losers = {t for t in pending if tasks[t].rank > best.rank}
                    if losers:
                        for task in losers:
                            task.cancel()
                        pending -= losers
                        await asyncio.gather(*losers, return_exceptions=True)
                        logger.debug(f"Cancelled {len(losers)} probes ranked after {best.address}")
        finally:
            leftover = [t for t in tasks if not t.done()]
            for task in leftover:
                task.cancel()
            if leftover:
                await asyncio.gather(*leftover, return_exceptions=True)

        completed.sort(key=lambda item: item[0].rank)
        return best, completed

    async def scan(self) -> Optional[ScanResult]:
        """
        Run the staged scan.

        Returns:
            ScanResult for the winning address, or None if nothing answered
        """
        start = time.monotonic()
        probed: set[str] = set()
        probes = 0
        rank = 0

        logger.info(
            f"Scanning {len(self._config.subnet_prefixes)} subnets: "
            f"{', '.join(self._config.subnet_prefixes)}"
        )

        # Stage 1: routers
        routers = self._rank(ScanStage.ROUTER, self._router_addresses(), probed, rank)
        rank += len(routers)
        accept_router = self._config.router_policy == "accept"
        winner, completed = await self._probe_stage(routers, stop_on_first=accept_router)
        probes += len(completed)

        if winner is not None and accept_router:
            return self._found(winner, probes, start)

        live_routers = [c for c, r in completed if r.reachable]
        live_prefixes = [c.address.rsplit(".", 1)[0] for c in live_routers]
        if live_prefixes:
            logger.info(f"Routers answered on {', '.join(live_prefixes)}")

        # Stage 2: common developer hosts, live subnets first
        shortlist = self._rank(
            ScanStage.SHORTLIST,
            self._shortlist_addresses(live_prefixes or self.prefixes),
            probed,
            rank,
        )
        rank += len(shortlist)
        logger.debug(f"Shortlist stage: {len(shortlist)} candidates")
        winner, completed = await self._probe_stage(shortlist)
        probes += len(completed)
        if winner is not None:
            return self._found(winner, probes, start)

        # A router that answered runs the service itself
        if live_routers:
            return self._found(live_routers[0], probes, start)

        # Stage 3: full sweep
        sweep = self._rank(ScanStage.SWEEP, self._sweep_addresses(), probed, rank)
        logger.info(f"Shortlist exhausted, sweeping {len(sweep)} addresses")
        winner, completed = await self._probe_stage(sweep)
        probes += len(completed)
        if winner is not None:
            return self._found(winner, probes, start)

        logger.info(
            f"Scan found nothing after {probes} probes "
            f"in {time.monotonic() - start:.1f}s"
        )
        return None

    def _found(self, candidate: ScanCandidate, probes: int, start: float) -> ScanResult:
        duration = time.monotonic() - start
        logger.info(
            f"Found backend at {candidate.address} ({candidate.stage.value} stage, "
            f"{probes} probes, {duration:.1f}s)"
        )
        return ScanResult(
            address=candidate.address,
            stage=candidate.stage,
            probes=probes,
            duration_seconds=duration,
        )

    async def find_reachable(self, limit: int = 5) -> list[str]:
        """
        List reachable shortlist addresses, for manual selection.

        Probes the shortlist of each prefix in order and stops once `limit`
        addresses have answered.
        """
        found: list[str] = []
        probed: set[str] = set()
        for prefix in self._config.subnet_prefixes:
            candidates = self._rank(
                ScanStage.SHORTLIST, self._shortlist_addresses([prefix]), probed, 0
            )
            _, completed = await self._probe_stage(candidates, stop_on_first=False)
            found.extend(c.address for c, r in completed if r.reachable)
            if len(found) >= limit:
                break
        return found[:limit]
