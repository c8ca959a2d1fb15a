"""Scan orchestrator: scheduled and on-demand sweeps of the local network.

Lifecycle:
1. ``start_scanning()`` arms the scanner. With continuous scanning enabled
   a background timer fires immediately and then every interval, and a
   one-second ticker republishes the next scheduled scan time.
2. Each sweep marks every known device offline, probes each address of
   every subnet under a concurrency bound and reconciles the results into
   the registry. At most one sweep runs at a time.
3. ``pause_scanning()`` disarms the scanner and cancels the timers. A sweep
   already in flight stops dispatching new probes; probes already running
   finish and still update the registry.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
from datetime import datetime, timedelta

from netroster.config import ScanOptions
from netroster.detection.chain import DetectionChain
from netroster.devices.registry import DeviceRegistry
from netroster.events.channels import ScannerEvents
from netroster.models import UNKNOWN, Device, ScanState, ScanStatus, utcnow
from netroster.network.hostname import HostnameResolver
from netroster.network.mac import MacAddressResolver
from netroster.network.ping import Pinger, SubprocessPinger
from netroster.network.subnet import SubnetProvider

logger = logging.getLogger(__name__)


class NetworkScanner:
    """Discovers devices on the local network and keeps their status current.

    Parameters
    ----------
    options:
        Sweep range, concurrency, throttling and scheduling parameters.
    subnet_provider:
        Source of the prefixes to sweep.
    mac_resolver:
        Neighbour-table lookup for discovered hosts.
    detection_chain:
        Prioritized classifiers for responding hosts.
    events:
        Channel for progress, discovery and schedule notifications.
    registry:
        Device roster to reconcile into. A new one is created if omitted.
    pinger:
        Reachability probe. Defaults to the system ``ping`` command.
    hostname_resolver:
        Reverse DNS naming for responding hosts.
    tick_seconds:
        Period of the next-scan-time ticker.
    """

    def __init__(
        self,
        options: ScanOptions,
        subnet_provider: SubnetProvider,
        mac_resolver: MacAddressResolver,
        detection_chain: DetectionChain | None = None,
        events: ScannerEvents | None = None,
        registry: DeviceRegistry | None = None,
        pinger: Pinger | None = None,
        hostname_resolver: HostnameResolver | None = None,
        tick_seconds: float = 1.0,
    ) -> None:
        self._options = options
        self._subnets = subnet_provider
        self._mac_resolver = mac_resolver
        self._chain = detection_chain if detection_chain is not None else DetectionChain()
        self._events = events or ScannerEvents()
        self._registry = registry if registry is not None else DeviceRegistry()
        self._pinger = pinger or SubprocessPinger()
        self._hostnames = hostname_resolver or HostnameResolver()
        self._tick_seconds = tick_seconds

        self._armed = False
        self._is_scanning = False
        self._pause_requested = False
        self._last_scan_time: datetime | None = None
        self._next_scan_time: datetime | None = None
        self._next_tick: datetime | None = None

        self._timer_task: asyncio.Task[None] | None = None
        self._ticker_task: asyncio.Task[None] | None = None
        self._sweep_task: asyncio.Task[list[Device]] | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def options(self) -> ScanOptions:
        return self._options

    @property
    def registry(self) -> DeviceRegistry:
        return self._registry

    @property
    def events(self) -> ScannerEvents:
        return self._events

    @property
    def state(self) -> ScanState:
        if self._is_scanning:
            return ScanState.SWEEPING
        return ScanState.ARMED if self._armed else ScanState.STOPPED

    @property
    def is_scanning(self) -> bool:
        return self._is_scanning

    @property
    def is_armed(self) -> bool:
        return self._armed

    @property
    def last_scan_time(self) -> datetime | None:
        return self._last_scan_time

    @property
    def next_scan_time(self) -> datetime | None:
        return self._next_scan_time

    @property
    def discovered_devices(self) -> list[Device]:
        return self._registry.snapshot()

    def status(self) -> ScanStatus:
        online, offline = self._registry.counts()
        return ScanStatus(
            state=self.state,
            is_scanning=self._is_scanning,
            is_armed=self._armed,
            last_scan_time=self._last_scan_time,
            next_scan_time=self._next_scan_time,
            device_count=online + offline,
            online_count=online,
            offline_count=offline,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start_scanning(self) -> None:
        """Arm the scanner. Does nothing if it is already armed."""
        if self._armed:
            return
        logger.info("Starting continuous scanning")
        await self._arm()

    async def resume_scanning(self) -> None:
        """Re-arm a paused scanner. Does nothing if it is already armed."""
        if self._armed:
            return
        logger.info("Resuming continuous scanning")
        await self._arm()

    async def pause_scanning(self) -> None:
        """Disarm the scanner and ask an in-flight sweep to stop dispatching."""
        logger.info("Pausing continuous scanning")
        self._armed = False
        self._pause_requested = True
        await self._stop_timers()
        if self._is_scanning:
            logger.info("Scan is currently running - it will stop on next check")

    async def close(self) -> None:
        """Stop the timers and wait briefly for a scheduled sweep to finish."""
        logger.debug("Closing network scanner")
        self._armed = False
        self._pause_requested = True
        await self._stop_timers()
        task = self._sweep_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            try:
                await asyncio.wait_for(task, timeout=10)
            except (asyncio.TimeoutError, asyncio.CancelledError):
                pass

    async def __aenter__(self) -> NetworkScanner:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _arm(self) -> None:
        self._armed = True
        self._pause_requested = False
        if self._options.enable_continuous_scanning:
            await self._start_timers()
        await self._update_next_scan_time()

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    async def _start_timers(self) -> None:
        await self._stop_timers(emit=False)
        logger.debug("Starting continuous scanning timers")
        self._timer_task = asyncio.create_task(self._run_timer())
        self._ticker_task = asyncio.create_task(self._run_ticker())

    async def _stop_timers(self, emit: bool = True) -> None:
        current = asyncio.current_task()
        for task in (self._timer_task, self._ticker_task):
            if task is None or task.done():
                continue
            task.cancel()
            if task is current:
                continue
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._timer_task = None
        self._ticker_task = None
        self._next_tick = None
        if emit:
            self._next_scan_time = None
            await self._events.next_scan_time_changed(None)

    async def _run_timer(self) -> None:
        interval = self._options.scan_interval_seconds
        while True:
            self._next_tick = utcnow() + timedelta(seconds=interval)
            if self._armed and not self._is_scanning:
                logger.debug("Timer triggered - starting scan")
                self._sweep_task = asyncio.create_task(self._scheduled_sweep())
            elif self._is_scanning:
                logger.debug("Timer triggered but scan already in progress - skipping scan")
            else:
                logger.debug("Timer triggered but scanning is paused - skipping scan")
            await self._update_next_scan_time()
            await asyncio.sleep(interval)

    async def _run_ticker(self) -> None:
        while True:
            await asyncio.sleep(self._tick_seconds)
            if self._armed and self._next_scan_time is not None:
                await self._events.next_scan_time_changed(self._next_scan_time)

    async def _update_next_scan_time(self) -> None:
        if self._armed and self._next_tick is not None:
            self._next_scan_time = self._next_tick
        else:
            self._next_scan_time = None
        await self._events.next_scan_time_changed(self._next_scan_time)

    # ------------------------------------------------------------------
    # Sweeps
    # ------------------------------------------------------------------

    async def scan_network(self) -> list[Device]:
        """Sweep every subnet now and return the roster.

        If a sweep is already running, returns the current roster without
        starting another one.
        """
        return await self._sweep()

    async def _scheduled_sweep(self) -> list[Device]:
        # Paused between the timer tick and this task starting
        if not self._armed:
            return self._registry.snapshot()
        return await self._sweep()

    async def _sweep(self) -> list[Device]:
        if self._is_scanning:
            return self._registry.snapshot()
        self._is_scanning = True
        self._pause_requested = False
        opts = self._options

        try:
            await self._events.scanning_state_changed(True)
            logger.info("Starting network scan (armed: %s)", self._armed)
            await self._events.progress("Starting network scan...")

            subnets = await self._subnets.get_subnets_to_scan()
            if not subnets:
                logger.warning("No subnets to scan")
                await self._events.progress("Error: Could not determine network to scan")
                return self._registry.snapshot()

            self._registry.mark_all_offline()

            for base in subnets:
                logger.info(
                    "Scanning network: %s.%d-%d", base, opts.start_octet, opts.end_octet
                )
                await self._events.progress(f"Scanning network {base}.x...")
                await self._sweep_subnet(base)

            self._last_scan_time = utcnow()
            await self._events.last_scan_time_changed(self._last_scan_time)
            await self._update_next_scan_time()

            online, offline = self._registry.counts()
            logger.info(
                "Network scan completed. Online: %d, Offline: %d, Total: %d",
                online, offline, online + offline,
            )
            await self._events.progress(
                f"Scan complete - found {online} online devices, {offline} offline"
            )
        except Exception as exc:
            logger.exception("Error during network scan")
            await self._events.progress(f"Scan error: {exc}")
        finally:
            self._is_scanning = False
            await self._events.scanning_state_changed(False)

        return self._registry.snapshot()

    async def _sweep_subnet(self, base: str) -> None:
        opts = self._options
        semaphore = asyncio.Semaphore(opts.max_concurrent_connections)
        tasks: list[asyncio.Task[None]] = []
        dispatched = 0

        for octet in range(opts.start_octet, opts.end_octet + 1):
            if self._pause_requested:
                logger.info("Scan cancelled mid-process - scanning was paused")
                break
            await semaphore.acquire()
            if self._pause_requested:
                semaphore.release()
                logger.info("Scan cancelled mid-process - scanning was paused")
                break
            tasks.append(
                asyncio.create_task(self._probe_with_slot(f"{base}.{octet}", semaphore))
            )
            dispatched += 1
            if dispatched % opts.devices_before_throttle == 0:
                await asyncio.sleep(opts.network_throttle_delay_ms / 1000)

        if tasks:
            await asyncio.gather(*tasks)

    async def _probe_with_slot(self, address: str, semaphore: asyncio.Semaphore) -> None:
        try:
            await self._probe(address)
        except Exception:
            logger.debug("Error processing device %s", address, exc_info=True)
        finally:
            semaphore.release()

    async def _probe(self, address: str) -> None:
        rtt = await self._pinger.ping(address, self._options.ping_timeout_ms)
        if rtt is None:
            device = self._registry.mark_offline(address)
            if device is not None:
                logger.debug("Device went offline: %s (%s)", device.name, address)
                await self._events.device_discovered(device)
            return

        found = await self._identify(address, rtt)
        merged = self._registry.upsert(found)
        logger.debug(
            "Device online: %s (%s) - %s", merged.name, address, merged.classified_type
        )
        await self._events.device_discovered(merged)

    async def _identify(self, address: str, rtt_ms: float) -> Device:
        seen = utcnow()
        name = await self._hostnames.resolve(address)
        mac = await self._resolve_mac(address)
        classified = await self._chain.classify_device(address)
        return Device(
            address=address,
            name=name,
            classified_type=classified,
            mac_address=mac,
            is_online=True,
            last_seen=seen,
            response_time=timedelta(milliseconds=rtt_ms),
        )

    async def _resolve_mac(self, address: str) -> str:
        try:
            mac = await self._mac_resolver.resolve_mac(address)
        except Exception:
            logger.debug("Error getting MAC address for %s", address, exc_info=True)
            return UNKNOWN
        if not mac:
            logger.debug("No MAC address found for %s", address)
            return UNKNOWN
        return mac

    # ------------------------------------------------------------------
    # Single-device diagnostics
    # ------------------------------------------------------------------

    async def scan_single_device(self, address: str) -> list[Device]:
        """Probe one address without touching the registry.

        Returns ``[]`` for a malformed or non-IPv4 address, otherwise a
        one-element list holding either the discovered device or an offline
        placeholder.
        """
        logger.info("Scanning single device at %s", address)
        await self._events.progress(f"Scanning device at {address}...")

        try:
            parsed = ipaddress.ip_address(address)
        except ValueError:
            logger.warning("Invalid IP address format: %s", address)
            await self._events.progress("Error: Invalid IP address format")
            return []
        if parsed.version != 4:
            logger.warning("Only IPv4 addresses are supported: %s", address)
            await self._events.progress("Error: Only IPv4 addresses are supported")
            return []
        address = str(parsed)

        try:
            rtt = await self._pinger.ping(address, self._options.ping_timeout_ms)
            if rtt is None:
                device = Device(
                    address=address,
                    name=await self._hostnames.resolve(address),
                    is_online=False,
                )
                logger.debug("Device at %s is not responding", address)
            else:
                device = await self._identify(address, rtt)
        except Exception as exc:
            logger.exception("Error during single device scan for %s", address)
            await self._events.progress(f"Scan error: {exc}")
            return [
                Device(
                    address=address,
                    name=f"ERROR_{address.rsplit('.', 1)[-1]}",
                    classified_type="Error",
                    is_online=False,
                )
            ]

        outcome = "Device found" if device.is_online else "No device found"
        await self._events.progress(f"Scan complete - {outcome}")
        return [device]
