# lease_agent/wireguard/device.py
"""
Tunnel Device Supervisor
Creates the virtual WireGuard device and keeps it running until stopped

The run loop is launched on a background thread by the agent. Stopping is a
one-shot notification: StopSignal.notify() only delivers the first call.
Callers that need to know the loop has exited join the agent's thread.
"""

import abc
import logging
import os
import subprocess
import threading
import time
from typing import Optional

from pyroute2.netlink.exceptions import NetlinkError

from ..errors import DeviceStartError

logger = logging.getLogger('wg-agent.device')


class StopSignal:
    """One-shot stop notification shared by the agent and the run loop"""

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self.notifications = 0

    def notify(self) -> bool:
        """Deliver the stop notification. False if it was already sent."""
        with self._lock:
            if self._event.is_set():
                return False
            self.notifications += 1
            self._event.set()
            return True

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)


class TunnelDevice(abc.ABC):
    """Handle on a started virtual device"""

    def __init__(self, device: str, stop: StopSignal, poll_interval: float = 5.0):
        self.device = device
        self.stop = stop
        self.poll_interval = poll_interval

    def run(self) -> None:
        """Supervise the device until the stop signal is observed"""
        logger.info(f"Tunnel device {self.device} running")
        try:
            while not self.stop.wait(self.poll_interval):
                if not self.check():
                    logger.error(f"Tunnel device {self.device} went away, leaving run loop")
                    return
        finally:
            self.close()
        logger.info(f"Tunnel device {self.device} stopped")

    @abc.abstractmethod
    def check(self) -> bool:
        """True while the device is still usable"""

    def close(self) -> None:
        """Release resources once the run loop ends"""


class KernelTunnelDevice(TunnelDevice):
    """In-kernel WireGuard link created over netlink"""

    def __init__(self, device: str, stop: StopSignal, ipr=None, poll_interval: float = 5.0):
        super().__init__(device, stop, poll_interval=poll_interval)
        self._ipr = ipr

    def _get_ipr(self):
        if self._ipr is None:
            from pyroute2 import IPRoute

            self._ipr = IPRoute()
        return self._ipr

    def create(self) -> None:
        ipr = self._get_ipr()
        if ipr.link_lookup(ifname=self.device):
            logger.info(f"Reusing existing link {self.device}")
            return
        ipr.link("add", ifname=self.device, kind="wireguard")
        logger.info(f"Created wireguard link {self.device}")

    def check(self) -> bool:
        try:
            return bool(self._get_ipr().link_lookup(ifname=self.device))
        except NetlinkError as e:
            logger.warning(f"Cannot look up {self.device}: {e}")
            return True

    def close(self) -> None:
        if self._ipr is not None:
            self._ipr.close()
            self._ipr = None


class UserspaceTunnelDevice(TunnelDevice):
    """wireguard-go running in the foreground as a child process"""

    def __init__(
        self,
        device: str,
        stop: StopSignal,
        binary: str = "wireguard-go",
        poll_interval: float = 5.0,
        terminate_timeout: float = 5.0
    ):
        super().__init__(device, stop, poll_interval=poll_interval)
        self.binary = binary
        self.terminate_timeout = terminate_timeout
        self.process: Optional[subprocess.Popen] = None

    def create(self, startup_grace: float = 0.5) -> None:
        env = dict(os.environ, WG_PROCESS_FOREGROUND="1")
        self.process = subprocess.Popen(
            [self.binary, "-f", self.device],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True,
            env=env
        )
        time.sleep(startup_grace)
        if self.process.poll() is not None:
            _, stderr = self.process.communicate()
            raise RuntimeError(
                f"{self.binary} exited with status {self.process.returncode}: {(stderr or '').strip()}"
            )
        logger.info(f"Started {self.binary} for {self.device} (pid {self.process.pid})")

        # Keep draining stderr so the child never blocks on a full pipe
        threading.Thread(
            target=self._forward_output,
            name=f"{self.device}-output",
            daemon=True
        ).start()

    def _forward_output(self) -> None:
        for line in self.process.stderr:
            logger.info(f"{self.binary}: {line.rstrip()}")

    def check(self) -> bool:
        return self.process is not None and self.process.poll() is None

    def close(self) -> None:
        if self.process is None or self.process.poll() is not None:
            return
        self.process.terminate()
        try:
            self.process.wait(timeout=self.terminate_timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"{self.binary} did not exit, killing it")
            self.process.kill()
            self.process.wait()


def start_tunnel_device(
    device: str,
    stop: StopSignal,
    backend: str = "kernel",
    wireguard_go_binary: str = "wireguard-go"
) -> TunnelDevice:
    """Create the device and return a handle ready to run()"""
    if backend == "kernel":
        tundev = KernelTunnelDevice(device, stop)
    elif backend == "userspace":
        tundev = UserspaceTunnelDevice(device, stop, binary=wireguard_go_binary)
    else:
        raise DeviceStartError(f"unknown tunnel backend {backend!r}", device=device, operation="start device")

    try:
        tundev.create()
    except (NetlinkError, OSError, RuntimeError) as e:
        tundev.close()
        raise DeviceStartError(f"Error starting wg device: {e}", device=device, operation="start device") from e
    return tundev
