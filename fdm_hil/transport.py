"""
MAVLink Transport
==================
Connection to the autopilot plus the inbound queue the orchestrator drains.

  autopilot ──(TCP/UDP/serial MAVLink)──▶ receive thread ──▶ handlers
  orchestrator ──(message objects)──▶ enqueue_message ──▶ autopilot

Byte-level packing, CRC and framing are pymavlink's.
"""

import collections
import logging
import os
import struct
import threading
import time

# MAVLink 2 common dialect, set before mavutil is imported
os.environ.setdefault("MAVLINK20", "1")
os.environ.setdefault("MAVLINK_DIALECT", "common")

from pymavlink import mavutil  # noqa: E402

from fdm_hil import config as cfg  # noqa: E402


class MessageQueue:
    """
    Many producers, one consumer.

    ``consume_all`` takes the whole pending batch in one swap and hands each
    message to ``handler`` in arrival order; anything pushed meanwhile waits
    for the next call.
    """

    def __init__(self):
        self._pending = collections.deque()
        self._mutex = threading.Lock()

    def push(self, msg):
        with self._mutex:
            self._pending.append(msg)

    def consume_all(self, handler) -> int:
        with self._mutex:
            batch, self._pending = self._pending, collections.deque()
        for msg in batch:
            handler(msg)
        return len(batch)

    def __len__(self):
        with self._mutex:
            return len(self._pending)


class MAVLinkTransport:
    """
    One MAVLink link to the autopilot.

    Received messages are fanned out to every registered handler from a
    background thread; handlers must not block.
    """

    def __init__(self, uri: str = cfg.PX4_SIM_URI,
                 system_id: int = cfg.SIM_SYSID,
                 component_id: int = cfg.SIM_COMPID,
                 link_timeout_s: float = cfg.LINK_TIMEOUT_S,
                 logger: logging.Logger | None = None):
        self.uri = uri
        self.link_timeout_s = link_timeout_s
        self.log = logger or logging.getLogger(__name__)

        self.conn = mavutil.mavlink_connection(
            uri,
            source_system=system_id,
            source_component=component_id,
            dialect="common",
        )
        self.conn.mav.srcSystem = system_id
        self.conn.mav.srcComponent = component_id

        self._handlers = []
        self._last_rx = None          # monotonic time of last received message
        self._running = False
        self._thread = None

        self.rx_count = 0
        self.tx_count = 0
        self.tx_errors = 0

    def add_message_handler(self, handler):
        """Register ``handler(msg)``, called for every decoded message."""
        self._handlers.append(handler)

    # ──────────────────────────────────────────────────────────────────────
    #  Receive side
    # ──────────────────────────────────────────────────────────────────────
    def start(self):
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._recv_loop, name="mavlink-rx", daemon=True)
        self._thread.start()
        self.log.info("MAVLink transport listening on %s", self.uri)

    def _recv_loop(self):
        while self._running:
            try:
                msg = self.conn.recv_match(blocking=True, timeout=0.1)
            except OSError as exc:
                self.log.warning("MAVLink receive failed: %s", exc)
                time.sleep(0.1)
                continue
            if msg is None:
                continue
            self.dispatch(msg)

    def dispatch(self, msg):
        """Hand one received message to the handlers."""
        if msg.get_type() == "BAD_DATA":
            return
        self._last_rx = time.monotonic()
        self.rx_count += 1
        for handler in self._handlers:
            handler(msg)

    def connection_open(self) -> bool:
        """True while the autopilot has been heard from within the link timeout."""
        if self._last_rx is None:
            return False
        return (time.monotonic() - self._last_rx) <= self.link_timeout_s

    # ──────────────────────────────────────────────────────────────────────
    #  Send side
    # ──────────────────────────────────────────────────────────────────────
    def enqueue_message(self, msg):
        """Pack and send one message now.  Failures are logged and dropped."""
        try:
            self.conn.mav.send(msg)
            self.tx_count += 1
        except (OSError, struct.error) as exc:
            self.tx_errors += 1
            self.log.warning("Dropped %s: %s", msg.get_type(), exc)

    def close(self):
        self._running = False
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
        self.conn.close()
