"""Network pixel device speaking the WLED UDP realtime protocol."""

import logging
import socket
from typing import Any, Dict, Optional

import numpy as np

from ..core.cancellation import CancellationToken
from ..core.composition import DeviceColorComposition
from .base import BlockingDevice

logger = logging.getLogger(__name__)

# Realtime protocol identifiers
PROTOCOL_DRGB = 2
PROTOCOL_DNRGB = 4
DRGB_MAX_LEDS = 490
DNRGB_MAX_LEDS = 489


class UdpPixelDevice(BlockingDevice):
    """Streams frames to a network LED controller over UDP.

    Frames up to 490 zones go out as one DRGB packet; longer frames are split
    into DNRGB packets carrying a start index. The cancellation token is
    checked between packets. Unless ``forced`` is set, a frame identical to the
    last one sent is skipped.
    """

    def __init__(
        self,
        host: str,
        port: int = 21324,
        name: Optional[str] = None,
        num_pixels: int = 60,
        timeout_s: int = 2,
    ):
        super().__init__()
        self.host = host
        self.port = port
        self.num_pixels = num_pixels
        self.timeout_s = timeout_s
        self._name = name or f"UDP {host}:{port}"
        self._socket: Optional[socket.socket] = None
        self._last_sent: Optional[np.ndarray] = None
        self.packets_sent = 0

    @property
    def name(self) -> str:
        return self._name

    def initialize_blocking(self) -> bool:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.connect((self.host, self.port))
        except OSError as e:
            sock.close()
            logger.warning(f"Cannot reach {self.host}:{self.port}: {e}")
            return False
        self._socket = sock
        self._last_sent = None
        logger.info(f"Connected UDP device {self.name}")
        return True

    def shutdown_blocking(self) -> None:
        if self._socket is None:
            return
        try:
            # Hand control back to the controller's own effects
            self._socket.send(bytes([PROTOCOL_DRGB, 0]))
        except OSError as e:
            logger.debug(f"Release packet to {self.name} failed: {e}")
        finally:
            self._socket.close()
            self._socket = None

    def reset_blocking(self) -> None:
        self._last_sent = None
        self._send_frame(np.zeros((self.num_pixels, 3), dtype=np.uint8), None)

    def update_blocking(
        self,
        composition: DeviceColorComposition,
        cancellation: CancellationToken,
        forced: bool,
    ) -> bool:
        pixels = composition.pixels[: self.num_pixels]
        if (
            not forced
            and self._last_sent is not None
            and np.array_equal(pixels, self._last_sent)
        ):
            return False
        if not self._send_frame(pixels, cancellation):
            return False
        self._last_sent = pixels.copy()
        return True

    def _send_frame(
        self, pixels: np.ndarray, cancellation: Optional[CancellationToken]
    ) -> bool:
        if self._socket is None:
            return False

        if len(pixels) <= DRGB_MAX_LEDS:
            self._socket.send(
                bytes([PROTOCOL_DRGB, self.timeout_s]) + pixels.tobytes()
            )
            self.packets_sent += 1
            return True

        for start in range(0, len(pixels), DNRGB_MAX_LEDS):
            if cancellation is not None and cancellation.cancelled:
                return False
            chunk = pixels[start : start + DNRGB_MAX_LEDS]
            header = bytes(
                [PROTOCOL_DNRGB, self.timeout_s, (start >> 8) & 0xFF, start & 0xFF]
            )
            self._socket.send(header + chunk.tobytes())
            self.packets_sent += 1
        return True

    def details(self) -> str:
        status = "Initialized" if self.is_initialized() else "Not initialized"
        return f"{self.name} ({self.num_pixels} zones): {status}"

    def registered_variables(self) -> Dict[str, Any]:
        return {f"{self.name}_timeout_s": self.timeout_s}
