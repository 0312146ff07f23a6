import threading
from datetime import datetime, timezone
from functools import partial

from log import get_logger
from scanner.camera import CameraDecoder
from scanner.controller import CaptureController, CaptureState

LOG = get_logger("scanner.surfaces")


class CaptureSurfaces:
    """Un controlador por superficie de captura y la última lectura de cada una."""

    def __init__(self, decoder_factory, *, scheduler=None, auto_close_delay=1.5, retry_delay=0.1):
        self.decoder_factory = decoder_factory
        self.scheduler = scheduler
        self.auto_close_delay = auto_close_delay
        self.retry_delay = retry_delay
        self._controllers = {}
        self._scans = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config):
        factory = config.get('SCANNER_DECODER_FACTORY')
        if factory is None:
            factory = partial(
                CameraDecoder,
                camera_index=config['SCANNER_CAMERA_INDEX'],
                fps=config['SCANNER_FPS'],
                region=tuple(config['SCANNER_REGION']),
                debounce=config['SCANNER_DEBOUNCE_SECONDS'],
            )
        return cls(
            factory,
            auto_close_delay=config['SCANNER_AUTO_CLOSE_SECONDS'],
            retry_delay=config['SCANNER_RETRY_DELAY_SECONDS'],
        )

    def get(self, name):
        with self._lock:
            controller = self._controllers.get(name)
            if controller is None:
                controller = CaptureController(
                    self.decoder_factory,
                    on_scan=partial(self._record_scan, name),
                    scheduler=self.scheduler,
                    auto_close_delay=self.auto_close_delay,
                    retry_delay=self.retry_delay,
                    name=name,
                )
                self._controllers[name] = controller
            return controller

    def _record_scan(self, name, text):
        with self._lock:
            self._scans[name] = {
                'barcode': text,
                'scannedAt': datetime.now(timezone.utc).isoformat(),
            }

    def last_scan(self, name):
        with self._lock:
            return self._scans.get(name)

    def consume_scan(self, name):
        """Devuelve y borra la última lectura (el formulario ya la usó)."""
        with self._lock:
            return self._scans.pop(name, None)

    def close_all(self):
        with self._lock:
            controllers = list(self._controllers.values())
        active = [c for c in controllers if c.state is not CaptureState.IDLE or c.decoder is not None]
        for controller in controllers:
            controller.close()
        if active:
            LOG.info("Closed %d active capture surface(s)", len(active))
        return len(active)
