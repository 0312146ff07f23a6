"""Decodificador real: fotogramas de OpenCV analizados con zxing-cpp."""
import os
import threading
import time

import cv2
import zxingcpp

from errors import CameraDeviceError, CameraPermissionError, DecoderInitError
from log import get_logger
from scanner.decoder import Decoder, SYMBOLOGIES

LOG = get_logger("scanner.camera")

_FORMATS = {
    'EAN-13': zxingcpp.BarcodeFormat.EAN13,
    'EAN-8': zxingcpp.BarcodeFormat.EAN8,
    'UPC-A': zxingcpp.BarcodeFormat.UPCA,
    'UPC-E': zxingcpp.BarcodeFormat.UPCE,
    'CODE-128': zxingcpp.BarcodeFormat.Code128,
    'CODE-39': zxingcpp.BarcodeFormat.Code39,
    'CODE-93': zxingcpp.BarcodeFormat.Code93,
    'ITF': zxingcpp.BarcodeFormat.ITF,
    'QR': zxingcpp.BarcodeFormat.QRCode,
    'DATA-MATRIX': zxingcpp.BarcodeFormat.DataMatrix,
}


def capture_region(frame, width, height):
    """Recorta la zona central de captura (width x height) del fotograma."""
    frame_h, frame_w = frame.shape[:2]
    w, h = min(width, frame_w), min(height, frame_h)
    top = (frame_h - h) // 2
    left = (frame_w - w) // 2
    return frame[top:top + h, left:left + w]


class CameraDecoder(Decoder):
    """Analiza la cámara local a ``fps`` fotogramas por segundo como máximo.

    Un mismo código leído varias veces seguidas sólo se emite una vez: vuelve
    a emitirse cuando ha estado ``debounce`` segundos fuera de la imagen.
    """

    def __init__(self, camera_index=0, fps=30, region=(250, 250), debounce=2.0,
                 symbologies=SYMBOLOGIES):
        unknown = [s for s in symbologies if s not in _FORMATS]
        if unknown:
            raise DecoderInitError(f'Simbología no soportada: {", ".join(unknown)}')
        if fps <= 0:
            raise DecoderInitError('La frecuencia de análisis debe ser positiva')
        self.symbologies = tuple(symbologies)
        self.camera_index = camera_index
        self.fps = fps
        self.region = region
        self.debounce = debounce
        self._formats = self._format_mask(self.symbologies)
        self._capture = None
        self._thread = None
        self._stop_event = threading.Event()
        self._released = False

    @staticmethod
    def _format_mask(symbologies):
        mask = None
        for name in symbologies:
            fmt = _FORMATS[name]
            mask = fmt if mask is None else mask | fmt
        return mask

    def _check_permission(self):
        device = f'/dev/video{self.camera_index}'
        if os.path.exists(device) and not os.access(device, os.R_OK | os.W_OK):
            raise CameraPermissionError(f'Permiso de cámara denegado ({device})')

    def start(self, on_decode, on_tick, on_error=None):
        if self._released:
            raise DecoderInitError('El lector ya fue liberado')
        if self.is_active():
            raise CameraDeviceError('La cámara está ocupada')
        self._check_permission()

        capture = cv2.VideoCapture(self.camera_index)
        if not capture.isOpened():
            capture.release()
            raise CameraDeviceError()

        self._capture = capture
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            args=(capture, on_decode, on_tick, on_error),
            name=f'camera-{self.camera_index}',
            daemon=True,
        )
        self._thread.start()
        LOG.info("Camera %s started at %s fps", self.camera_index, self.fps)

    def _run(self, capture, on_decode, on_tick, on_error):
        interval = 1.0 / self.fps
        last_text, last_seen = None, 0.0
        while not self._stop_event.is_set():
            started = time.monotonic()
            ok, frame = capture.read()
            if not ok:
                if not self._stop_event.is_set() and on_error is not None:
                    on_error(CameraDeviceError('Se perdió la señal de la cámara'))
                break

            text = self._decode(frame)
            if text is None:
                on_tick()
            elif text == last_text and started - last_seen < self.debounce:
                last_seen = started
                on_tick()
            else:
                last_text, last_seen = text, started
                on_decode(text)

            self._stop_event.wait(max(0.0, interval - (time.monotonic() - started)))

    def _decode(self, frame):
        roi = capture_region(frame, *self.region)
        if roi.ndim == 3:
            roi = cv2.cvtColor(roi, cv2.COLOR_BGR2GRAY)
        for result in zxingcpp.read_barcodes(roi, formats=self._formats):
            if result.text:
                return result.text
        return None

    def stop(self):
        self._stop_event.set()
        thread = self._thread
        # stop() puede llegar desde el propio hilo de la cámara (callback)
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        self._thread = None
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            LOG.info("Camera %s stopped", self.camera_index)

    def is_active(self):
        return self._thread is not None and self._thread.is_alive()

    def release(self):
        self.stop()
        self._released = True
