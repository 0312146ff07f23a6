"""Máquina de estados de una sesión de captura de códigos de barras.

Los eventos de la cámara llegan de forma asíncrona (hilo de la cámara,
temporizadores). Todos pasan por una única función de transición; cada
callback lleva la generación de sesión con la que se registró y se descarta
si la sesión ya no es la actual (cierre, parada o fallo).
"""
import enum
import threading
from functools import partial

from errors import CaptureError, DecoderInitError
from log import get_logger
from scanner.timers import ThreadingScheduler

LOG = get_logger("scanner")


class CaptureState(enum.Enum):
    IDLE = 'idle'
    INITIALIZING = 'initializing'
    SCANNING = 'scanning'
    STOPPED = 'stopped'
    SUCCESS = 'success'
    ERROR = 'error'


class CaptureEvent(enum.Enum):
    OPENED = 'opened'
    INIT_FAILED = 'init_failed'
    STARTED = 'started'
    START_FAILED = 'start_failed'
    DECODED = 'decoded'
    STOPPED = 'stopped'
    FAILED = 'failed'
    RESET = 'reset'
    CLOSED = 'closed'


S, E = CaptureState, CaptureEvent

TRANSITIONS = {
    (S.IDLE, E.OPENED): S.INITIALIZING,
    (S.IDLE, E.INIT_FAILED): S.ERROR,
    (S.INITIALIZING, E.STARTED): S.SCANNING,
    (S.STOPPED, E.STARTED): S.SCANNING,
    (S.INITIALIZING, E.START_FAILED): S.ERROR,
    (S.STOPPED, E.START_FAILED): S.ERROR,
    (S.SCANNING, E.DECODED): S.SUCCESS,
    (S.SCANNING, E.STOPPED): S.STOPPED,
    (S.SUCCESS, E.STOPPED): S.STOPPED,
    (S.SCANNING, E.FAILED): S.ERROR,
    (S.SUCCESS, E.FAILED): S.ERROR,
    # en ERROR nunca queda decodificador: reintentar vuelve a construirlo
    (S.ERROR, E.RESET): S.IDLE,
}


def _ignore_tick():
    pass


class CaptureController:
    """Controla un único decodificador para una superficie de captura.

    ``decoder_factory()`` construye el decodificador en ``open()``.
    ``on_scan(text)`` se llama una vez por lectura; ``on_error(exc)`` cuando
    la sesión pasa a ERROR. Las operaciones de cámara (arrancar, parar,
    liberar) se serializan con ``_op_lock``; el estado se protege con
    ``_lock``.
    """

    def __init__(self, decoder_factory, on_scan=None, on_error=None, *,
                 scheduler=None, auto_close_delay=1.5, retry_delay=0.1, name='main'):
        self.name = name
        self.auto_close_delay = auto_close_delay
        self.retry_delay = retry_delay
        self._decoder_factory = decoder_factory
        self._on_scan = on_scan
        self._on_error = on_error
        self._scheduler = scheduler or ThreadingScheduler()

        self._lock = threading.RLock()
        self._op_lock = threading.Lock()
        self._state = CaptureState.IDLE
        self._decoder = None
        self._generation = 0
        self._settling = False
        self._pending_decode = None
        self._timers = {}

        self.last_barcode = None
        self.error = None

    @property
    def state(self):
        return self._state

    @property
    def decoder(self):
        return self._decoder

    def snapshot(self):
        with self._lock:
            return {
                'surface': self.name,
                'state': self._state.value,
                'barcode': self.last_barcode,
                'error': self.error.user_message if self.error else None,
                'retryable': bool(self.error is not None and self.error.retryable),
            }

    # --- transición ---

    def _dispatch(self, event):
        """Aplica un evento; devuelve False si no hay transición para él."""
        current = self._state
        if event is CaptureEvent.CLOSED:
            target = CaptureState.IDLE
        else:
            target = TRANSITIONS.get((current, event))
        if target is None:
            LOG.debug("%s: event %s ignored in state %s", self.name, event.value, current.value)
            return False
        self._state = target
        LOG.info("%s: %s -> %s (%s)", self.name, current.value, target.value, event.value)
        return True

    # --- temporizadores ---

    def _schedule(self, key, delay, callback, *args):
        self._cancel(key)
        self._timers[key] = self._scheduler.call_later(delay, callback, *args)

    def _cancel(self, key):
        handle = self._timers.pop(key, None)
        if handle is not None:
            handle.cancel()

    def _cancel_all(self):
        for key in list(self._timers):
            self._cancel(key)

    # --- operaciones ---

    def open(self):
        error = None
        with self._lock:
            if self._state is not CaptureState.IDLE or self._decoder is not None:
                LOG.debug("%s: open() ignored, decoder already present", self.name)
                return self._state
            try:
                decoder = self._decoder_factory()
            except CaptureError as exc:
                error = exc
            except Exception:
                LOG.exception("%s: decoder construction failed", self.name)
                error = DecoderInitError()
            if error is None:
                self._decoder = decoder
                self.error = None
                self._dispatch(CaptureEvent.OPENED)
            else:
                self.error = error
                self._dispatch(CaptureEvent.INIT_FAILED)
        if error is not None:
            self._notify_error(error)
        return self._state

    def start(self):
        with self._lock:
            if self._state not in (CaptureState.INITIALIZING, CaptureState.STOPPED):
                LOG.debug("%s: start() ignored in state %s", self.name, self._state.value)
                return self._state
            if self._settling:
                LOG.warning("%s: start() ignored, camera operation still settling", self.name)
                return self._state
            self._settling = True
            generation = self._generation
            decoder = self._decoder

        error = None
        early = None
        with self._op_lock:
            try:
                if generation != self._generation:
                    return self._state
                error = self._start_decoder(decoder, generation)
                with self._lock:
                    early, self._pending_decode = self._pending_decode, None
                    if generation != self._generation:
                        # close() llegó durante el arranque; él libera el decodificador
                        return self._state
                    if error is None:
                        self.error = None
                        self._dispatch(CaptureEvent.STARTED)
                    else:
                        self._generation += 1
                        self._decoder = None
                        self.error = error
                        self._dispatch(CaptureEvent.START_FAILED)
            finally:
                with self._lock:
                    self._settling = False
        if error is not None:
            self._notify_error(error)
        elif early is not None:
            # lectura llegada antes de STARTED: la cámara no la repite mientras siga a la vista
            self._handle_decode(generation, early)
        return self._state

    def _start_decoder(self, decoder, generation):
        try:
            decoder.start(
                partial(self._handle_decode, generation),
                _ignore_tick,
                partial(self._handle_failure, generation),
            )
        except CaptureError as exc:
            LOG.warning("%s: camera start failed: %s", self.name, exc.user_message)
            self._release(decoder)
            return exc
        return None

    def stop(self):
        with self._lock:
            if self._state is not CaptureState.SCANNING:
                LOG.debug("%s: stop() ignored in state %s", self.name, self._state.value)
                return self._state
            if self._settling:
                LOG.warning("%s: stop() ignored, camera operation still settling", self.name)
                return self._state
            self._settling = True
            generation = self._generation
            decoder = self._decoder
        return self._halt(decoder, generation)

    def _halt(self, decoder, generation):
        """Para el bucle de fotogramas manteniendo el decodificador."""
        error = None
        with self._op_lock:
            try:
                if generation != self._generation:
                    return self._state
                try:
                    decoder.stop()
                except CaptureError as exc:
                    error = exc
                with self._lock:
                    if generation != self._generation:
                        return self._state
                    self._generation += 1
                    self._cancel('auto_close')
                    if error is None:
                        self._dispatch(CaptureEvent.STOPPED)
                        return self._state
                    self._decoder = None
                    self.error = error
                    self._dispatch(CaptureEvent.FAILED)
            finally:
                with self._lock:
                    self._settling = False
        self._release(decoder)
        self._notify_error(error)
        return self._state

    def retry(self):
        with self._lock:
            self._cancel('retry')
            if self._state is CaptureState.ERROR:
                self.error = None
                self._dispatch(CaptureEvent.RESET)
            running = self._state in (CaptureState.SCANNING, CaptureState.SUCCESS)
            if running:
                if self._settling:
                    LOG.warning("%s: retry() ignored, camera operation still settling", self.name)
                    return self._state
                self._settling = True
                generation = self._generation
                decoder = self._decoder
        if running:
            self._halt(decoder, generation)
        with self._lock:
            self._schedule('retry', self.retry_delay, self._retry_start, self._generation)
            return self._state

    def _retry_start(self, generation):
        with self._lock:
            if generation != self._generation:
                LOG.debug("%s: stale retry discarded", self.name)
                return
            self._timers.pop('retry', None)
            if self._state is CaptureState.ERROR:
                self.error = None
                self._dispatch(CaptureEvent.RESET)
            if self._state is CaptureState.IDLE:
                self.open()
        self.start()

    def close(self):
        with self._lock:
            self._generation += 1
            self._cancel_all()
            decoder, self._decoder = self._decoder, None
            self._pending_decode = None
            self.error = None
            if self._state is not CaptureState.IDLE:
                self._dispatch(CaptureEvent.CLOSED)
        if decoder is not None:
            with self._op_lock:
                self._release(decoder)
        return self._state

    def _auto_close(self, generation):
        with self._lock:
            if generation != self._generation:
                return
            self._timers.pop('auto_close', None)
        LOG.debug("%s: auto-close after successful scan", self.name)
        self.close()

    # --- callbacks del decodificador ---

    def _handle_decode(self, generation, text):
        with self._lock:
            if generation != self._generation:
                LOG.debug("%s: late decode discarded", self.name)
                return
            if self._settling and self._state in (CaptureState.INITIALIZING, CaptureState.STOPPED):
                if self._pending_decode is None:
                    self._pending_decode = text
                return
            if not self._dispatch(CaptureEvent.DECODED):
                return
            self.last_barcode = text
            self._schedule('auto_close', self.auto_close_delay, self._auto_close, generation)
            callback = self._on_scan
        LOG.info("%s: decoded %r", self.name, text)
        if callback is not None:
            callback(text)

    def _handle_failure(self, generation, error):
        with self._lock:
            if generation != self._generation:
                LOG.debug("%s: late decoder error discarded", self.name)
                return
            if not self._dispatch(CaptureEvent.FAILED):
                return
            self._generation += 1
            self._cancel_all()
            decoder, self._decoder = self._decoder, None
            self.error = error
        LOG.warning("%s: scanning failed: %s", self.name, error.user_message)
        self._release(decoder)
        self._notify_error(error)

    # --- utilidades ---

    def _release(self, decoder):
        if decoder is None:
            return
        try:
            decoder.release()
        except CaptureError as exc:
            LOG.warning("%s: decoder release failed: %s", self.name, exc.user_message)

    def _notify_error(self, error):
        if error is not None and self._on_error is not None:
            self._on_error(error)
