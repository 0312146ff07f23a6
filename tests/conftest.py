from __future__ import annotations

import pytest

from app import create_app
from models import db
from scanner.decoder import Decoder


class FakeDecoder(Decoder):
    """Decodificador controlado por el test: emite lecturas y fallos a mano."""

    def __init__(self, start_error=None, start_hook=None, decode_on_start=None):
        self.start_error = start_error
        self.start_hook = start_hook
        self.decode_on_start = decode_on_start
        self.stop_error = None
        self.active = False
        self.released = False
        self.starts = 0
        self.stops = 0
        self.on_decode = None
        self.on_tick = None
        self.on_error = None

    def start(self, on_decode, on_tick, on_error=None):
        self.starts += 1
        self.on_decode, self.on_tick, self.on_error = on_decode, on_tick, on_error
        if self.start_hook is not None:
            self.start_hook()
        if self.start_error is not None:
            raise self.start_error
        self.active = True
        if self.decode_on_start is not None:
            # como una cámara que ya tiene el código a la vista antes de que start() vuelva
            on_decode(self.decode_on_start)

    def stop(self):
        self.stops += 1
        self.active = False
        if self.stop_error is not None:
            raise self.stop_error

    def is_active(self):
        return self.active

    def release(self):
        self.active = False
        self.released = True

    def emit(self, text):
        self.on_decode(text)

    def fail(self, error):
        self.on_error(error)


class DecoderFactory:
    def __init__(self):
        self.created = []
        self.start_error = None
        self.start_hook = None
        self.construct_error = None
        self.decode_on_start = None

    def __call__(self):
        if self.construct_error is not None:
            raise self.construct_error
        decoder = FakeDecoder(
            start_error=self.start_error,
            start_hook=self.start_hook,
            decode_on_start=self.decode_on_start,
        )
        self.created.append(decoder)
        return decoder

    @property
    def last(self):
        return self.created[-1]


class _Handle:
    def __init__(self, when, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Sustituye a threading.Timer: el tiempo avanza sólo con advance()."""

    def __init__(self):
        self.now = 0.0
        self._handles = []

    def call_later(self, delay, callback, *args):
        handle = _Handle(self.now + delay, callback, args)
        self._handles.append(handle)
        return handle

    @property
    def pending(self):
        return [h for h in self._handles if not h.cancelled]

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [h for h in self.pending if h.when <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self._handles.remove(handle)
            self.now = max(self.now, handle.when)
            handle.callback(*handle.args)
        self.now = target


@pytest.fixture
def decoders() -> DecoderFactory:
    return DecoderFactory()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def app(decoders, scheduler):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SCANNER_DECODER_FACTORY': decoders,
    })
    app.extensions['capture_surfaces'].scheduler = scheduler
    with app.app_context():
        db.create_all()
        yield app
        app.extensions['capture_surfaces'].close_all()
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return app.extensions['product_store']
