"""Interfaz del decodificador de códigos de barras.

El controlador de captura sólo conoce esta interfaz; el decodificador real
(cámara + zxing-cpp) vive en ``scanner.camera``.
"""
import abc

# Simbologías soportadas como mínimo por cualquier decodificador
SYMBOLOGIES = (
    'EAN-13', 'EAN-8', 'UPC-A', 'UPC-E',
    'CODE-128', 'CODE-39', 'CODE-93', 'ITF',
    'QR', 'DATA-MATRIX',
)


class Decoder(abc.ABC):
    """Sesión de decodificación ligada a una superficie de captura.

    ``start`` pide la cámara y arranca el análisis de fotogramas. Por cada
    fotograma sin código llama a ``on_tick()``; al leer un código llama a
    ``on_decode(text)``. Si el flujo se pierde durante el escaneo llama a
    ``on_error(exc)``. Los fallos al arrancar se lanzan como ``CaptureError``.
    """

    symbologies = SYMBOLOGIES

    @abc.abstractmethod
    def start(self, on_decode, on_tick, on_error=None):
        """Arranca el escaneo; lanza CaptureError si no es posible."""

    @abc.abstractmethod
    def stop(self):
        """Detiene el análisis y libera la cámara; el decodificador sigue vivo."""

    @abc.abstractmethod
    def is_active(self):
        """True mientras el bucle de fotogramas está en marcha."""

    def release(self):
        """Libera todos los recursos; tras esto no se puede volver a arrancar."""
        if self.is_active():
            self.stop()
