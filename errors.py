"""Errores del inventario.

Los errores de captura se convierten en estado del controlador (mensaje y
opción de reintentar); los del almacén llegan a los manejadores de Flask.
"""


class InventoryError(Exception):
    """Base de todos los errores de la aplicación."""


# --- Captura de códigos de barras ---

class CaptureError(InventoryError):
    retryable = True
    default_message = 'No se pudo iniciar el escáner'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.user_message = message or self.default_message


class CameraPermissionError(CaptureError):
    default_message = 'Permiso de cámara denegado'


class CameraDeviceError(CaptureError):
    default_message = 'No hay ninguna cámara disponible'


class DecoderInitError(CaptureError):
    default_message = 'No se pudo inicializar el lector de códigos'


# --- Almacén de productos ---

class ProductNotFound(InventoryError):
    def __init__(self, key):
        super().__init__(f'Producto no encontrado: {key}')
        self.key = key


class ValidationError(InventoryError):
    def __init__(self, errors):
        # errors: {campo: [mensajes]}
        self.errors = errors
        super().__init__('; '.join(f'{k}: {", ".join(v)}' for k, v in errors.items()))
