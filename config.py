import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'your_secret_key_here'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///inventario.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BABEL_DEFAULT_LOCALE = os.environ.get('BABEL_DEFAULT_LOCALE') or 'es'
    BABEL_DEFAULT_TIMEZONE = os.environ.get('BABEL_DEFAULT_TIMEZONE') or 'UTC'

    # Escáner: cámara local y tiempos de la máquina de estados
    SCANNER_CAMERA_INDEX = int(os.environ.get('SCANNER_CAMERA_INDEX', 0))
    SCANNER_FPS = int(os.environ.get('SCANNER_FPS', 30))
    SCANNER_REGION = (250, 250)
    SCANNER_AUTO_CLOSE_SECONDS = float(os.environ.get('SCANNER_AUTO_CLOSE_SECONDS', 1.5))
    SCANNER_RETRY_DELAY_SECONDS = float(os.environ.get('SCANNER_RETRY_DELAY_SECONDS', 0.1))
    SCANNER_DEBOUNCE_SECONDS = float(os.environ.get('SCANNER_DEBOUNCE_SECONDS', 2.0))
    # None = CameraDecoder con la configuración anterior
    SCANNER_DECODER_FACTORY = None
