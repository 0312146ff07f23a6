from .controller import CaptureController, CaptureEvent, CaptureState
from .decoder import Decoder, SYMBOLOGIES
from .surfaces import CaptureSurfaces
