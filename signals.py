from blinker import Namespace

_signals = Namespace()

# Se emite tras cada mutación confirmada: sender=store, action=created|updated|deleted, product=...
product_changed = _signals.signal('product-changed')
