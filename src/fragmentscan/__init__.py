"""fragmentscan -- Keyboard-wedge scanner input for the fragment games.

RFID readers and barcode scanners present themselves as plain USB
keyboards. This package turns their keystroke bursts into classified
scan events: bursts are separated from human typing by timing alone,
classified by content, gated by per-agent daily quotas and dispatched
to whichever game screen registered interest.
"""

__version__ = "0.1.0"
