"""
Provisioner — one-shot bootstrap sequencer for locked-down OS images.

Installs a missing package manager, restores a disabled system service,
and applies a declarative configuration document with the freshly
installed package manager.
"""

__version__ = "0.1.0"
