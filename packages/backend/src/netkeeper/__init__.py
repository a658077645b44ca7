"""netkeeper — control plane for virtual networks.

Holds the single admin identity, the registry of named networks and the
bounded-use access keys that let new members enroll into a network.
"""

__version__ = "0.1.0"
