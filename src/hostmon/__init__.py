"""hostmon - host CPU and memory telemetry sampler."""

__version__ = "0.1.0"
