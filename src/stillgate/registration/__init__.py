"""
Registration Module
===================

Frame-to-frame translational registration.

This module provides:
    - RegistrationAdapter: Protocol consumed by the pipeline controller
    - PhaseCorrelationRegistrar: FFT phase correlation (default)
    - FlowRegistrar: Farnebäck dense flow, averaged
    - RegistrationError: Raised for any pair that cannot be aligned
"""

from stillgate.registration.registrar import (
    RegistrationAdapter,
    RegistrationError,
    PhaseCorrelationRegistrar,
    FlowRegistrar,
    create_registrar,
)

__all__ = [
    "RegistrationAdapter",
    "RegistrationError",
    "PhaseCorrelationRegistrar",
    "FlowRegistrar",
    "create_registrar",
]
