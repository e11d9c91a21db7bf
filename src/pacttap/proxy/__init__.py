"""
PactTap Proxy Module

Interaction capture and contract synthesis.

This module provides:
- Recording engine configuration and supervision
- Capture directory reader
- Pact contract synthesis and writing
- Signal-driven synthesis trigger
"""

from .config import ProxyConfig, build_proxy_config, setup_proxy_config, load_proxy_config
from .settings import ProxySettings, resolve_settings, load_rc_file
from .store import InteractionStore, RecordedInteraction
from .synthesizer import Contract, Interaction, synthesize
from .writer import write_contract
from .supervisor import ProxySupervisor
from .trigger import SynthesisTrigger
from .session import ProxySession, SessionState, synthesize_contract

__all__ = [
    # Config
    'ProxyConfig',
    'build_proxy_config',
    'setup_proxy_config',
    'load_proxy_config',

    # Settings
    'ProxySettings',
    'resolve_settings',
    'load_rc_file',

    # Pipeline
    'InteractionStore',
    'RecordedInteraction',
    'Contract',
    'Interaction',
    'synthesize',
    'write_contract',
    'synthesize_contract',

    # Lifecycle
    'ProxySupervisor',
    'SynthesisTrigger',
    'ProxySession',
    'SessionState',
]
