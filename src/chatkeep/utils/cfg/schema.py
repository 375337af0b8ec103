"""
This file is used to define the schema for the config file.
"""
from pathlib import Path
from dataclasses import dataclass, field


@dataclass
class Api:
    """Upstream Chatwork API connection settings."""
    base_url: str   = "https://api.chatwork.com/v2"
    timeout:  float = 30.0
    retries:  int   = 2
    backoff:  float = 0.5


@dataclass
class Fetch:
    """Message retrieval settings."""
    max_span_days: int   = 30
    delay:         float = 1.0   # seconds between upstream calls
    windowed:      bool  = True


@dataclass
class AutoSave:
    """Watch-list and scheduler settings."""
    max_rooms:             int   = 10    # clamped to 10
    default_interval_days: int   = 3
    delay:                 float = 0.5


@dataclass
class Store:
    """Local state file settings."""
    path:    Path = Path("data", "chatkeep.json")
    log_cap: int  = 50   # clamped to 50


@dataclass
class Server:
    """Local HTTP surface settings."""
    host: str = "127.0.0.1"
    port: int = 5000


@dataclass
class Config:
    """Main configuration container aggregating all sections."""
    api:      Api      = field(default_factory=Api)
    fetch:    Fetch    = field(default_factory=Fetch)
    autosave: AutoSave = field(default_factory=AutoSave)
    store:    Store    = field(default_factory=Store)
    server:   Server   = field(default_factory=Server)
