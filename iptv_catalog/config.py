from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

from loguru import logger

from .sources import DEFAULT_USER_AGENT

# Configuration persistante (JSON dans le dossier utilisateur), surchargée par la ligne de commande.

CONFIG_ENV = "IPTV_CATALOG_CONFIG"


@dataclass
class Settings:
    timeout: float = 5.0  # par sonde
    fetch_timeout: float = 20.0  # téléchargement de la playlist
    concurrency: int = 8
    total_timeout: Optional[float] = None
    user_agent: str = DEFAULT_USER_AGENT
    enforce_schema: bool = False
    remove_bad: bool = False
    log_level: str = "INFO"


def default_config_path() -> Path:
    env = os.environ.get(CONFIG_ENV)
    if env:
        return Path(env).expanduser()
    return Path.home() / ".iptv_catalog" / "config.json"


def load_settings(path: str | Path | None = None) -> Settings:
    """Charge la config ; fichier absent ou illisible -> valeurs par défaut, clés inconnues ignorées."""
    path = Path(path) if path else default_config_path()
    try:
        if not path.exists():
            return Settings()
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Config {} ignored ({})", path, e)
        return Settings()
    if not isinstance(data, dict):
        logger.warning("Config {} ignored (not a JSON object)", path)
        return Settings()

    known = {f.name for f in fields(Settings)}
    return Settings(**{k: v for k, v in data.items() if k in known})


def save_settings(settings: Settings, path: str | Path | None = None) -> Path:
    path = Path(path) if path else default_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(settings), indent=2), encoding="utf-8")
    return path
