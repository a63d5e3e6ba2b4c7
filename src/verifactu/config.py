from __future__ import annotations

import os
from pathlib import Path

import platformdirs
import yaml
from dotenv import load_dotenv

APP_NAME = "verifactu"
CONFIG_DIR_ENV = "VERIFACTU_CONFIG_DIR"
DATA_DIR_ENV = "VERIFACTU_DATA_DIR"


def _checkout_dir(subdir: str) -> Path | None:
    """Return ``<checkout>/<subdir>`` when running from a source checkout."""
    # src/verifactu/config.py sits three levels below the checkout root
    candidate = Path(__file__).resolve().parents[2] / subdir
    return candidate if candidate.is_dir() else None


def _platform_dir(kind: str) -> Path:
    if kind == "config":
        return Path(platformdirs.user_config_dir(APP_NAME))
    return Path(platformdirs.user_data_dir(APP_NAME))


def _resolve_config_dir_for_dotenv() -> Path | None:
    """Locate the config dir that may hold a ``.env`` file.

    Runs before any ``.env`` is read, so only the shell environment counts,
    and the per-user directory is used only if it already exists.
    """
    if os.environ.get(CONFIG_DIR_ENV):
        return Path(os.environ[CONFIG_DIR_ENV])
    checkout = _checkout_dir("config")
    if checkout is not None:
        return checkout
    user_dir = _platform_dir("config")
    return user_dir if user_dir.is_dir() else None


# A .env in the working directory wins over one in the config dir
load_dotenv()
_cfg_dir = _resolve_config_dir_for_dotenv()
if _cfg_dir is not None:
    load_dotenv(_cfg_dir / ".env")


def _resolve_dir(env_var: str, default_subdir: str, kind: str) -> Path:
    """Pick a directory: *env_var* if set, else the checkout's *default_subdir*, else the per-user dir."""
    if os.environ.get(env_var):
        return Path(os.environ[env_var])
    return _checkout_dir(default_subdir) or _platform_dir(kind)


def get_config_dir() -> Path:
    """Directory holding system.yaml, taxpayer.yaml and representative.yaml."""
    return _resolve_dir(CONFIG_DIR_ENV, "config", kind="config")


def get_data_dir() -> Path:
    """Directory holding the chain-tail store. Read from the environment on every call."""
    return _resolve_dir(DATA_DIR_ENV, "data", kind="data")


# --- Wire constants ---

_AEAT_WS = (
    "https://www2.agenciatributaria.gob.es/static_files/common/internet/dep/"
    "aplicaciones/es/aeat/tike/cont/ws"
)

SUM1_NS = f"{_AEAT_WS}/SuministroInformacion.xsd"
SUM_NS = f"{_AEAT_WS}/SuministroLR.xsd"
RESPONSE_NS = f"{_AEAT_WS}/RespuestaSuministro.xsd"
SOAPENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"

ID_VERSION = "1.0"
HASH_TYPE_SHA256 = "01"
DOMESTIC_COUNTRY = "ES"

MAX_BREAKDOWN_LINES = 12
MAX_RECIPIENTS = 1000
MAX_RECORDS_PER_SUBMISSION = 1000


# --- YAML config ---


def load_yaml(path: Path) -> dict:
    """Load and parse a YAML file, returning the top-level dict."""
    return yaml.safe_load(path.read_text())


def load_computer_system() -> dict:
    """Load billing software metadata from config/system.yaml."""
    return load_yaml(get_config_dir() / "system.yaml")


def load_taxpayer() -> dict:
    """Load the invoice issuer (obligado emision) from config/taxpayer.yaml."""
    return load_yaml(get_config_dir() / "taxpayer.yaml")


def load_representative() -> dict | None:
    """Load the optional representative from config/representative.yaml."""
    path = get_config_dir() / "representative.yaml"
    if not path.exists():
        return None
    return load_yaml(path)
