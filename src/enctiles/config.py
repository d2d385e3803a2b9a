"""Configuration management for enctiles.

Settings are loaded with Dynaconf from the following locations in order of
increasing priority:

1. Global settings (/etc/enctiles/)
2. User settings (~/.config/enctiles/)
3. Current directory settings (./)
4. Environment variable specified file (ENCTILES_SETTINGS_FILE_FOR_DYNACONF)

Environment variables prefixed with ``ENCTILES_`` override single keys.

Attributes
----------
USER_DIR : pathlib.Path
    Path to user configuration directory.
GLOB_DIR : pathlib.Path
    Path to global configuration directory.
CURR_DIR : pathlib.Path
    Path to current working directory.
settings : Dynaconf
    The Dynaconf settings object with loaded configuration.
"""
import os
import pathlib
from dataclasses import dataclass

from dynaconf import Dynaconf

from .errors import ConfigurationError
from .web_mercator import TileConvention

USER_DIR = pathlib.Path("~/.config/enctiles").expanduser()
GLOB_DIR = pathlib.Path("/etc/enctiles/")
CURR_DIR = pathlib.Path("./").absolute()
settings_files = [
    GLOB_DIR / "settings.toml",
    GLOB_DIR / ".secrets.toml",
    USER_DIR / "settings.toml",
    USER_DIR / ".secrets.toml",
    CURR_DIR / "settings.toml",
    CURR_DIR / ".secrets.toml"
    ]
extra_file = os.getenv("ENCTILES_SETTINGS_FILE_FOR_DYNACONF")
if extra_file:
    settings_files.append(pathlib.Path(extra_file).absolute())

settings = Dynaconf(
    merge_enabled = True,
    envvar_prefix="ENCTILES",
    settings_files=settings_files,
    environments=True,
    load_dotenv=True,
)

REQUIRED_PATHS = ("chart_path", "meta_path", "style_path", "svg_path")


def change_env(new_env):
    """Change the active Dynaconf environment.

    Parameters
    ----------
    new_env : str
        The environment name to switch to (e.g., 'development', 'production').
    """
    settings.setenv(new_env)
    settings.reload()


@dataclass(frozen=True)
class RendererConfig:
    """Resolved renderer configuration.

    All paths are absolute. Instances are immutable and shared by every
    request thread.
    """

    chart_path: pathlib.Path
    meta_path: pathlib.Path
    style_path: pathlib.Path
    svg_path: pathlib.Path
    tile_size: int = 256
    scale_base: float = 559_082_264.0
    tile_convention: TileConvention = TileConvention.XYZ
    oversample: float = 0.1
    server_host: str = "127.0.0.1"
    server_port: int = 8888

    @classmethod
    def from_settings(cls, source, base_dir):
        """Build a config from a Dynaconf (or any mapping-like) object.

        Parameters
        ----------
        source : Dynaconf or dict
            Object exposing ``get(key, default)``.
        base_dir : str or pathlib.Path
            Directory that relative paths are resolved against.

        Returns
        -------
        RendererConfig
            The resolved configuration.

        Raises
        ------
        ConfigurationError
            If a required key is missing or a value has the wrong type.
        """
        base_dir = pathlib.Path(base_dir)
        paths = {}
        for key in REQUIRED_PATHS:
            value = source.get(key)
            if not value:
                raise ConfigurationError(f"Setting '{key}' is required")
            path = pathlib.Path(str(value)).expanduser()
            if not path.is_absolute():
                path = base_dir / path
            paths[key] = path

        try:
            tile_size = int(source.get("tile_size", 256))
            scale_base = float(source.get("scale_base", 559_082_264.0))
            oversample = float(source.get("oversample", 0.1))
            server_port = int(source.get("server_port", 8888))
        except (TypeError, ValueError) as err:
            raise ConfigurationError(f"Invalid numeric setting: {err}") from err
        if tile_size <= 0:
            raise ConfigurationError("Setting 'tile_size' must be positive")

        return cls(
            tile_size=tile_size,
            scale_base=scale_base,
            tile_convention=TileConvention.parse(source.get("tile_convention", "xyz")),
            oversample=oversample,
            server_host=str(source.get("server_host", "127.0.0.1")),
            server_port=server_port,
            **paths,
        )


def load_config(path=None):
    """Load the renderer configuration.

    Parameters
    ----------
    path : str or pathlib.Path, optional
        Explicit settings file. Relative paths inside it resolve against
        its directory. If None, the global ``settings`` search path is used
        and relative paths resolve against the directory of the highest
        priority settings file that exists.

    Returns
    -------
    RendererConfig
    """
    if path is None:
        existing = [f for f in settings_files if f.is_file()]
        base_dir = existing[-1].parent if existing else CURR_DIR
        return RendererConfig.from_settings(settings, base_dir)

    path = pathlib.Path(path).expanduser().absolute()
    if not path.is_file():
        raise ConfigurationError(f"Settings file {path} does not exist")
    file_settings = Dynaconf(
        envvar_prefix="ENCTILES",
        settings_files=[str(path)],
        environments=True,
    )
    return RendererConfig.from_settings(file_settings, path.parent)
