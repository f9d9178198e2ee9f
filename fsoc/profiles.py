"""Profile management for fsoc.

Profiles let users keep connection settings for several platform tenants
(dev, test, prod) and switch between them. The configuration is a YAML file,
``~/.fsoc`` by default, with the following structure::

    current_context: dev
    contexts:
      - name: dev
        auth_method: oauth
        url: https://dev.observe.example.com
        tenant: 0a1b2c3d
      - name: prod
        auth_method: service-principal
        url: https://prod.observe.example.com
        secret_file: /home/me/prod-credentials.json
"""

import stat
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol

import yaml

DEFAULT_CONFIG_FILE = "~/.fsoc"
DEFAULT_PROFILE = "default"
ENV_PREFIX = "FSOC_"


class ConfigReadError(Exception):
    """The configuration file is missing, malformed or inaccessible."""


class HomeDirectoryError(Exception):
    """The home directory could not be determined to locate the config file."""


def write_document(path: Path, data: Dict[str, Any]) -> None:
    """Write a registry document with owner-only permissions."""
    try:
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

        # Tokens live in this file: owner read/write only
        try:
            path.chmod(stat.S_IRUSR | stat.S_IWUSR)
        except OSError:
            # chmod is not meaningful on every platform (e.g., Windows)
            pass

    except OSError as e:
        raise RuntimeError(f"Failed to save configuration: {e}")


@dataclass
class Profile:
    """A named fsoc access context."""

    name: str
    auth_method: Optional[str] = None
    url: Optional[str] = None
    tenant: Optional[str] = None
    user: Optional[str] = None
    token: Optional[str] = None
    refresh_token: Optional[str] = None
    secret_file: Optional[str] = None

    # Context keys fsoc does not model, written back unchanged
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def setting_names(cls) -> List[str]:
        return [f.name for f in fields(cls) if f.name not in ("name", "extra")]

    def to_dict(self) -> Dict[str, Any]:
        """Convert profile to dictionary for serialization."""
        result: Dict[str, Any] = {"name": self.name}
        result.update(self.extra)
        for key in self.setting_names():
            value = getattr(self, key)
            if value:
                result[key] = value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        """Create a Profile from a ``contexts`` entry."""
        known = cls.setting_names()
        values = {key: value for key, value in data.items() if key in known}
        extra = {key: value for key, value in data.items() if key != "name" and key not in known}
        return cls(name=str(data.get("name", "")), extra=extra, **values)

    def is_usable(self) -> bool:
        """Whether the context carries enough to reach a target deployment."""
        return bool(self.url)

    def with_env_overrides(self, environ: Mapping[str, str]) -> "Profile":
        """Return a copy with ``FSOC_<FIELD>`` environment values applied."""
        values = self.to_dict()
        for key in self.setting_names():
            env_value = environ.get(ENV_PREFIX + key.upper())
            if env_value:
                values[key] = env_value
        return Profile.from_dict(values)


@dataclass
class ProfileConfig:
    """In-memory view of the profile registry file."""

    current_profile: Optional[str] = None
    profiles: Dict[str, Profile] = field(default_factory=dict)

    # Top-level keys fsoc does not manage are preserved on save
    settings: Dict[str, Any] = field(default_factory=dict)

    # ``contexts`` items without a name, written back unchanged
    unnamed_contexts: List[Any] = field(default_factory=list)

    @classmethod
    def from_document(cls, data: Any) -> "ProfileConfig":
        """Build a config from a parsed YAML document."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigReadError("config file does not contain a mapping")

        contexts = data.get("contexts") or []
        if not isinstance(contexts, list):
            raise ConfigReadError("'contexts' must be a list")

        profiles: Dict[str, Profile] = {}
        unnamed: List[Any] = []
        for entry in contexts:
            if isinstance(entry, dict) and entry.get("name"):
                profile = Profile.from_dict(entry)
                profiles[profile.name] = profile
            else:
                unnamed.append(entry)

        settings = {
            key: value
            for key, value in data.items()
            if key not in ("current_context", "contexts")
        }
        current = data.get("current_context")
        return cls(
            current_profile=str(current) if current else None,
            profiles=profiles,
            settings=settings,
            unnamed_contexts=unnamed,
        )

    @classmethod
    def load(cls, path: Path) -> "ProfileConfig":
        """Load the registry, raising ConfigReadError when it cannot be read."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise ConfigReadError(f"config file {path} not found") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigReadError(f"cannot read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigReadError(f"config file {path} is not valid YAML: {e}") from e
        return cls.from_document(data)

    @classmethod
    def load_or_empty(cls, path: Path) -> "ProfileConfig":
        """Load the registry, starting from an empty one if it cannot be read."""
        try:
            return cls.load(path)
        except ConfigReadError:
            return cls()

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the YAML document structure."""
        data: Dict[str, Any] = dict(self.settings)
        data["contexts"] = [profile.to_dict() for profile in self.profiles.values()]
        data["contexts"].extend(self.unnamed_contexts)
        if self.current_profile:
            data["current_context"] = self.current_profile
        return data

    def save(self, path: Path) -> None:
        """Save configuration to file with secure permissions."""
        write_document(path, self.to_document())

    def get_profile(self, name: str) -> Optional[Profile]:
        """Get a profile by name."""
        return self.profiles.get(name)

    def get_current_profile(self) -> Optional[Profile]:
        """Get the current profile."""
        if not self.current_profile:
            return None
        return self.profiles.get(self.current_profile)

    def set_current_profile(self, name: str) -> None:
        """Set the current profile; it must exist."""
        if name not in self.profiles:
            raise ValueError(f"Profile '{name}' does not exist")
        self.current_profile = name

    def add_profile(self, profile: Profile, set_current: bool = False) -> None:
        """Add or update a profile."""
        self.profiles[profile.name] = profile
        if set_current or not self.current_profile:
            self.current_profile = profile.name

    def delete_profile(self, name: str) -> bool:
        """Delete a profile. Returns True if deleted, False if not found."""
        if name not in self.profiles:
            return False

        del self.profiles[name]

        if self.current_profile == name:
            self.current_profile = next(iter(self.profiles), None)

        return True

    def list_profiles(self) -> List[Profile]:
        """List all profiles."""
        return list(self.profiles.values())


class ProfileStore(Protocol):
    """Access to the persisted profile registry, as used by the gate."""

    path: Path

    def current_profile_name(self) -> Optional[str]:
        """Return the persisted current profile, or None if unknown."""
        ...

    def set_current_profile(self, name: str) -> bool:
        """Persist ``name`` as current. Returns False if it could not be stored."""
        ...

    def load(self) -> ProfileConfig:
        """Load the registry, raising ConfigReadError if unreadable."""
        ...


class YamlProfileStore:
    """ProfileStore backed by the YAML config file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def current_profile_name(self) -> Optional[str]:
        try:
            return ProfileConfig.load(self.path).current_profile
        except ConfigReadError:
            return None

    def set_current_profile(self, name: str) -> bool:
        # Only the marker changes; the rest of the document is written back
        # as parsed. The profile itself need not exist yet ("config set"
        # creates it).
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, UnicodeDecodeError, yaml.YAMLError):
            return False
        try:
            ProfileConfig.from_document(data)
        except ConfigReadError:
            return False
        data = data or {}
        if data.get("current_context") == name:
            return True
        data["current_context"] = name
        write_document(self.path, data)
        return True

    def load(self) -> ProfileConfig:
        return ProfileConfig.load(self.path)


def resolve_config_path(config_file: Optional[str]) -> Path:
    """Return the config file location: the --config value, else ~/.fsoc."""
    if config_file:
        return Path(config_file).expanduser()
    try:
        home = Path.home()
    except (RuntimeError, KeyError) as e:
        raise HomeDirectoryError(str(e)) from e
    return home / ".fsoc"


class ProfileFlagState(Enum):
    """How the --profile flag appeared on the command line."""

    NOT_SUPPLIED = "not-supplied"
    SUPPLIED_EMPTY = "supplied-empty"
    SUPPLIED_VALUE = "supplied-value"


@dataclass(frozen=True)
class ProfileFlag:
    """The --profile flag as a tagged option."""

    state: ProfileFlagState
    value: str = ""

    @classmethod
    def from_command_line(cls, value: Optional[str], supplied: bool) -> "ProfileFlag":
        if not supplied:
            return cls(ProfileFlagState.NOT_SUPPLIED)
        if not value:
            return cls(ProfileFlagState.SUPPLIED_EMPTY)
        return cls(ProfileFlagState.SUPPLIED_VALUE, value)


@dataclass(frozen=True)
class ProfileResolution:
    """Outcome of profile resolution for one invocation."""

    name: str
    overridden: bool = False
    source: str = "config"


def resolve_profile(
    flag: ProfileFlag,
    persisted_current: Optional[str],
    env_profile: Optional[str] = None,
) -> ProfileResolution:
    """Determine the active profile.

    Priority order:
    1. --profile NAME on the command line (persisted as the new current)
    2. FSOC_PROFILE environment variable, unless --profile "" pins current
    3. current_context from the config file, else "default"
    """
    if flag.state is ProfileFlagState.SUPPLIED_VALUE:
        return ProfileResolution(flag.value, overridden=True, source="command line")

    if flag.state is ProfileFlagState.NOT_SUPPLIED and env_profile:
        return ProfileResolution(env_profile, source="environment")

    return ProfileResolution(persisted_current or DEFAULT_PROFILE)


def check_config_file_permissions(path: Path) -> Optional[str]:
    """Check if the config file has appropriate permissions.

    Returns a warning message if permissions are too open, None otherwise.
    """
    if not path.exists():
        return None

    try:
        mode = path.stat().st_mode
        if mode & (stat.S_IRWXG | stat.S_IRWXO):
            return (
                f"Warning: Config file {path} has overly permissive permissions. "
                "Consider running: chmod 600 " + str(path)
            )
    except OSError:
        pass

    return None

