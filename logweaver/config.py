from __future__ import annotations

from collections.abc import Iterable, Sequence
import logging
from pathlib import Path
import tomllib
from typing import Optional

from . import default_config
from .exceptions import ConfigError
from .timestamp_wrapper import Rule


logger = logging.getLogger(__name__)

USER_CONFIG_PATH = Path.home() / ".logweaver.toml"


def parse_rules(toml_text: str, source: str = "<string>") -> list[Rule]:
    """
    Parse [[match]] entries from TOML text into Rules, in the order given. Each entry
    needs a `match` regex; `format` is optional.
    """
    try:
        doc = tomllib.loads(toml_text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"error decoding {source}: {exc}") from exc

    entries = doc.get("match", [])
    if not isinstance(entries, list):
        raise ConfigError(f"error in {source}: 'match' must be an array of tables ([[match]])")

    rules = []
    for entry_num, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict) or not isinstance(entry.get("match"), str):
            raise ConfigError(f"error in {source}: match entry {entry_num} must have a 'match' string")
        explicit_format = entry.get("format", "")
        if not isinstance(explicit_format, str):
            raise ConfigError(f"error in {source}: 'format' of match entry {entry_num} must be a string")
        rules.append(Rule.compile(entry["match"], explicit_format))
    return rules


def default_rules() -> list[Rule]:
    return parse_rules(default_config.text, "built-in config")


def read_user_config(path: Optional[Path] = None) -> str:
    """
    Return the text of the user's rule file: `path` if given (which must exist), else
    ~/.logweaver.toml if it exists, else an empty string.
    """
    if path is None:
        path = USER_CONFIG_PATH
        if not path.exists():
            return ""
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"error opening config {path}: {exc}") from exc


def load_rules(
        extra_rules: Iterable[Sequence[str]] = (),
        user_config_path: Optional[Path] = None,
) -> list[Rule]:
    """
    Build the full, ordered rule list: rules given on the command line, then rules from
    the user's config file, then the built-in rules.
    """
    rules = []
    for rule_args in extra_rules:
        rules.append(Rule.compile(*rule_args))

    user_text = read_user_config(user_config_path)
    if user_text:
        rules.extend(parse_rules(user_text, str(user_config_path or USER_CONFIG_PATH)))

    rules.extend(default_rules())
    logger.debug("loaded %d timestamp rules", len(rules))
    return rules
