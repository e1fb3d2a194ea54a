"""Library configuration for pydefaults."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pydefaults.exceptions import DefaultsConfigError


def _env_bool(name: str, value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    if not normalized:
        return default
    raise DefaultsConfigError(f"{name} must be a boolean, got {value!r}")


@dataclasses.dataclass(frozen=True)
class DefaultsConfig:
    """Behaviour switches for :class:`~pydefaults.store.Defaults`.

    Parameters
    ----------
    resource_path : str or None
        JSON resource merged over the static defaults table by
        ``Defaults.register()`` when no explicit resource is given.
        A missing or malformed file is not an error.
    deliver_initial : bool
        Default for the ``initial`` flag of ``observe`` / ``observe_many``.
        When true, a new observer is immediately called with the current
        value of each observed key.
    strict_types : bool
        Type-check values strictly (``"3"`` is not an ``int``). When
        false, values are coerced the way pydantic's lax mode does.
    """

    resource_path: str | None = None
    deliver_initial: bool = False
    strict_types: bool = True

    @classmethod
    def from_env(cls, **overrides: Any) -> DefaultsConfig:
        """Create configuration from environment variables.

        Reads ``PYDEFAULTS_RESOURCE``, ``PYDEFAULTS_DELIVER_INITIAL`` and
        ``PYDEFAULTS_STRICT_TYPES``. Explicit keyword arguments override
        environment values.

        Raises
        ------
        DefaultsConfigError
            If a boolean variable holds an unrecognised value, or an
            override names an unknown field.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        resource = env.get("PYDEFAULTS_RESOURCE")
        if resource:
            config_kwargs["resource_path"] = resource

        if "deliver_initial" not in overrides:
            config_kwargs["deliver_initial"] = _env_bool(
                "PYDEFAULTS_DELIVER_INITIAL",
                env.get("PYDEFAULTS_DELIVER_INITIAL"),
                False,
            )

        if "strict_types" not in overrides:
            config_kwargs["strict_types"] = _env_bool(
                "PYDEFAULTS_STRICT_TYPES",
                env.get("PYDEFAULTS_STRICT_TYPES"),
                True,
            )

        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise DefaultsConfigError(f"Unknown configuration field(s): {', '.join(unknown)}")

        config_kwargs.update(overrides)
        return cls(**config_kwargs)
