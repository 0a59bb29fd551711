# fusion_sdk/model/settings.py
# SPDX-License-Identifier: Apache-2.0
"""
Per-call settings.

`CallSettings` is built once per invocation and never mutated afterwards.
Provider settings are merged right-biased: per-call overrides from
`FunctionOptions.settings` win over the model's defaults, and an override
whose value is None leaves the default in place.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, is_dataclass, replace
from typing import Any, Generic, Mapping, Optional, TypeVar

from fusion_sdk.core.cancellation import CancellationSignal
from fusion_sdk.core.errors import ConfigurationError
from fusion_sdk.run.context import FunctionOptions

S = TypeVar("S")


def merge_settings(defaults: S, overrides: Mapping[str, Any]) -> S:
    """Return `defaults` with the non-None `overrides` applied."""
    if not is_dataclass(defaults):
        raise TypeError("provider settings must be a dataclass instance")
    effective = {k: v for k, v in overrides.items() if v is not None}
    if not effective:
        return defaults
    known = {f.name for f in fields(defaults)}
    unknown = sorted(set(effective) - known)
    if unknown:
        raise ConfigurationError(
            f"unknown settings for {type(defaults).__name__}: {', '.join(unknown)}",
            details={"unknown": unknown},
        )
    return replace(defaults, **effective)


@dataclass(frozen=True)
class CallSettings(Generic[S]):
    settings: S
    signal: Optional[CancellationSignal] = None
    user_id: Optional[str] = None
    function_id: Optional[str] = None
    run_id: Optional[str] = None

    @classmethod
    def build(
        cls,
        defaults: S,
        options: Optional[FunctionOptions] = None,
        *,
        signal: Optional[CancellationSignal] = None,
    ) -> "CallSettings[S]":
        if options is None:
            return cls(settings=defaults, signal=signal)
        run = options.run
        return cls(
            settings=merge_settings(defaults, options.settings),
            signal=signal,
            user_id=run.user_id if run is not None else None,
            function_id=options.function_id,
            run_id=run.run_id if run is not None else None,
        )


__all__ = ["CallSettings", "merge_settings"]
