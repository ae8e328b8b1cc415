"""Per-request resolution state."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Set, Tuple

from DrsHub.normalize import BackendMetadata, DrsAccessMethod
from DrsHub.resolvers.profiles import AccessMethodType, ProviderProfile
from DrsHub.resolvers.uri import HttpsUrlParts

LOGGER = logging.getLogger(__name__)


class ResolutionState(str, Enum):
    START = "start"
    METADATA_PENDING = "metadata_pending"
    AUTH_PENDING = "auth_pending"
    ACCESS_URL_PENDING = "access_url_pending"
    ASSEMBLED = "assembled"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS = {
    ResolutionState.START: {
        ResolutionState.METADATA_PENDING,
        ResolutionState.AUTH_PENDING,
        ResolutionState.ASSEMBLED,
    },
    ResolutionState.METADATA_PENDING: {ResolutionState.AUTH_PENDING, ResolutionState.ASSEMBLED},
    ResolutionState.AUTH_PENDING: {
        ResolutionState.ACCESS_URL_PENDING,
        ResolutionState.ASSEMBLED,
    },
    ResolutionState.ACCESS_URL_PENDING: {
        ResolutionState.AUTH_PENDING,
        ResolutionState.ASSEMBLED,
    },
    ResolutionState.ASSEMBLED: {ResolutionState.DONE},
    ResolutionState.DONE: set(),
    ResolutionState.FAILED: set(),
}


@dataclass
class ResolutionContext:
    """Mutable accumulator owned by exactly one resolution.

    Attributes:
        url: DRS URI as received
        requested: Requested response fields
        authorization: Caller's Authorization header, if any
        force_access_url: Caller asked for an access URL regardless of policy
        parts: Parsed HTTPS coordinates
        profile: Selected provider profile
        metadata: Normalized provider metadata
        access_method: Access method chosen from the metadata
        service_account: Bond service-account key response
        passports: Caller's passports
        access_url: Access endpoint response (``{url, headers?}``)
        omitted: Fields dropped from the response (deadline or tolerated failure)
        state: Current state; every change is logged
    """

    url: str
    requested: Tuple[str, ...]
    authorization: Optional[str] = None
    force_access_url: bool = False
    parts: Optional[HttpsUrlParts] = None
    profile: Optional[ProviderProfile] = None
    metadata: Optional[BackendMetadata] = None
    access_method: Optional[DrsAccessMethod] = None
    service_account: Optional[Any] = None
    passports: Optional[List[Any]] = None
    access_url: Optional[Any] = None
    omitted: Set[str] = field(default_factory=set)
    state: ResolutionState = ResolutionState.START
    history: List[ResolutionState] = field(default_factory=lambda: [ResolutionState.START])

    @property
    def method_type(self) -> Optional[AccessMethodType]:
        return self.access_method.method_type if self.access_method is not None else None

    @property
    def finished(self) -> bool:
        return self.state in (ResolutionState.ASSEMBLED, ResolutionState.DONE, ResolutionState.FAILED)

    def transition(self, new_state: ResolutionState) -> None:
        if self.finished and new_state in (
            ResolutionState.AUTH_PENDING,
            ResolutionState.ACCESS_URL_PENDING,
        ):
            # Late step of a call abandoned at the deadline.
            LOGGER.debug(f"Ignoring {new_state.value} for '{self.url}' after {self.state.value}")
            return
        if new_state is not ResolutionState.FAILED and new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal transition {self.state.value} -> {new_state.value}")
        LOGGER.debug(f"Resolution of '{self.url}': {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    def omit(self, field_name: str) -> None:
        self.omitted.add(field_name)


__all__ = ["ResolutionContext", "ResolutionState"]
