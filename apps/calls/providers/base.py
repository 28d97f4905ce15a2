"""
Provider adapter contract.

An adapter wraps one telephony vendor behind the operations the call service
needs. Required operations exist on every adapter; optional ones are declared
through ``capabilities`` and raise ``UnsupportedOperationError`` when absent.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, FrozenSet, Optional

from apps.core.exceptions import UnsupportedOperationError

from ..constants import Capability, CallProviderType
from ..types import CallOptions, CallResponseOptions, ConferenceOptions, ScheduledCallOptions

logger = logging.getLogger(__name__)


class CallProvider(ABC):
    provider_type: CallProviderType
    capabilities: FrozenSet[Capability] = frozenset()

    # normalized status -> vendor status
    STATUS_MAP: Dict[str, str] = {}

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def require(self, capability: Capability) -> None:
        if not self.supports(capability):
            raise UnsupportedOperationError(
                f"Provider '{self.provider_type.value}' does not support {capability.value}"
            )

    # -------------------------
    # Status translation
    # -------------------------
    def to_provider_status(self, status: str) -> str:
        """Translate a normalized status; unknown values pass through unchanged."""
        return self.STATUS_MAP.get(status, status)

    def from_provider_status(self, status: str) -> str:
        reverse = {vendor: normalized for normalized, vendor in self.STATUS_MAP.items()}
        return reverse.get(status, status)

    # -------------------------
    # Required operations
    # -------------------------
    @abstractmethod
    def make_call(self, options: CallOptions) -> str:
        """Place an outbound call and return the vendor's call identifier."""

    @abstractmethod
    def handle_incoming_call(self, call_id: str, from_number: str) -> Any:
        """Answer an inbound call and return the voice script to play."""

    @abstractmethod
    def update_call_status(self, call_id: str, status: str) -> None:
        ...

    @abstractmethod
    def handle_recording(self, call_id: str, recording_url: str) -> None:
        ...

    @abstractmethod
    def handle_transcription(self, call_id: str, transcription: str) -> None:
        ...

    @abstractmethod
    def generate_call_response(self, options: CallResponseOptions) -> Any:
        ...

    # -------------------------
    # Optional capabilities
    # -------------------------
    def schedule_call(self, options: ScheduledCallOptions, scheduled_at) -> str:
        self.require(Capability.SCHEDULING)
        raise NotImplementedError

    def create_conference(self, options: ConferenceOptions) -> str:
        self.require(Capability.CONFERENCING)
        raise NotImplementedError

    def add_participant_to_conference(self, conference_id: str, phone_number: str) -> None:
        self.require(Capability.CONFERENCING)
        raise NotImplementedError

    def remove_participant_from_conference(self, conference_id: str, phone_number: str) -> None:
        self.require(Capability.CONFERENCING)
        raise NotImplementedError

    def mute_participant(self, conference_id: str, phone_number: str, muted: bool = True) -> None:
        self.require(Capability.CONFERENCING)
        raise NotImplementedError

    def end_conference(self, conference_id: str) -> None:
        self.require(Capability.CONFERENCING)
        raise NotImplementedError

    def get_call_analytics(self, call_id: str) -> Dict[str, Any]:
        self.require(Capability.ANALYTICS)
        raise NotImplementedError

    def update_assistant_config(
        self,
        call_id: str,
        voice: Optional[str] = None,
        language: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        self.require(Capability.ASSISTANT_CONFIG)
        raise NotImplementedError
