"""Base provider interface."""

from abc import ABC, abstractmethod

from ..models.ai import AiRequestEnvelope, AiResponseEnvelope


class AIProvider(ABC):
    """
    Abstract base class for the AI relay.

    Implementations never raise for provider failures; every outcome comes
    back as an AiResponseEnvelope so callers have to handle each kind.
    """

    @abstractmethod
    def build_request(self, envelope: AiRequestEnvelope) -> dict:
        """
        Shape a caller envelope into the wire request.

        Args:
            envelope: Caller intent (single message or conversation)

        Returns:
            Chat completions request body
        """
        pass

    @abstractmethod
    async def send(self, request: dict) -> AiResponseEnvelope:
        """
        Perform the call and classify the outcome.

        Args:
            request: Wire request from build_request()

        Returns:
            AiResponseEnvelope of kind text, structured or error
        """
        pass

    async def complete(self, envelope: AiRequestEnvelope) -> AiResponseEnvelope:
        """Build and send in one step."""
        return await self.send(self.build_request(envelope))
