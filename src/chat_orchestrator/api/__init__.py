from chat_orchestrator.api.repository_client import GenerationReply, SessionRepositoryClient

__all__ = [
    "GenerationReply",
    "SessionRepositoryClient",
]
