from .keyspace_repository import OtpRepository, SessionRepository

__all__ = ["OtpRepository", "SessionRepository"]
