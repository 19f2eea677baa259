from .interlocutor_analyzer import InterlocutorContextAnalyzer

__all__ = ["InterlocutorContextAnalyzer"]
