from healthdash.advice.advisor import ChatReply, HealthAdvisor
from healthdash.advice.llm_client import LLMClient, LLMResponse

__all__ = ["ChatReply", "HealthAdvisor", "LLMClient", "LLMResponse"]
