from typing import Any, Dict
from pydantic import BaseModel, Field


# ------------------------------------------------------------------------------
# Schemas
# ------------------------------------------------------------------------------

class CreateConversationArgs(BaseModel):
    user_id: int = Field(1, ge=1, description="Owner of the conversation")
    title: str = Field("New Conversation", min_length=1, max_length=200)

class SendMessageArgs(BaseModel):
    conversation_id: int = Field(..., ge=1)
    message: str = Field(..., min_length=1, description="The user's question about their analytics")

class RetryToolCallArgs(BaseModel):
    tool_name: str = Field(..., min_length=1, description="Registry name of the tool that failed, e.g. 'ga4/get-metrics'")
    arguments: Dict[str, Any] = Field(default_factory=dict, description="Arguments from the failed call")
    summarize: bool = Field(True, description="Ask the model for a short summary of the result")

class GetConversationMessagesArgs(BaseModel):
    conversation_id: int = Field(..., ge=1)

class ListConversationsArgs(BaseModel):
    user_id: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)

class SearchConversationsArgs(BaseModel):
    user_id: int = Field(1, ge=1)
    search: str = Field(..., min_length=1, description="Text to look for in conversation titles")
    limit: int = Field(10, ge=1, le=100)

class DeleteConversationArgs(BaseModel):
    conversation_id: int = Field(..., ge=1)
