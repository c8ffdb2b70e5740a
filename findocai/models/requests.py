# =============================================================================
# API Request Models - Pydantic V2 Schemas
# =============================================================================
#
# Shapes of data coming INTO the API. FastAPI validates bodies against them
# (422 on malformed input) and publishes them in the OpenAPI docs.
#
# Blank-after-trim text is rejected by the services (400), not here, so the
# same rule applies to callers that bypass HTTP.
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field


class SendMessageRequest(BaseModel):
    """
    Request body for POST /chat/messages.

    Example:
        {
            "message": "What is my total invoice amount?",
            "conversation_id": null
        }
    """

    message: str = Field(
        ...,
        min_length=1,
        max_length=4000,
        description="The question to ask about your uploaded documents",
        examples=["What is my total invoice amount?"],
    )

    # Omit to start a new conversation. Unknown IDs also start a new one.
    conversation_id: str | None = Field(
        default=None,
        description="Conversation to continue. If omitted, a new conversation is created.",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"message": "What is my total invoice amount?"},
                {
                    "message": "And when is it due?",
                    "conversation_id": "3f2b6c1e-8d1a-4c55-9a57-0b1f6f2d9e10",
                },
            ]
        }
    )


class RenameConversationRequest(BaseModel):
    """Request body for PATCH /chat/conversations/{id}."""

    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="New conversation title",
        examples=["Q2 vendor invoices"],
    )
