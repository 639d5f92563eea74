"""
MCP Interface Layer using fastmcp for agent orchestration.
"""
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP

from shield_memory.services.memory_management import MemoryManagementService
from shield_memory.utils.config import config
from shield_memory.utils.health_check import get_health_status
from shield_memory.utils.logging_config import get_logger

logger = get_logger(__name__)

# Initialize FastMCP application
mcp = FastMCP('Shield Memory')
memory_service = MemoryManagementService()


def _require(value: Optional[str], name: str) -> None:
    if not value or not value.strip():
        raise ValueError(f'{name} is required')


@mcp.tool()
def store_conversation_memory(conversation_id: str,
                              user_id: str,
                              messages: List[Dict[str, Any]],
                              metadata: Optional[Dict[str, Any]] = None) -> int:
    """Store conversation messages as long-term memories.

    Args:
        conversation_id: Conversation ID
        user_id: User ID
        messages: List of {'content', 'role', 'timestamp'} dictionaries in conversation order
        metadata: Extra metadata attached to every stored memory

    Returns:
        Number of messages stored
    """
    _require(conversation_id, 'Conversation ID')
    _require(user_id, 'User ID')

    stored = memory_service.store_conversation_memory(conversation_id, user_id, messages, metadata)
    logger.debug(f'MCP store wrote {stored} memories for conversation {conversation_id}')
    return stored


@mcp.tool()
def retrieve_relevant_memories(user_id: str,
                               query: str,
                               conversation_id: Optional[str] = None,
                               top_k: int = 10,
                               min_score: float = 0.7) -> List[Dict[str, Any]]:
    """Search a user's memories relevant to a query.

    Args:
        user_id: User ID
        query: Natural language query
        conversation_id: Restrict the search to one conversation (default: all)
        top_k: Maximum number of results to return (default: 10)
        min_score: Minimum similarity score (default: 0.7)

    Returns:
        List of memories with content, role, conversation_id, score and timestamp
    """
    _require(user_id, 'User ID')
    if not query or not query.strip():
        return []

    memories = memory_service.retrieve_relevant_memories(query, user_id, conversation_id, top_k, min_score)
    logger.debug(f'MCP search returned {len(memories)} memories for user {user_id}')
    return [memory.to_dict() for memory in memories]


@mcp.tool()
def get_conversation_context(conversation_id: str, user_id: str, current_message: str, top_k: int = 15) -> Dict[str, Any]:
    """Build the memory context for a new message in a conversation.

    Args:
        conversation_id: Conversation ID
        user_id: User ID
        current_message: The message being answered
        top_k: Maximum number of context messages (default: 15)

    Returns:
        Memory context with messages, key topics, emotional tone, user preferences
        and the rendered prompt block
    """
    _require(conversation_id, 'Conversation ID')
    _require(user_id, 'User ID')

    context = memory_service.get_enhanced_conversation_context(conversation_id, user_id, current_message, top_k)
    result = context.to_dict()
    result['prompt'] = memory_service.format_context_for_prompt(context)
    return result


@mcp.tool()
def delete_conversation_memories(user_id: str, conversation_id: str) -> bool:
    """Delete all memories of one conversation.

    Returns:
        True if the memories were deleted
    """
    _require(user_id, 'User ID')
    _require(conversation_id, 'Conversation ID')
    return memory_service.delete_conversation_memories(user_id, conversation_id)


@mcp.tool()
def delete_user_memories(user_id: str) -> bool:
    """Delete all memories of a user.

    Returns:
        True if the memories were deleted
    """
    _require(user_id, 'User ID')
    return memory_service.delete_user_memories(user_id)


@mcp.tool()
def get_memory_stats(user_id: str) -> Dict[str, Any]:
    """Memory statistics for a user: totals, recent conversations, average relevance and top topics."""
    _require(user_id, 'User ID')
    return memory_service.get_memory_stats(user_id).to_dict()


@mcp.tool()
def health_status() -> Dict[str, Any]:
    """Health of the embedding service and the vector store."""
    return get_health_status()


def main():
    mcp.run(transport=config.mcp.transport, host=config.mcp.host, port=config.mcp.port)


if __name__ == '__main__':
    main()
