from mcp.server.fastmcp import FastMCP
from contextlib import contextmanager

# Import standard app components
from app.core.database import SessionLocal
from app.services.profile_flow import serialize_mood, serialize_profile
from app.services.user_store import UserStore

# Create an MCP server instance
mcp = FastMCP("Rezo-Data-Server")

@contextmanager
def get_store():
    db = SessionLocal()
    try:
        yield UserStore(db)
    finally:
        db.close()

@mcp.tool()
def get_user_profile(email: str) -> dict:
    """Retrieve the public profile and preferences of a user by email."""
    with get_store() as store:
        user = store.find_by_email(email)
        if not user:
            return {"error": "User not found"}
        return serialize_profile(user).model_dump(mode="json")

@mcp.tool()
def get_mood_history(email: str) -> list[dict]:
    """Retrieve the recorded moods of a user, oldest first (50 most recent)."""
    with get_store() as store:
        user = store.find_by_email(email)
        if not user:
            return []
        return [serialize_mood(entry).model_dump(mode="json") for entry in user.mood_history]

@mcp.tool()
def sweep_expired_tokens() -> dict:
    """Clear every magic-link token whose expiry has passed."""
    with get_store() as store:
        cleared = store.sweep_expired_tokens()
        return {"cleared": cleared}

if __name__ == "__main__":
    # Start the standard streaming stdio server
    print("Starting Rezo Data MCP Server on stdio...")
    mcp.run()
